from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest import mock

try:
    from misc.discord_gates import channel_in_allowlist
    from misc.discord_gates import user_in_owner_set
except ModuleNotFoundError:
    channel_in_allowlist = None
    user_in_owner_set = None


@unittest.skipIf(channel_in_allowlist is None, "discord.py not installed")
class DiscordGatesTests(unittest.TestCase):
    def test_empty_allowlist_allows_any_channel(self):
        self.assertTrue(channel_in_allowlist(SimpleNamespace(id=999), set()))

    def test_allowed_channel_is_allowed(self):
        self.assertTrue(channel_in_allowlist(SimpleNamespace(id=123), {123}))

    def test_disallowed_channel_is_blocked(self):
        self.assertFalse(channel_in_allowlist(SimpleNamespace(id=999), {123}))

    def test_thread_parent_allowlist_is_honored(self):
        class FakeThread:
            def __init__(self, channel_id: int, parent_id: int):
                self.id = int(channel_id)
                self.parent = SimpleNamespace(id=int(parent_id))

        with mock.patch("misc.discord_gates.discord.Thread", FakeThread):
            self.assertTrue(channel_in_allowlist(FakeThread(channel_id=777, parent_id=123), {123}))
            self.assertFalse(channel_in_allowlist(FakeThread(channel_id=777, parent_id=456), {123}))

    def test_owner_set_membership(self):
        self.assertTrue(user_in_owner_set(SimpleNamespace(id=42), {42}))
        self.assertFalse(user_in_owner_set(SimpleNamespace(id=7), {42}))
        self.assertFalse(user_in_owner_set(object(), {42}))


if __name__ == "__main__":
    unittest.main()
