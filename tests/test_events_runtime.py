from __future__ import annotations

import unittest

try:
    import discord
    from misc.events_runtime import NotifierBot
    from misc.events_runtime import register_runtime_events
except ModuleNotFoundError:
    discord = None
    NotifierBot = None
    register_runtime_events = None

if discord is not None:
    from config.settings import ConfigError
    from misc.runtime_deps import RuntimeBootDeps


class StubNotifier:
    def __init__(self, *, start_error=None):
        self.start_error = start_error
        self.start_calls = 0
        self.stop_calls = 0
        self.waits = 0

    async def start(self):
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        return True

    def stop(self):
        self.stop_calls += 1

    async def wait_for_cycle(self):
        self.waits += 1


@unittest.skipIf(NotifierBot is None, "discord.py not installed")
class RuntimeEventsTests(unittest.IsolatedAsyncioTestCase):
    def _bot(self, notifier, *, enabled=True, hooks=()):
        bot = NotifierBot(command_prefix="!", intents=discord.Intents.none())
        register_runtime_events(
            bot,
            boot=RuntimeBootDeps(notifier=notifier, notifier_enabled=enabled, shutdown_hooks=tuple(hooks)),
        )
        return bot

    async def test_ready_starts_notifier_once(self):
        notifier = StubNotifier()
        bot = self._bot(notifier)

        await bot.on_ready()
        await bot.on_ready()

        self.assertEqual(notifier.start_calls, 1)

    async def test_disabled_notifier_is_not_started(self):
        notifier = StubNotifier()
        bot = self._bot(notifier, enabled=False)
        await bot.on_ready()
        self.assertEqual(notifier.start_calls, 0)

    async def test_config_error_does_not_escape_ready(self):
        notifier = StubNotifier(start_error=ConfigError("CHECK_INTERVAL_HOURS", "must be positive"))
        bot = self._bot(notifier)
        await bot.on_ready()
        self.assertEqual(notifier.start_calls, 1)

    async def test_shutdown_hooks_stop_notifier_before_closing_clients(self):
        order: list[str] = []

        async def close_client():
            order.append("client")

        notifier = StubNotifier()
        bot = self._bot(notifier, hooks=(close_client,))

        self.assertEqual(len(bot.shutdown_hooks), 2)
        for hook in bot.shutdown_hooks:
            await hook()
            order.append("hook")

        self.assertEqual(notifier.stop_calls, 1)
        self.assertEqual(notifier.waits, 1)
        self.assertEqual(order, ["hook", "client", "hook"])


if __name__ == "__main__":
    unittest.main()
