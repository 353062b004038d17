from __future__ import annotations

import unittest

try:
    import discord
    from discord.ext import commands
except ModuleNotFoundError:
    discord = None
    commands = None

if commands is not None:
    from kavita.client import Library
    from kavita.client import UpstreamError
    from misc.commands.command_deps import CommandDeps
    from misc.commands.command_deps import CommandGates
    from misc.commands.commands_library import register as register_library


class StubNotifier:
    def __init__(self, *, busy=False, announced=None, state="running"):
        self.busy = busy
        self.announced = announced
        self.state = state
        self.check_calls = 0

    async def check_now(self):
        self.check_calls += 1
        return self.announced

    def status_text(self):
        return f"state={self.state}"


class StubKavita:
    def __init__(self, *, libraries=None, error=None):
        self.libraries = libraries or []
        self.error = error
        self.scans: list[tuple[str, bool]] = []
        self.searches: list[str] = []

    async def list_collections(self):
        if self.error is not None:
            raise self.error
        return list(self.libraries)

    async def scan_library(self, library_id, *, force=False):
        self.scans.append((library_id, force))
        return True

    async def search_series(self, term, *, limit=10):
        self.searches.append(term)
        return ["Blue Period"]


class FakeChannel:
    id = 123

    async def send(self, text):
        return None


class FakeAuthor:
    def __init__(self, user_id: int):
        self.id = user_id


class FakeCtx:
    def __init__(self, *, user_id: int = 1):
        self.channel = FakeChannel()
        self.author = FakeAuthor(user_id)
        self.guild = object()
        self.sent: list[str] = []

    async def send(self, text):
        self.sent.append(text)


@unittest.skipIf(commands is None, "discord.py not installed")
class LibraryCommandsTests(unittest.IsolatedAsyncioTestCase):
    def _bot(self, *, notifier=None, kavita=None, owner=True, channel_ok=True):
        chunked: list[str] = []

        async def send_chunked(channel, text):
            chunked.append(text)

        bot = commands.Bot(command_prefix="!", intents=discord.Intents.none())
        register_library(
            bot,
            deps=CommandDeps(
                send_chunked=send_chunked,
                notifier=notifier if notifier is not None else StubNotifier(),
                kavita_client=kavita,
            ),
            gates=CommandGates(
                in_allowed_channel=lambda ctx: channel_ok,
                allowed_channel_ids={123},
                user_is_owner=lambda user: owner,
            ),
        )
        return bot, chunked

    async def test_non_owner_blocked_from_every_command(self):
        bot, _ = self._bot(owner=False, kavita=StubKavita())
        for name in ("library.check", "library.status", "library.list", "library.scan", "library.search"):
            cmd = bot.get_command(name)
            self.assertIsNotNone(cmd)
            ctx = FakeCtx()
            await cmd.callback(ctx)
            self.assertTrue(any("owner-only" in s.lower() for s in ctx.sent), f"missing owner gate for {name}")

    async def test_commands_blocked_outside_allowed_channel(self):
        notifier = StubNotifier(announced=[])
        bot, _ = self._bot(notifier=notifier, channel_ok=False)
        ctx = FakeCtx()
        await bot.get_command("library.check").callback(ctx)
        self.assertIn("not enabled in this channel", ctx.sent[0])
        self.assertEqual(notifier.check_calls, 0)

    async def test_no_commands_without_notifier(self):
        bot = commands.Bot(command_prefix="!", intents=discord.Intents.none())
        register_library(bot, deps=CommandDeps(), gates=CommandGates())
        self.assertIsNone(bot.get_command("library.check"))

    async def test_check_reports_announced_count(self):
        bot, _ = self._bot(notifier=StubNotifier(announced=["a", "b"]))
        ctx = FakeCtx()
        await bot.get_command("library.check").callback(ctx)
        self.assertEqual(ctx.sent, ["Library check finished: announced 2 new series."])

    async def test_check_reports_nothing_new(self):
        bot, _ = self._bot(notifier=StubNotifier(announced=[]))
        ctx = FakeCtx()
        await bot.get_command("library.check").callback(ctx)
        self.assertIn("nothing new", ctx.sent[0])

    async def test_check_while_busy_does_not_trigger(self):
        notifier = StubNotifier(busy=True, announced=[])
        bot, _ = self._bot(notifier=notifier)
        ctx = FakeCtx()
        await bot.get_command("library.check").callback(ctx)
        self.assertIn("already running", ctx.sent[0])
        self.assertEqual(notifier.check_calls, 0)

    async def test_check_when_not_running_reports_state(self):
        bot, _ = self._bot(notifier=StubNotifier(announced=None, state="stopped"))
        ctx = FakeCtx()
        await bot.get_command("library.check").callback(ctx)
        self.assertIn("state=stopped", ctx.sent[0])

    async def test_status_uses_chunked_sender(self):
        bot, chunked = self._bot(notifier=StubNotifier())
        await bot.get_command("library.status").callback(FakeCtx())
        self.assertEqual(chunked, ["```\nstate=running\n```"])

    async def test_list_shows_libraries(self):
        kavita = StubKavita(libraries=[Library("1", "Manga"), Library("2", "Comics")])
        bot, chunked = self._bot(kavita=kavita)
        await bot.get_command("library.list").callback(FakeCtx())
        self.assertEqual(chunked, ["```\n1: Manga\n2: Comics\n```"])

    async def test_list_reports_upstream_failure(self):
        bot, _ = self._bot(kavita=StubKavita(error=UpstreamError("list_collections", "down")))
        ctx = FakeCtx()
        await bot.get_command("library.list").callback(ctx)
        self.assertIn("could not reach Kavita", ctx.sent[0])

    async def test_scan_validates_and_forwards_force(self):
        kavita = StubKavita()
        bot, _ = self._bot(kavita=kavita)
        cmd = bot.get_command("library.scan")

        bad = FakeCtx()
        await cmd.callback(bad, library_id="manga")
        self.assertIn("Usage", bad.sent[0])

        ok = FakeCtx()
        await cmd.callback(ok, library_id="4", force="force")
        self.assertEqual(kavita.scans, [("4", True)])
        self.assertIn("(forced)", ok.sent[0])

    async def test_search_requires_term(self):
        kavita = StubKavita()
        bot, chunked = self._bot(kavita=kavita)
        cmd = bot.get_command("library.search")

        empty = FakeCtx()
        await cmd.callback(empty, term="  ")
        self.assertIn("Usage", empty.sent[0])

        await cmd.callback(FakeCtx(), term="blue")
        self.assertEqual(kavita.searches, ["blue"])
        self.assertEqual(chunked, ["```\nBlue Period\n```"])


if __name__ == "__main__":
    unittest.main()
