from __future__ import annotations

import importlib


class _DummyNotifier:
    state = "idle"
    busy = False

    async def start(self):
        return True

    def stop(self):
        return None

    async def wait_for_cycle(self):
        return None

    async def check_now(self):
        return []

    def status_text(self) -> str:
        return "state=idle"


async def _noop_async(*args, **kwargs):
    return None


def _try_import_or_skip(module_name: str, pip_name: str | None = None) -> bool:
    try:
        importlib.import_module(module_name)
        return True
    except ModuleNotFoundError:
        install_name = pip_name or module_name
        print(
            f"Smoke wiring check skipped: missing dependency '{module_name}'. "
            f"Install requirements and retry (e.g. `pip install {install_name}` "
            f"or `pip install -e .`)."
        )
        return False


def _main() -> int:
    if not _try_import_or_skip("discord", "discord.py"):
        return 0

    import discord
    from misc.events_runtime import NotifierBot
    from misc.runtime_wiring import wire_bot_runtime

    bot = NotifierBot(command_prefix="!", intents=discord.Intents.none())

    wire_bot_runtime(
        bot,
        notifier=_DummyNotifier(),
        notifier_enabled=True,
        kavita_client=None,
        send_chunked=_noop_async,
        owner_user_ids={237008609773486080},
        command_channel_ids=set(),
        shutdown_hooks=(_noop_async,),
    )

    expected_commands = {
        "library.check",
        "library.status",
        "library.list",
        "library.scan",
        "library.search",
    }
    existing_commands = set(bot.all_commands.keys())
    missing = sorted(expected_commands - existing_commands)
    if missing:
        raise RuntimeError(f"Missing expected commands: {missing}")

    if getattr(bot, "on_ready", None) is None:
        raise RuntimeError("Runtime events were not registered")
    if len(bot.shutdown_hooks) < 2:
        raise RuntimeError("Shutdown hooks were not registered")

    print("Smoke wiring check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
