from __future__ import annotations

from discord.ext import commands

from config.settings import ConfigError
from misc.runtime_deps import RuntimeBootDeps


class NotifierBot(commands.Bot):
    """commands.Bot that runs registered async hooks before disconnecting."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.shutdown_hooks: list = []

    async def close(self) -> None:
        for hook in list(self.shutdown_hooks):
            try:
                await hook()
            except Exception as e:
                print(f"[Boot] shutdown hook failed: {e}")
        await super().close()


def register_runtime_events(
    bot: commands.Bot,
    *,
    boot: RuntimeBootDeps,
) -> None:
    async def stop_notifier():
        notifier = boot.notifier
        if notifier is None:
            return
        notifier.stop()
        # let an in-flight cycle finish its save before sessions close
        await notifier.wait_for_cycle()

    hooks = getattr(bot, "shutdown_hooks", None)
    if hooks is not None:
        hooks.append(stop_notifier)
        hooks.extend(boot.shutdown_hooks)

    @bot.event
    async def on_ready():
        print(f"Library notifier bot is online as {bot.user}")

        if not boot.notifier_enabled or boot.notifier is None:
            print("[Notifier] disabled (NOTIFICATION_CHANNEL_ID not set)")
            return
        if getattr(bot, "_notifier_started", False):
            # on_ready fires again after reconnects
            return

        bot._notifier_started = True
        try:
            await boot.notifier.start()
        except ConfigError as e:
            print(f"[Notifier] action=start result=config_error key={e.key} error={e.message}")
