from __future__ import annotations

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_library import register as register_library
from misc.discord_gates import channel_in_allowlist
from misc.discord_gates import user_in_owner_set
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeBootDeps


def wire_bot_runtime(
    bot,
    *,
    notifier,
    notifier_enabled: bool,
    kavita_client,
    send_chunked,
    owner_user_ids: set[int],
    command_channel_ids: set[int],
    shutdown_hooks: tuple = (),
) -> None:
    def in_allowed_channel(ctx) -> bool:
        try:
            return channel_in_allowlist(ctx.channel, command_channel_ids)
        except Exception:
            return False

    def user_is_owner(user) -> bool:
        return user_in_owner_set(user, owner_user_ids)

    command_deps = CommandDeps(
        send_chunked=send_chunked,
        notifier=notifier if notifier_enabled else None,
        kavita_client=kavita_client,
    )
    command_gates = CommandGates(
        in_allowed_channel=in_allowed_channel,
        allowed_channel_ids=command_channel_ids,
        user_is_owner=user_is_owner,
    )

    register_library(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_runtime_events(
        bot,
        boot=RuntimeBootDeps(
            notifier=notifier,
            notifier_enabled=notifier_enabled,
            shutdown_hooks=tuple(shutdown_hooks),
        ),
    )
