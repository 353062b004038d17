from __future__ import annotations

import discord


def channel_in_allowlist(channel, allowed_channel_ids: set[int]) -> bool:
    # An empty allowlist accepts every channel.
    if not allowed_channel_ids:
        return True

    channel_id = int(getattr(channel, "id", 0) or 0)
    if channel_id in allowed_channel_ids:
        return True
    # thread: allow if parent is allowed
    if isinstance(channel, discord.Thread) and channel.parent:
        return int(channel.parent.id) in allowed_channel_ids
    return False


def user_in_owner_set(user, owner_user_ids: set[int]) -> bool:
    try:
        return int(user.id) in owner_user_ids
    except Exception:
        return False
