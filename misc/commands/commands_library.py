from __future__ import annotations

from discord.ext import commands

from kavita.client import UpstreamError
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from vault.credentials import AuthError


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    if deps.notifier is None:
        return

    notifier = deps.notifier
    kavita = deps.kavita_client

    async def _ensure_staff(ctx: commands.Context) -> bool:
        if not gates.in_allowed_channel(ctx):
            await ctx.send("Library commands are not enabled in this channel.")
            return False
        if not gates.user_is_owner(ctx.author):
            await ctx.send("This library command is owner-only.")
            return False
        return True

    @bot.command(name="library.check")
    async def library_check(ctx: commands.Context):
        if not await _ensure_staff(ctx):
            return
        if notifier.busy:
            await ctx.send("A library check is already running; try again in a moment.")
            return
        announced = await notifier.check_now()
        if announced is None:
            await ctx.send(f"Library check skipped (notifier state={notifier.state}).")
            return
        if not announced:
            await ctx.send("Library check finished: nothing new to announce.")
            return
        await ctx.send(f"Library check finished: announced {len(announced)} new series.")

    @bot.command(name="library.status")
    async def library_status(ctx: commands.Context):
        if not await _ensure_staff(ctx):
            return
        text = notifier.status_text()
        await deps.send_chunked(ctx.channel, f"```\n{text[: deps.max_reply_chars]}\n```")

    @bot.command(name="library.list")
    async def library_list(ctx: commands.Context):
        if not await _ensure_staff(ctx):
            return
        if kavita is None:
            await ctx.send("Kavita is not configured.")
            return
        try:
            libraries = await kavita.list_collections()
        except (AuthError, UpstreamError) as e:
            print(f"[Kavita] action=list_collections source=command result=error error={str(e)[:160]}")
            await ctx.send("Error: could not reach Kavita. Check logs.")
            return
        if not libraries:
            await ctx.send("No libraries found.")
            return
        lines = [f"{lib.id}: {lib.name}" for lib in libraries]
        await deps.send_chunked(ctx.channel, "```\n" + "\n".join(lines)[: deps.max_reply_chars] + "\n```")

    @bot.command(name="library.scan")
    async def library_scan(ctx: commands.Context, library_id: str = "", force: str = ""):
        if not await _ensure_staff(ctx):
            return
        if kavita is None:
            await ctx.send("Kavita is not configured.")
            return
        library_id = (library_id or "").strip()
        if not library_id.isdigit():
            await ctx.send("Usage: !library.scan <library_id> [force]")
            return
        force_flag = (force or "").strip().lower() in {"1", "true", "yes", "force"}
        try:
            await kavita.scan_library(library_id, force=force_flag)
        except (AuthError, UpstreamError) as e:
            print(f"[Kavita] action=scan_library library={library_id} result=error error={str(e)[:160]}")
            await ctx.send(f"Error: scan request for library {library_id} failed. Check logs.")
            return
        print(f"[Kavita] action=scan_library library={library_id} force={force_flag} user={int(ctx.author.id)} result=ok")
        await ctx.send(f"Scan requested for library {library_id}{' (forced)' if force_flag else ''}.")

    @bot.command(name="library.search")
    async def library_search(ctx: commands.Context, *, term: str = ""):
        if not await _ensure_staff(ctx):
            return
        if kavita is None:
            await ctx.send("Kavita is not configured.")
            return
        term = (term or "").strip()
        if not term:
            await ctx.send("Usage: !library.search <term>")
            return
        try:
            names = await kavita.search_series(term, limit=deps.search_limit)
        except (AuthError, UpstreamError) as e:
            print(f"[Kavita] action=search result=error error={str(e)[:160]}")
            await ctx.send("Error: search failed. Check logs.")
            return
        if not names:
            await ctx.send(f"No series matched {term!r}.")
            return
        await deps.send_chunked(ctx.channel, "```\n" + "\n".join(names)[: deps.max_reply_chars] + "\n```")
