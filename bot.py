import os

import discord

from config.settings import load_notifier_settings
from kavita.client import KavitaClient
from misc.events_runtime import NotifierBot
from misc.runtime_wiring import wire_bot_runtime
from notifications.detector import ChangeDetector
from notifications.dispatcher import NotificationDispatcher
from notifications.render import default_templates_path
from notifications.render import load_notification_templates
from notifications.scheduler import LibraryNotifier
from vault.client import VaultClient
from vault.notified_store import NotifiedSetStore

# =========================
# ENV
# =========================
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")

if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var")

SETTINGS = load_notifier_settings(templates_path_default=default_templates_path())

if not SETTINGS.kavita_url or not SETTINGS.kavita_api_key:
    raise RuntimeError("Missing KAVITA_URL or KAVITA_API_KEY env var")

print(
    f"[CFG] kavita_url={SETTINGS.kavita_url} vault_url={SETTINGS.vault_url} "
    f"service={SETTINGS.service_name} channel={SETTINGS.notification_channel_id} "
    f"interval_h={SETTINGS.check_interval_hours} lookback_h={SETTINGS.lookback_hours} "
    f"initial_delay_s={SETTINGS.initial_delay_seconds:g} "
    f"owner_ids={len(SETTINGS.owner_user_ids)} command_channels={len(SETTINGS.command_channel_ids)}"
)
for warning in SETTINGS.warnings:
    print(f"[CFG] {warning}")

NOTIFY_TEMPLATES, NOTIFY_TEMPLATES_WARNING = load_notification_templates(SETTINGS.templates_path)
print(f"[CFG] notification_templates={NOTIFY_TEMPLATES.version} path={SETTINGS.templates_path}")
if NOTIFY_TEMPLATES_WARNING:
    print(f"[CFG] {NOTIFY_TEMPLATES_WARNING}")

DISCORD_MAX_MESSAGE_LEN = 1900  # keep under 2000 hard limit


def chunk_text(text: str, limit: int = DISCORD_MAX_MESSAGE_LEN) -> list[str]:
    text = text or ""
    if len(text) <= limit:
        return [text]

    chunks = []
    remaining = text

    while len(remaining) > limit:
        # Prefer splitting on newline, then space
        split_at = remaining.rfind("\n", 0, limit)
        if split_at == -1:
            split_at = remaining.rfind(" ", 0, limit)
        if split_at == -1:
            split_at = limit

        chunk = remaining[:split_at].strip()
        if chunk:
            chunks.append(chunk)

        remaining = remaining[split_at:].strip()

    if remaining:
        chunks.append(remaining)

    return chunks


async def send_chunked(channel: discord.abc.Messageable, text: str) -> None:
    for part in chunk_text(text, DISCORD_MAX_MESSAGE_LEN):
        await channel.send(part)


# =========================
# DISCORD BOT
# =========================
intents = discord.Intents.default()
intents.message_content = True

bot = NotifierBot(command_prefix="!", intents=intents)

# =========================
# KAVITA + VAULT
# =========================
kavita_client = KavitaClient(
    base_url=SETTINGS.kavita_url,
    api_key=SETTINGS.kavita_api_key,
    plugin_name=SETTINGS.kavita_plugin_name,
    timeout_seconds=SETTINGS.http_timeout_seconds,
)
vault_client = VaultClient(
    base_url=SETTINGS.vault_url,
    service_name=SETTINGS.service_name,
    timeout_seconds=SETTINGS.http_timeout_seconds,
    health_timeout_seconds=SETTINGS.vault_health_timeout_seconds,
    health_poll_seconds=SETTINGS.vault_health_poll_seconds,
)
notified_store = NotifiedSetStore(vault=vault_client)

# =========================
# LIBRARY NOTIFICATIONS
# =========================
notifier = LibraryNotifier(
    detector=ChangeDetector(client=kavita_client, lookback_hours=SETTINGS.lookback_hours),
    dispatcher=NotificationDispatcher(
        bot=bot,
        channel_id=SETTINGS.notification_channel_id,
        store=notified_store,
        templates=NOTIFY_TEMPLATES,
    ),
    store=notified_store,
    interval_hours=SETTINGS.check_interval_hours,
    initial_delay_seconds=SETTINGS.initial_delay_seconds,
)

wire_bot_runtime(
    bot,
    notifier=notifier,
    notifier_enabled=SETTINGS.notifier_enabled,
    kavita_client=kavita_client,
    send_chunked=send_chunked,
    owner_user_ids=SETTINGS.owner_user_ids,
    command_channel_ids=SETTINGS.command_channel_ids,
    shutdown_hooks=(kavita_client.close, vault_client.close),
)


bot.run(DISCORD_TOKEN)
