from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import discord
import yaml

from config.defaults import NOTIFICATION_PAGE_SIZE
from kavita.client import CatalogItem
from misc.discord_timestamps import DISCORD_TIMESTAMP_STYLES
from misc.discord_timestamps import added_date_tag

PAGE_SIZE = NOTIFICATION_PAGE_SIZE
EMBED_FIELD_NAME_MAX = 256
EMBED_FIELD_VALUE_MAX = 1024
EMBED_TITLE_MAX = 256


@dataclass(slots=True)
class NotificationTemplates:
    version: str = "notification_templates_v1"
    title: str = "📚 New Series Added ({page}/{pages})"
    description: str = "{total} new series have been added to the library!"
    color: int = 0x0099FF
    field_value: str = "**Library:** {library}\n**Added:** {added}"
    date_style: str = "D"


def default_templates_path() -> str:
    return str(Path(__file__).resolve().parents[1] / "config" / "notification_templates.yml")


def _parse_color(value: Any, fallback: int) -> int:
    if isinstance(value, int) and 0 <= value <= 0xFFFFFF:
        return value
    text = str(value or "").strip().lstrip("#")
    if not text:
        return fallback
    try:
        parsed = int(text, 16)
    except ValueError:
        return fallback
    return parsed if 0 <= parsed <= 0xFFFFFF else fallback


def _as_template(value: Any, fallback: str) -> str:
    text = str(value or "").strip()
    return text or fallback


def load_notification_templates(path: str | Path | None) -> tuple[NotificationTemplates, str | None]:
    """
    Returns (templates, warning_message). warning_message is None on clean load.
    """
    defaults = NotificationTemplates()
    if not path:
        return (defaults, "Notification templates path missing; using built-in defaults.")

    p = Path(path)
    if not p.exists():
        return (defaults, f"Notification templates file not found at {p}; using built-in defaults.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except Exception as exc:
        return (defaults, f"Failed to read notification templates from {p}: {exc}; using built-in defaults.")

    if not isinstance(payload, dict):
        return (defaults, f"Invalid notification templates format in {p}; using built-in defaults.")

    date_style = str(payload.get("date_style") or defaults.date_style).strip()
    if date_style not in DISCORD_TIMESTAMP_STYLES:
        date_style = defaults.date_style

    templates = NotificationTemplates(
        version=str(payload.get("version") or defaults.version),
        title=_as_template(payload.get("title"), defaults.title),
        description=_as_template(payload.get("description"), defaults.description),
        color=_parse_color(payload.get("color"), defaults.color),
        field_value=_as_template(payload.get("field_value"), defaults.field_value),
        date_style=date_style,
    )
    return (templates, None)


def paginate(items: list[CatalogItem], page_size: int = PAGE_SIZE) -> list[list[CatalogItem]]:
    size = max(1, int(page_size))
    return [items[i : i + size] for i in range(0, len(items), size)]


def _clip(text: str, limit: int) -> str:
    text = str(text or "")
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _safe_format(template: str, fallback: str, **values: Any) -> str:
    try:
        return template.format(**values)
    except (KeyError, IndexError, ValueError):
        return fallback.format(**values)


def render_page(
    page_items: list[CatalogItem],
    *,
    page_number: int,
    page_count: int,
    total: int,
    templates: NotificationTemplates | None = None,
    now: datetime | None = None,
) -> discord.Embed:
    t = templates or NotificationTemplates()
    defaults = NotificationTemplates()
    counts = {"page": int(page_number), "pages": int(page_count), "total": int(total)}
    embed = discord.Embed(
        title=_clip(_safe_format(t.title, defaults.title, **counts), EMBED_TITLE_MAX),
        description=_safe_format(t.description, defaults.description, **counts),
        color=discord.Color(t.color),
        timestamp=now or datetime.now(timezone.utc),
    )
    for item in page_items[:PAGE_SIZE]:
        value = _safe_format(
            t.field_value,
            defaults.field_value,
            library=item.collection_name or "Unknown library",
            added=added_date_tag(item.created_at, style=t.date_style),
            name=item.name,
        )
        embed.add_field(
            name=_clip(item.name or "Untitled", EMBED_FIELD_NAME_MAX),
            value=_clip(value, EMBED_FIELD_VALUE_MAX),
            inline=False,
        )
    return embed
