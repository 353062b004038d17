from __future__ import annotations

"""Builds Discord <t:...> timestamp tags so dates render in each reader's own locale and timezone."""

from datetime import datetime
from datetime import timezone

DISCORD_TIMESTAMP_STYLES = {"t", "T", "d", "D", "f", "F", "R"}


def _validate_style(style: str) -> str:
    clean = str(style or "").strip() or "f"
    if clean not in DISCORD_TIMESTAMP_STYLES:
        raise ValueError(f"Invalid Discord timestamp style: {clean}")
    return clean


def _require_aware_datetime(value: datetime, *, arg_name: str) -> datetime:
    if not isinstance(value, datetime):
        raise ValueError(f"{arg_name} must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{arg_name} must be timezone-aware")
    return value


def format_discord_timestamp(dt: datetime, style: str = "f") -> str:
    aware = _require_aware_datetime(dt, arg_name="dt")
    style_clean = _validate_style(style)
    return f"<t:{int(aware.timestamp())}:{style_clean}>"


def added_date_tag(dt: datetime, style: str = "D") -> str:
    """Catalog dates without an offset are UTC."""
    if isinstance(dt, datetime) and (dt.tzinfo is None or dt.utcoffset() is None):
        dt = dt.replace(tzinfo=timezone.utc)
    return format_discord_timestamp(dt, style=style)

