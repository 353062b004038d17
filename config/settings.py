from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Mapping

from config.defaults import DEFAULT_HTTP_TIMEOUT_SECONDS
from config.defaults import DEFAULT_INITIAL_DELAY_SECONDS
from config.defaults import DEFAULT_KAVITA_PLUGIN_NAME
from config.defaults import DEFAULT_LOOKBACK_HOURS
from config.defaults import DEFAULT_SERVICE_NAME
from config.defaults import DEFAULT_VAULT_HEALTH_POLL_SECONDS
from config.defaults import DEFAULT_VAULT_HEALTH_TIMEOUT_SECONDS
from config.defaults import DEFAULT_VAULT_URL


class ConfigError(RuntimeError):
    def __init__(self, key: str, message: str):
        super().__init__(message)
        self.key = str(key)
        self.message = str(message)


@dataclass(frozen=True)
class NotifierSettings:
    kavita_url: str = ""
    kavita_api_key: str = ""
    kavita_plugin_name: str = DEFAULT_KAVITA_PLUGIN_NAME
    vault_url: str = DEFAULT_VAULT_URL
    service_name: str = DEFAULT_SERVICE_NAME
    notification_channel_id: int = 0
    # None when unset or unparseable; the scheduler refuses to start on it
    check_interval_hours: int | None = None
    lookback_hours: int = DEFAULT_LOOKBACK_HOURS
    initial_delay_seconds: float = DEFAULT_INITIAL_DELAY_SECONDS
    vault_health_timeout_seconds: float = DEFAULT_VAULT_HEALTH_TIMEOUT_SECONDS
    vault_health_poll_seconds: float = DEFAULT_VAULT_HEALTH_POLL_SECONDS
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    templates_path: str = ""
    owner_user_ids: set[int] = field(default_factory=set)
    command_channel_ids: set[int] = field(default_factory=set)
    warnings: tuple[str, ...] = ()

    @property
    def notifier_enabled(self) -> bool:
        return self.notification_channel_id > 0


def parse_id_set(raw: str | None) -> set[int]:
    if not raw:
        return set()
    out: set[int] = set()
    for tok in re.split(r"[\s,;]+", raw.strip()):
        if not tok:
            continue
        if re.fullmatch(r"\d{8,22}", tok):
            out.add(int(tok))
    return out


def parse_int_or_none(raw: str | None) -> int | None:
    text = (raw or "").strip()
    if not re.fullmatch(r"[+-]?\d+", text):
        return None
    return int(text)


def _parse_float(raw: str | None, default: float, *, minimum: float, name: str, warnings: list[str]) -> float:
    text = (raw or "").strip()
    if not text:
        return default
    try:
        value = float(text)
    except ValueError:
        warnings.append(f"invalid {name}={text!r}; using {default:g}")
        return default
    if value < minimum:
        warnings.append(f"{name}={text!r} below {minimum:g}; using {default:g}")
        return default
    return value


def require_positive_interval(hours) -> int:
    if isinstance(hours, bool) or not isinstance(hours, int) or hours < 1:
        raise ConfigError("CHECK_INTERVAL_HOURS", f"CHECK_INTERVAL_HOURS must be a positive integer (got {hours!r})")
    return hours


def load_notifier_settings(env: Mapping[str, str] | None = None, *, templates_path_default: str = "") -> NotifierSettings:
    env = os.environ if env is None else env
    warnings: list[str] = []

    channel_raw = (env.get("NOTIFICATION_CHANNEL_ID") or "").strip()
    channel_id = parse_int_or_none(channel_raw) or 0
    if channel_raw and channel_id <= 0:
        warnings.append(f"invalid NOTIFICATION_CHANNEL_ID={channel_raw!r}; notifier disabled")
        channel_id = 0

    lookback_raw = (env.get("KAVITA_LOOKBACK_HOURS") or "").strip()
    lookback = parse_int_or_none(lookback_raw)
    if lookback is None or lookback < 1:
        if lookback_raw:
            warnings.append(f"invalid KAVITA_LOOKBACK_HOURS={lookback_raw!r}; using {DEFAULT_LOOKBACK_HOURS}")
        lookback = DEFAULT_LOOKBACK_HOURS

    return NotifierSettings(
        kavita_url=(env.get("KAVITA_URL") or "").strip().rstrip("/"),
        kavita_api_key=(env.get("KAVITA_API_KEY") or "").strip(),
        kavita_plugin_name=(env.get("KAVITA_PLUGIN_NAME") or "").strip() or DEFAULT_KAVITA_PLUGIN_NAME,
        vault_url=(env.get("VAULT_URL") or "").strip().rstrip("/") or DEFAULT_VAULT_URL,
        service_name=(env.get("SERVICE_NAME") or "").strip() or DEFAULT_SERVICE_NAME,
        notification_channel_id=channel_id,
        check_interval_hours=parse_int_or_none(env.get("CHECK_INTERVAL_HOURS")),
        lookback_hours=lookback,
        initial_delay_seconds=_parse_float(
            env.get("NOTIFY_INITIAL_DELAY_SECONDS"),
            DEFAULT_INITIAL_DELAY_SECONDS,
            minimum=0.0,
            name="NOTIFY_INITIAL_DELAY_SECONDS",
            warnings=warnings,
        ),
        vault_health_timeout_seconds=_parse_float(
            env.get("VAULT_HEALTH_TIMEOUT_SECONDS"),
            DEFAULT_VAULT_HEALTH_TIMEOUT_SECONDS,
            minimum=0.0,
            name="VAULT_HEALTH_TIMEOUT_SECONDS",
            warnings=warnings,
        ),
        vault_health_poll_seconds=_parse_float(
            env.get("VAULT_HEALTH_POLL_SECONDS"),
            DEFAULT_VAULT_HEALTH_POLL_SECONDS,
            minimum=0.01,
            name="VAULT_HEALTH_POLL_SECONDS",
            warnings=warnings,
        ),
        http_timeout_seconds=_parse_float(
            env.get("HTTP_TIMEOUT_SECONDS"),
            DEFAULT_HTTP_TIMEOUT_SECONDS,
            minimum=1.0,
            name="HTTP_TIMEOUT_SECONDS",
            warnings=warnings,
        ),
        templates_path=(env.get("NOTIFY_TEMPLATES_PATH") or "").strip() or templates_path_default,
        owner_user_ids=parse_id_set(env.get("NOTIFY_OWNER_USER_IDS")),
        command_channel_ids=parse_id_set(env.get("NOTIFY_COMMAND_CHANNEL_IDS")),
        warnings=tuple(warnings),
    )
