from __future__ import annotations

DEFAULT_VAULT_URL = "http://localhost:3120"
DEFAULT_SERVICE_NAME = "noona-portal"
DEFAULT_KAVITA_PLUGIN_NAME = "NoonaPortal"

DEFAULT_LOOKBACK_HOURS = 168
DEFAULT_INITIAL_DELAY_SECONDS = 10.0
DEFAULT_VAULT_HEALTH_TIMEOUT_SECONDS = 10.0
DEFAULT_VAULT_HEALTH_POLL_SECONDS = 0.5
DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0

NOTIFICATION_PAGE_SIZE = 10
NOTIFICATION_SOURCE = "kavita"
