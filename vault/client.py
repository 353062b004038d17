from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Awaitable, Callable

import aiohttp

from config.defaults import NOTIFICATION_SOURCE
from vault.credentials import AuthError
from vault.credentials import CredentialProvider

OFFLINE_MARKERS = {"offline", "down", "error", "false"}


class StoreUnavailable(RuntimeError):
    def __init__(self, action: str, message: str):
        super().__init__(message)
        self.action = str(action)
        self.message = str(message)


def health_payload_ok(payload: Any) -> bool:
    """
    Health bodies are either empty/opaque or a mapping of sub-dependency -> status.
    Any sub-dependency reporting offline makes the whole service unhealthy.
    """
    if not isinstance(payload, dict):
        return True
    statuses = payload.get("services") if isinstance(payload.get("services"), dict) else payload
    for key, value in statuses.items():
        if key in {"timestamp", "uptime", "version"}:
            continue
        if isinstance(value, dict):
            value = value.get("status", value.get("online"))
        if isinstance(value, bool):
            if not value:
                return False
            continue
        if str(value).strip().lower() in OFFLINE_MARKERS:
            return False
    return True


class VaultClient:
    def __init__(
        self,
        *,
        base_url: str,
        service_name: str = "noona-portal",
        credentials: CredentialProvider | None = None,
        timeout_seconds: float = 15.0,
        health_timeout_seconds: float = 10.0,
        health_poll_seconds: float = 0.5,
        session: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        monotonic: Callable[[], float] | None = None,
    ) -> None:
        self.base_url = str(base_url or "").strip().rstrip("/")
        self.service_name = str(service_name or "noona-portal").strip() or "noona-portal"
        self.credentials = credentials or CredentialProvider(name="vault", authenticate=self.fetch_token)
        self.timeout_seconds = max(1.0, float(timeout_seconds or 15.0))
        self.health_timeout_seconds = max(0.0, float(health_timeout_seconds))
        self.health_poll_seconds = max(0.01, float(health_poll_seconds))
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep or asyncio.sleep
        self._monotonic = monotonic or time.monotonic

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_seconds))
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _fetch_raw(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        timeout_seconds: float | None = None,
    ) -> tuple[int, bytes]:
        session = await self._get_session()
        merged = {"Content-Type": "application/json", "fromTo": f"{self.service_name}::noona-vault"}
        if headers:
            merged.update(headers)
        extra: dict[str, Any] = {}
        if timeout_seconds is not None:
            extra["timeout"] = aiohttp.ClientTimeout(total=timeout_seconds)
        async with session.request(method, f"{self.base_url}{path}", headers=merged, json=json_body, **extra) as response:
            return (int(response.status), await response.read())

    async def _send(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        timeout_seconds: float | None = None,
    ) -> tuple[int, Any]:
        status, raw = await self._fetch_raw(
            method, path, headers=headers, json_body=json_body, timeout_seconds=timeout_seconds
        )
        if not (200 <= status < 300):
            return (status, None)
        body = raw.decode("utf-8")
        if not body.strip():
            return (status, None)
        try:
            return (status, json.loads(body))
        except ValueError:
            return (status, body)

    async def _send_checked(self, action: str, method: str, path: str, **kwargs) -> tuple[int, Any]:
        try:
            return await self._send(method, path, **kwargs)
        except asyncio.TimeoutError as e:
            raise StoreUnavailable(action, f"{method} {path} timed out") from e
        except aiohttp.ClientError as e:
            raise StoreUnavailable(action, f"{method} {path} failed: {str(e)[:160]}") from e
        except UnicodeDecodeError as e:
            raise StoreUnavailable(action, f"{method} {path} returned an undecodable body") from e

    async def check_health(self, *, timeout_seconds: float | None = None) -> bool:
        try:
            status, payload = await self._send("GET", "/v1/system/health", timeout_seconds=timeout_seconds)
        except (asyncio.TimeoutError, aiohttp.ClientError, UnicodeDecodeError):
            return False
        return 200 <= status < 300 and health_payload_ok(payload)

    async def wait_until_ready(self) -> bool:
        deadline = self._monotonic() + self.health_timeout_seconds
        while True:
            # a single health check never outlives the overall deadline
            remaining = max(0.01, deadline - self._monotonic())
            try:
                healthy = await asyncio.wait_for(self.check_health(timeout_seconds=remaining), timeout=remaining)
            except asyncio.TimeoutError:
                healthy = False
            if healthy:
                return True
            if self._monotonic() >= deadline:
                print(
                    f"[Vault] action=health result=timeout url={self.base_url} "
                    f"waited_s={self.health_timeout_seconds:g}"
                )
                return False
            await self._sleep(min(self.health_poll_seconds, max(0.0, deadline - self._monotonic())))

    async def fetch_token(self) -> str:
        action = "get_token"
        try:
            status, payload = await self._send("GET", f"/v1/system/getToken/{self.service_name}")
        except (asyncio.TimeoutError, aiohttp.ClientError, UnicodeDecodeError) as e:
            raise AuthError("vault", f"token request failed: {str(e)[:160]}") from e
        if not (200 <= status < 300):
            raise AuthError("vault", f"{action} rejected (status={status})")
        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            raise AuthError("vault", "token response carried no token")
        return str(token)

    async def _authorized(self, action: str, method: str, path: str, *, json_body: Any = None) -> Any:
        try:
            credential = await self.credentials.get_token()
        except AuthError as e:
            raise StoreUnavailable(action, f"no secrets-service token: {e.message}") from e

        status, payload = await self._send_checked(
            action, method, path, headers=credential.bearer_header(), json_body=json_body
        )
        if status == 401:
            print(f"[Vault] action={action} result=unauthorized retry=1")
            self.credentials.invalidate()
            try:
                credential = await self.credentials.get_token()
            except AuthError as e:
                raise StoreUnavailable(action, f"re-authentication failed: {e.message}") from e
            status, payload = await self._send_checked(
                action, method, path, headers=credential.bearer_header(), json_body=json_body
            )
        if not (200 <= status < 300):
            raise StoreUnavailable(action, f"{method} {path} returned status={status}")
        return payload

    async def get_notified_ids(self, source: str = NOTIFICATION_SOURCE) -> list[str]:
        payload = await self._authorized("load", "GET", f"/v1/notifications/{source}")
        if payload is None:
            return []
        if not isinstance(payload, dict):
            raise StoreUnavailable("load", "notification list response was not an object")
        ids = payload.get("notifiedIds")
        if ids is None:
            return []
        if not isinstance(ids, list):
            raise StoreUnavailable("load", "notifiedIds was not a list")
        return [str(x) for x in ids if x is not None and str(x).strip()]

    async def save_notified_ids(self, ids: list[str], source: str = NOTIFICATION_SOURCE) -> bool:
        payload = await self._authorized(
            "save",
            "POST",
            f"/v1/notifications/{source}",
            json_body={"ids": sorted(str(x) for x in ids)},
        )
        if isinstance(payload, dict) and payload.get("success") is False:
            raise StoreUnavailable("save", "secrets service reported success=false")
        return True
