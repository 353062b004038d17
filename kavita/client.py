from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import aiohttp

from vault.credentials import AuthError
from vault.credentials import CredentialProvider

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


class UpstreamError(RuntimeError):
    def __init__(self, action: str, message: str, *, status: int | None = None):
        super().__init__(message)
        self.action = str(action)
        self.message = str(message)
        self.status = status


@dataclass(frozen=True, slots=True)
class Library:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class CatalogItem:
    id: str
    name: str
    collection_id: str
    collection_name: str
    created_at: datetime


def parse_created_at(raw: Any) -> datetime | None:
    text = str(raw or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # .NET emits 7 fractional digits
    text = _FRACTION_RE.sub(r"\1", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None or parsed.utcoffset() is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class KavitaClient:
    """
    Authenticated access to the Kavita catalog.

    Every catalog call carries the cached bearer token. A 401 triggers exactly one
    invalidate + re-authenticate + retry; a second 401 or any other failure is
    raised as UpstreamError. AuthError from the credential provider propagates.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        plugin_name: str = "NoonaPortal",
        credentials: CredentialProvider | None = None,
        timeout_seconds: float = 15.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = str(base_url or "").strip().rstrip("/")
        self.api_key = str(api_key or "").strip()
        self.plugin_name = str(plugin_name or "NoonaPortal").strip() or "NoonaPortal"
        self.timeout_seconds = max(1.0, float(timeout_seconds or 15.0))
        self.credentials = credentials or CredentialProvider(name="kavita", authenticate=self.authenticate)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"Accept": "application/json"},
            )
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
        params: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> tuple[int, bytes]:
        session = await self._get_session()
        async with session.request(
            method,
            f"{self.base_url}{path}",
            headers=headers,
            params=params,
            json=json_body,
        ) as response:
            return (int(response.status), await response.read())

    async def _send(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> tuple[int, Any]:
        status, raw = await self._fetch_raw(method, path, headers=headers, params=params, json_body=json_body)
        if not (200 <= status < 300):
            return (status, None)
        # UnicodeDecodeError here is a malformed body; callers map it to their error type
        body = raw.decode("utf-8")
        if not body.strip():
            return (status, None)
        try:
            return (status, json.loads(body))
        except ValueError:
            # some endpoints answer with a bare string
            return (status, body)

    async def _send_checked(self, action: str, method: str, path: str, **kwargs) -> tuple[int, Any]:
        try:
            return await self._send(method, path, **kwargs)
        except asyncio.TimeoutError as e:
            raise UpstreamError(action, f"{method} {path} timed out") from e
        except aiohttp.ClientError as e:
            raise UpstreamError(action, f"{method} {path} failed: {str(e)[:160]}") from e
        except UnicodeDecodeError as e:
            raise UpstreamError(action, f"{method} {path} returned an undecodable body") from e

    async def authenticate(self) -> str:
        if not self.base_url or not self.api_key:
            raise AuthError("kavita", "KAVITA_URL or KAVITA_API_KEY is not configured")
        try:
            status, payload = await self._send(
                "POST",
                "/api/Plugin/authenticate",
                params={"apiKey": self.api_key, "pluginName": self.plugin_name},
            )
        except (asyncio.TimeoutError, aiohttp.ClientError, UnicodeDecodeError) as e:
            raise AuthError("kavita", f"authentication request failed: {str(e)[:160]}") from e
        if not (200 <= status < 300):
            raise AuthError("kavita", f"authentication rejected (status={status})")
        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            raise AuthError("kavita", "authentication response carried no token")
        return str(token)

    async def _request(
        self,
        action: str,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> Any:
        credential = await self.credentials.get_token()
        status, payload = await self._send_checked(
            action,
            method,
            path,
            headers=credential.bearer_header(),
            params=params,
            json_body=json_body,
        )
        if status == 401:
            print(f"[Kavita] action={action} result=unauthorized retry=1")
            self.credentials.invalidate()
            credential = await self.credentials.get_token()
            status, payload = await self._send_checked(
                action,
                method,
                path,
                headers=credential.bearer_header(),
                params=params,
                json_body=json_body,
            )
            if status == 401:
                raise UpstreamError(action, f"{method} {path} still unauthorized after re-authentication", status=401)
        if not (200 <= status < 300):
            raise UpstreamError(action, f"{method} {path} returned status={status}", status=status)
        return payload

    async def list_collections(self) -> list[Library]:
        payload = await self._request("list_collections", "GET", "/api/Library/libraries")
        if not isinstance(payload, list):
            raise UpstreamError("list_collections", "library list response was not a list")
        out: list[Library] = []
        for row in payload:
            if not isinstance(row, dict) or row.get("id") is None:
                continue
            library_id = str(row["id"])
            out.append(Library(id=library_id, name=str(row.get("name") or f"Library {library_id}")))
        return out

    async def list_items_in_collection(self, collection_id: str, *, collection_name: str = "") -> list[CatalogItem]:
        collection_key = str(collection_id)
        try:
            library_number: int | str = int(collection_key)
        except ValueError:
            library_number = collection_key
        payload = await self._request(
            "list_items",
            "POST",
            "/api/Series/all-v2",
            json_body={"libraryId": library_number},
        )
        if not isinstance(payload, list):
            raise UpstreamError("list_items", f"series response for library {collection_key} was not a list")

        items: list[CatalogItem] = []
        for row in payload:
            if not isinstance(row, dict) or row.get("id") is None:
                continue
            if row.get("libraryId") is not None and str(row.get("libraryId")) != collection_key:
                continue
            created_at = parse_created_at(row.get("created"))
            if created_at is None:
                print(
                    f"[Kavita] action=list_items library={collection_key} "
                    f"item={row.get('id')} result=skipped reason=bad_created_date"
                )
                continue
            items.append(
                CatalogItem(
                    id=str(row["id"]),
                    name=str(row.get("name") or "Untitled"),
                    collection_id=collection_key,
                    collection_name=str(collection_name or row.get("libraryName") or ""),
                    created_at=created_at,
                )
            )
        return items

    async def scan_library(self, library_id: str, *, force: bool = False) -> bool:
        await self._request(
            "scan_library",
            "POST",
            "/api/Library/scan",
            params={"libraryId": str(library_id), "force": "true" if force else "false"},
        )
        return True

    async def search_series(self, term: str, *, limit: int = 10) -> list[str]:
        query = str(term or "").strip()
        if not query:
            return []
        payload = await self._request("search", "GET", "/api/Search/search", params={"queryString": query})
        rows = payload.get("series") if isinstance(payload, dict) else payload
        if not isinstance(rows, list):
            return []
        names: list[str] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            name = str(row.get("name") or row.get("localizedName") or "").strip()
            if name:
                names.append(name)
            if len(names) >= max(1, int(limit)):
                break
        return names
