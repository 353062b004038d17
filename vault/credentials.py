from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable


class AuthError(RuntimeError):
    def __init__(self, source: str, message: str):
        super().__init__(message)
        self.source = str(source)
        self.message = str(message)


@dataclass(frozen=True, slots=True)
class Credential:
    token: str
    issued_at: datetime

    def bearer_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class CredentialProvider:
    """
    Caches one bearer token for the process lifetime.

    Expiry is never known up front; callers that get a 401 call invalidate()
    and then get_token() once more. No retry happens in here.
    """

    def __init__(
        self,
        *,
        name: str,
        authenticate: Callable[[], Awaitable[str | None]],
        now_func: Callable[[], datetime] | None = None,
    ) -> None:
        self.name = str(name or "service")
        self._authenticate = authenticate
        self._now = now_func or (lambda: datetime.now(timezone.utc))
        self._cached: Credential | None = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> Credential | None:
        return self._cached

    async def get_token(self) -> Credential:
        cached = self._cached
        if cached is not None:
            return cached

        async with self._lock:
            # another caller may have refreshed while we waited
            if self._cached is not None:
                return self._cached
            try:
                token = await self._authenticate()
            except AuthError:
                print(f"[Auth] source={self.name} action=authenticate result=error")
                raise
            except Exception as e:
                print(f"[Auth] source={self.name} action=authenticate result=error error={str(e)[:160]}")
                raise AuthError(self.name, f"authentication failed: {str(e)[:160]}") from e

            token = str(token or "").strip()
            if not token:
                print(f"[Auth] source={self.name} action=authenticate result=empty_token")
                raise AuthError(self.name, "authentication returned no token")

            self._cached = Credential(token=token, issued_at=self._now())
            print(f"[Auth] source={self.name} action=authenticate result=ok")
            return self._cached

    def invalidate(self) -> None:
        if self._cached is not None:
            print(f"[Auth] source={self.name} action=invalidate")
        self._cached = None
