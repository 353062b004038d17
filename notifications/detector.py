from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable

from config.defaults import DEFAULT_LOOKBACK_HOURS
from kavita.client import CatalogItem
from kavita.client import KavitaClient
from kavita.client import UpstreamError
from vault.credentials import AuthError


class ChangeDetector:
    def __init__(
        self,
        *,
        client: KavitaClient,
        lookback_hours: int = DEFAULT_LOOKBACK_HOURS,
        now_func: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.lookback = timedelta(hours=max(1, int(lookback_hours or DEFAULT_LOOKBACK_HOURS)))
        self._now = now_func or (lambda: datetime.now(timezone.utc))
        self.collection_failures = 0

    def is_new(self, item: CatalogItem, *, cutoff: datetime, notified_ids: set[str]) -> bool:
        # cutoff is inclusive
        return item.created_at >= cutoff and item.id not in notified_ids

    async def detect(self, notified_ids: set[str]) -> list[CatalogItem]:
        cutoff = self._now() - self.lookback
        try:
            libraries = await self.client.list_collections()
        except (AuthError, UpstreamError) as e:
            self.collection_failures += 1
            print(f"[Kavita] action=list_collections result=error error={str(e)[:160]}")
            return []

        if not libraries:
            print("[Kavita] action=list_collections result=empty")
            return []

        fresh: list[CatalogItem] = []
        for library in libraries:
            try:
                items = await self.client.list_items_in_collection(library.id, collection_name=library.name)
            except (AuthError, UpstreamError) as e:
                self.collection_failures += 1
                print(
                    f"[Kavita] action=list_items library={library.id} name={library.name!r} "
                    f"result=skipped error={str(e)[:160]}"
                )
                continue
            kept = [
                item if item.collection_name else replace(item, collection_name=library.name)
                for item in items
                if self.is_new(item, cutoff=cutoff, notified_ids=notified_ids)
            ]
            if kept:
                print(f"[Kavita] action=list_items library={library.id} result=ok seen={len(items)} new={len(kept)}")
            fresh.extend(kept)

        fresh.sort(key=lambda item: item.created_at, reverse=True)
        return fresh
