from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from kavita.client import CatalogItem
from notifications.render import PAGE_SIZE
from notifications.render import NotificationTemplates
from notifications.render import paginate
from notifications.render import render_page
from vault.notified_store import NotifiedSetStore


class DispatchError(RuntimeError):
    def __init__(self, page_number: int, message: str):
        super().__init__(message)
        self.page_number = int(page_number)
        self.message = str(message)


class NotificationDispatcher:
    """
    Sends detected items to the notification channel, one embed per page of ten.

    Pages go out sequentially. An item is marked notified only after its page was
    sent; a failed page leaves its items eligible for the next cycle. The full set
    is persisted once at the end if anything new was marked.
    """

    def __init__(
        self,
        *,
        bot,
        channel_id: int,
        store: NotifiedSetStore,
        templates: NotificationTemplates | None = None,
        render_func: Callable[..., Any] = render_page,
        now_func: Callable[[], datetime] | None = None,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self.bot = bot
        self.channel_id = int(channel_id or 0)
        self.store = store
        self.templates = templates or NotificationTemplates()
        self.render_func = render_func
        self._now = now_func or (lambda: datetime.now(timezone.utc))
        self.page_size = max(1, min(int(page_size or PAGE_SIZE), PAGE_SIZE))
        self.page_failures = 0

    async def _resolve_channel(self):
        if self.channel_id <= 0:
            raise DispatchError(0, "NOTIFICATION_CHANNEL_ID is not configured")
        channel = self.bot.get_channel(self.channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(self.channel_id)
            except Exception as e:
                raise DispatchError(0, f"could not fetch channel {self.channel_id}: {str(e)[:160]}") from e
        if channel is None or not hasattr(channel, "send"):
            raise DispatchError(0, f"channel {self.channel_id} is not a text channel")
        return channel

    async def _send_page(
        self,
        channel,
        page_items: list[CatalogItem],
        *,
        page_number: int,
        page_count: int,
        total: int,
    ) -> None:
        try:
            embed = self.render_func(
                page_items,
                page_number=page_number,
                page_count=page_count,
                total=total,
                templates=self.templates,
                now=self._now(),
            )
            await channel.send(embed=embed)
        except Exception as e:
            raise DispatchError(page_number, f"page {page_number}/{page_count} failed: {str(e)[:160]}") from e

    async def dispatch(self, items: list[CatalogItem], notified_ids: set[str]) -> list[CatalogItem]:
        if not items:
            return []

        pages = paginate(items, self.page_size)
        try:
            channel = await self._resolve_channel()
        except DispatchError as e:
            self.page_failures += len(pages)
            print(f"[Notifier] action=dispatch result=no_channel pages={len(pages)} error={e.message}")
            return []

        announced: list[CatalogItem] = []
        newly_marked = 0
        for page_number, page_items in enumerate(pages, start=1):
            try:
                await self._send_page(
                    channel,
                    page_items,
                    page_number=page_number,
                    page_count=len(pages),
                    total=len(items),
                )
            except DispatchError as e:
                self.page_failures += 1
                print(
                    f"[Notifier] action=send_page page={e.page_number}/{len(pages)} "
                    f"result=error items={len(page_items)} retry=next_cycle error={e.message}"
                )
                continue

            for item in page_items:
                if item.id not in notified_ids:
                    notified_ids.add(item.id)
                    newly_marked += 1
                announced.append(item)

        if newly_marked:
            # failures are logged by the store; in-memory marks stand either way
            await self.store.save(notified_ids)
        return announced
