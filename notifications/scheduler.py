from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from config.defaults import DEFAULT_INITIAL_DELAY_SECONDS
from config.settings import require_positive_interval
from jobs.library_notifications import run_after_delay
from jobs.library_notifications import run_every
from kavita.client import CatalogItem
from notifications.detector import ChangeDetector
from notifications.dispatcher import NotificationDispatcher
from vault.notified_store import NotifiedSetStore

STATE_IDLE = "idle"
STATE_RUNNING = "running"
STATE_STOPPED = "stopped"

CYCLE_LABELS = {"initial", "scheduled", "manual"}


class LibraryNotifier:
    """
    Owns the notified set and the timers that drive detect-then-dispatch cycles.

    idle -> running: validate the interval, load the notified set, arm an initial
    one-shot timer and a repeating interval timer.
    running -> stopped: cancel both timers; a cycle already in flight finishes.
    stopped -> running: wait for any cycle still in flight, then merge the store's
    set into the in-memory one and re-arm both timers.

    At most one cycle runs at a time. A trigger that arrives while a cycle is in
    flight is dropped, not queued.
    """

    def __init__(
        self,
        *,
        detector: ChangeDetector,
        dispatcher: NotificationDispatcher,
        store: NotifiedSetStore,
        interval_hours: int | None,
        initial_delay_seconds: float = DEFAULT_INITIAL_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.detector = detector
        self.dispatcher = dispatcher
        self.store = store
        self.interval_hours = interval_hours
        self.initial_delay_seconds = max(0.0, float(initial_delay_seconds))
        self._sleep = sleep

        self.state = STATE_IDLE
        self.notified_ids: set[str] = set()
        self._busy = False
        self._starting = False
        self._initial_task: asyncio.Task | None = None
        self._interval_task: asyncio.Task | None = None
        self._cycle_task: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()

        self.cycles_started = 0
        self.cycles_skipped_busy = 0
        self.items_detected = 0
        self.items_announced = 0
        self.last_cycle_label: str | None = None
        self.last_cycle_result: str | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    async def start(self) -> bool:
        if self.state == STATE_RUNNING or self._starting:
            print(f"[Notifier] action=start result=ignored state={self.state}")
            return False
        # fail fast before touching the store or arming timers
        hours = require_positive_interval(self.interval_hours)
        interval_seconds = float(hours) * 3600.0

        self._starting = True
        try:
            # a cycle left over from before stop() must save before the set is reloaded
            await self.wait_for_cycle()
            # merged into the same set object, so a cycle still holding it never diverges
            self.notified_ids.update(await self.store.load())
        finally:
            self._starting = False

        self.state = STATE_RUNNING
        self._initial_task = asyncio.create_task(
            run_after_delay(
                fire=lambda: self._spawn_cycle("initial"),
                delay_seconds=self.initial_delay_seconds,
                sleep=self._sleep,
            )
        )
        self._interval_task = asyncio.create_task(
            run_every(
                fire=lambda: self._spawn_cycle("scheduled"),
                interval_seconds=interval_seconds,
                sleep=self._sleep,
            )
        )
        print(
            f"[Notifier] action=start result=ok interval_h={hours} "
            f"initial_delay_s={self.initial_delay_seconds:g} known_ids={len(self.notified_ids)}"
        )
        return True

    def stop(self) -> None:
        for task in (self._initial_task, self._interval_task):
            if task is not None and not task.done():
                task.cancel()
        self._initial_task = None
        self._interval_task = None
        if self.state == STATE_RUNNING:
            print(f"[Notifier] action=stop in_flight={self._busy}")
        self.state = STATE_STOPPED

    async def wait_for_cycle(self) -> None:
        task = self._cycle_task
        if task is not None and not task.done():
            await task
        await self._idle.wait()

    def _spawn_cycle(self, label: str) -> None:
        if self.state != STATE_RUNNING:
            return
        if self._busy:
            self.cycles_skipped_busy += 1
            print(f"[Notifier] cycle={label} result=skipped reason=busy")
            return
        # detached from the timer task so stop() never cancels a cycle midway
        self._cycle_task = asyncio.create_task(self.run_cycle(label))

    async def check_now(self) -> list[CatalogItem] | None:
        if self.state != STATE_RUNNING:
            print(f"[Notifier] cycle=manual result=skipped reason=not_running state={self.state}")
            return None
        return await self.run_cycle("manual")

    async def run_cycle(self, label: str) -> list[CatalogItem] | None:
        label = label if label in CYCLE_LABELS else "manual"
        if self._busy:
            self.cycles_skipped_busy += 1
            print(f"[Notifier] cycle={label} result=skipped reason=busy")
            return None

        self._busy = True
        self._idle.clear()
        self.cycles_started += 1
        self.last_cycle_label = label
        notified_ids = self.notified_ids
        try:
            detected = await self.detector.detect(notified_ids)
            self.items_detected += len(detected)
            if not detected:
                self.last_cycle_result = "empty"
                print(f"[Notifier] cycle={label} result=empty known_ids={len(notified_ids)}")
                return []

            announced = await self.dispatcher.dispatch(detected, notified_ids)
            self.items_announced += len(announced)
            self.last_cycle_result = "ok" if len(announced) == len(detected) else "partial"
            print(
                f"[Notifier] cycle={label} result={self.last_cycle_result} detected={len(detected)} "
                f"announced={len(announced)} known_ids={len(notified_ids)}"
            )
            return announced
        except Exception as e:
            self.last_cycle_result = "crashed"
            print(f"[Notifier] cycle={label} result=crashed error={str(e)[:200]}")
            return []
        finally:
            self._busy = False
            self._idle.set()

    def status_text(self) -> str:
        lines = [
            f"state={self.state} busy={self._busy} interval_h={self.interval_hours}",
            f"known_ids={len(self.notified_ids)}",
            f"cycles_started={self.cycles_started} cycles_skipped_busy={self.cycles_skipped_busy}",
            f"items_detected={self.items_detected} items_announced={self.items_announced}",
            f"collection_failures={self.detector.collection_failures} page_failures={self.dispatcher.page_failures}",
            f"store_load_failures={self.store.load_failures} store_save_failures={self.store.save_failures}",
            f"last_cycle={self.last_cycle_label or '-'} last_result={self.last_cycle_result or '-'}",
        ]
        return "\n".join(lines)
