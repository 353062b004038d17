from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable


async def run_after_delay(
    *,
    fire: Callable[[], Any],
    delay_seconds: float,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> None:
    await sleep(max(0.0, float(delay_seconds)))
    try:
        fire()
    except Exception as e:
        print(f"[Notifier] timer=initial error={e}")


async def run_every(
    *,
    fire: Callable[[], Any],
    interval_seconds: float,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> None:
    while True:
        await sleep(max(1.0, float(interval_seconds)))
        try:
            fire()
        except Exception as e:
            print(f"[Notifier] timer=interval error={e}")
