from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable


@dataclass(frozen=True)
class RuntimeBootDeps:
    notifier: Any
    notifier_enabled: bool
    shutdown_hooks: tuple[Callable[[], Awaitable[Any]], ...] = ()
