"""Time source used by the prober and the lifecycle driver."""
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Monotonic time, blocking sleep and wall-clock timestamps."""

    def monotonic(self) -> float:
        ...

    def sleep(self, seconds: float) -> None:
        ...

    def now(self) -> datetime:
        ...


class SystemClock:
    """Clock backed by the time module."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
