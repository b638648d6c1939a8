from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Engines read time only through this interface so reaction times can be
    simulated in tests.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


def elapsed_ms(start_s: float | None, end_s: float) -> float | None:
    """Milliseconds between two clock readings, or None without a start."""

    if start_s is None:
        return None
    return max(0.0, (float(end_s) - float(start_s)) * 1000.0)
