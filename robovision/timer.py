"""High resolution time measurement."""

from __future__ import annotations

import time

_COUNT_NS = 100  # one count is 0.1 us
_COUNT_MASK = 0xFFFFFFFF

_start: float | None = None


def high_resolution_time() -> float:
    """Seconds elapsed since the first call of this function."""
    global _start
    now = time.perf_counter()
    if _start is None:
        _start = now
    return now - _start


def high_resolution_count() -> int:
    """Low 32 bits of the high resolution clock, in 0.1 us counts."""
    return (time.perf_counter_ns() // _COUNT_NS) & _COUNT_MASK