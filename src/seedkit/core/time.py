from __future__ import annotations

"""
seedkit.core.time
=================

Clock abstractions used by lease-based lock stores:
- Clock Protocol for dependency injection.
- SystemClock: production default.
- ManualClock: deterministic time control for tests.
"""

import time
from datetime import UTC, datetime
from typing import Protocol

Millis = int
TimestampMs = int  # wall-clock epoch timestamp (ms)


class Clock(Protocol):
    """Minimal clock protocol."""

    def now_dt(self) -> datetime: ...
    def now_ms(self) -> TimestampMs: ...


class SystemClock:
    """Clock backed by system wall time."""

    def now_dt(self) -> datetime:
        return datetime.now(UTC)

    def now_ms(self) -> TimestampMs:
        return time.time_ns() // 1_000_000


class ManualClock(SystemClock):
    """Wall time starts at ``start_ms`` and moves only through ``advance``."""

    def __init__(self, start_ms: Millis = 0) -> None:
        self._wall: Millis = start_ms

    def now_dt(self) -> datetime:
        return datetime.fromtimestamp(self._wall / 1000.0, tz=UTC)

    def now_ms(self) -> TimestampMs:
        return self._wall

    def advance(self, ms: Millis) -> None:
        self._wall += max(0, int(ms))
