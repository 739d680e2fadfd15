"""morphoscan.core.time

Clock helpers: UTC timestamps, run IDs and elapsed-time formatting.

Run IDs come from the wall clock. Two runs launched within the same second
get the same ID; file naming downstream depends on exactly this derivation,
so the collision is kept unless explicitly asked otherwise.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return an aware UTC datetime."""

    return datetime.now(tz=UTC)


def clock_run_id(*, now: float | None = None) -> int:
    """Return a run ID derived from wall-clock seconds."""

    return int(time.time() if now is None else now)


@dataclass(slots=True)
class RunIdAllocator:
    """Hands out run IDs.

    With ``monotonic=False`` (the default) this is just the clock, collisions
    included. With ``monotonic=True`` a collision with the previous ID is
    bumped past it instead.
    """

    monotonic: bool = False
    clock: Callable[[], float] = time.time
    last: int | None = None

    def next_id(self) -> int:
        rid = clock_run_id(now=self.clock())
        if self.monotonic and self.last is not None and rid <= self.last:
            rid = self.last + 1
        self.last = rid
        return rid


def format_elapsed(seconds: float) -> str:
    """Format a duration as ``HH:MM:SS``."""

    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    mins, secs = divmod(rest, 60)
    return f"{hours:02d}:{mins:02d}:{secs:02d}"
