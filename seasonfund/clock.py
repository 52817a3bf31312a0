"""
clock.py - Time sources for the season lifecycle

Classes:
- SystemClock: wall-clock anchored, advanced by a monotonic timer
- FixedClock: a clock that never moves (deterministic base for tests)
- OffsetClock: a base clock plus a forward-only virtual offset

The lifecycle never stores a phase; it recomputes it from whichever of
these clocks the fund was built with.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Optional
import time

from .core import Clock


class SystemClock:
    """
    Real clock that cannot run backwards.

    The wall-clock time is captured once at construction; every later reading
    adds the elapsed time.monotonic() delta, so NTP adjustments or DST changes
    never move a season back into an earlier phase.
    """

    def __init__(self):
        self._anchor = datetime.now()
        self._started = time.monotonic()

    def now(self) -> datetime:
        return self._anchor + timedelta(seconds=time.monotonic() - self._started)

    def __repr__(self):
        return f"SystemClock(anchor={self._anchor.isoformat()})"


class FixedClock:
    """Clock frozen at a single instant."""

    def __init__(self, instant: datetime):
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def __repr__(self):
        return f"FixedClock({self._instant.isoformat()})"


class OffsetClock:
    """
    Test-controlled virtual clock: base time plus an offset.

    The offset only grows. Disabling the clock makes it report the base time
    again without forgetting the accumulated offset.

    Example:
        clock = OffsetClock(FixedClock(datetime(2025, 1, 1)))
        clock.advance(timedelta(days=7))
        clock.now()   # datetime(2025, 1, 8)
    """

    def __init__(self, base: Optional[Clock] = None, offset: timedelta = timedelta(0),
                 enabled: bool = True):
        if offset < timedelta(0):
            raise ValueError(f"offset cannot be negative: {offset}")
        self.base = base or SystemClock()
        self._offset = offset
        self.enabled = enabled

    @property
    def offset(self) -> timedelta:
        return self._offset

    def now(self) -> datetime:
        if not self.enabled:
            return self.base.now()
        return self.base.now() + self._offset

    def advance(self, delta: timedelta) -> datetime:
        """
        Move virtual time forward by delta.

        Raises:
            ValueError: If delta is negative
        """
        if delta < timedelta(0):
            raise ValueError(f"Cannot move time backwards: {delta}")
        self._offset += delta
        return self.now()

    def advance_to(self, instant: datetime) -> datetime:
        """
        Move virtual time forward to instant.

        Raises:
            ValueError: If instant is before the current virtual time
        """
        current = self.now()
        if instant < current:
            raise ValueError(f"Cannot move time backwards: {instant} < {current}")
        return self.advance(instant - current)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    def __repr__(self):
        state = "on" if self.enabled else "off"
        return f"OffsetClock(base={self.base!r}, offset={self._offset}, {state})"
