"""
oracle.py - Trigger oracles for claim eligibility

Provides reference TriggerOracle implementations:
- MockWeatherOracle: single settable value, new round on every update
- TimeSeriesOracle: historical readings, serves the latest one at or before now

and is_triggered(), the eligibility predicate used by the fund.
"""

from bisect import bisect_right
from datetime import datetime
from typing import List, Optional, Tuple

from .clock import SystemClock
from .core import Clock, OracleReading


def is_triggered(reading: Optional[OracleReading], threshold: int) -> bool:
    """Claims pay iff a reading exists and its value is strictly below threshold."""
    return reading is not None and reading.value < threshold


class MockWeatherOracle:
    """
    Oracle with a single current value, set by hand.

    Every set_value() call publishes a new round stamped with the clock's time.
    """

    def __init__(self, value: int, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._round_id = 1
        self._value = int(value)
        self._timestamp = self.clock.now()

    def set_value(self, value: int) -> OracleReading:
        """Publish a new reading."""
        self._round_id += 1
        self._value = int(value)
        self._timestamp = self.clock.now()
        return self.latest_reading()

    def latest_reading(self) -> OracleReading:
        return OracleReading(self._round_id, self._value, self._timestamp)

    def __repr__(self):
        return f"MockWeatherOracle(round={self._round_id}, value={self._value})"


class TimeSeriesOracle:
    """
    Oracle backed by a history of readings.

    Uses the most recent reading at or before the clock's current time, so
    the same history replays deterministically under a virtual clock.
    Round ids are 1-based positions in the sorted history.

    Examples:
        oracle = TimeSeriesOracle(clock=clock)
        oracle.add_reading(datetime(2025, 3, 1), 14)

        oracle = TimeSeriesOracle([(t0, 12), (t1, 8), (t2, 15)], clock=clock)
    """

    def __init__(
        self,
        readings: Optional[List[Tuple[datetime, int]]] = None,
        clock: Optional[Clock] = None,
    ):
        self.clock = clock or SystemClock()
        self.history: List[Tuple[datetime, int]] = sorted(readings or [], key=lambda x: x[0])

    def add_reading(self, timestamp: datetime, value: int) -> None:
        """Record an observation; the history stays sorted by timestamp."""
        self.history.append((timestamp, int(value)))
        self.history.sort(key=lambda x: x[0])

    def reading_at(self, timestamp: datetime) -> Optional[OracleReading]:
        """
        Get the reading in force at timestamp.

        Returns None if no reading was published at or before timestamp.
        """
        # Binary search: rightmost entry with ts <= timestamp
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            return None
        ts, value = self.history[idx - 1]
        return OracleReading(idx, value, ts)

    def latest_reading(self) -> Optional[OracleReading]:
        return self.reading_at(self.clock.now())

    def __repr__(self):
        return f"TimeSeriesOracle({len(self.history)} readings)"
