"""
Tests for clock.py - Time sources

Tests:
- SystemClock never runs backwards
- FixedClock is frozen
- OffsetClock advances forward only and can be switched off
"""

import pytest
from datetime import datetime, timedelta

from seasonfund import SystemClock, FixedClock, OffsetClock, Clock


T0 = datetime(2025, 3, 1)


class TestSystemClock:

    def test_readings_are_non_decreasing(self):
        clock = SystemClock()
        readings = [clock.now() for _ in range(100)]
        assert readings == sorted(readings)

    def test_starts_near_wall_clock(self):
        clock = SystemClock()
        assert abs(clock.now() - datetime.now()) < timedelta(seconds=5)

    def test_satisfies_clock_protocol(self):
        assert isinstance(SystemClock(), Clock)


class TestFixedClock:

    def test_always_returns_instant(self):
        clock = FixedClock(T0)
        assert clock.now() == T0
        assert clock.now() == T0


class TestOffsetClock:

    def test_starts_at_base_time(self):
        clock = OffsetClock(FixedClock(T0))
        assert clock.now() == T0
        assert clock.offset == timedelta(0)

    def test_advance_moves_forward(self):
        clock = OffsetClock(FixedClock(T0))
        assert clock.advance(timedelta(days=3)) == T0 + timedelta(days=3)
        clock.advance(timedelta(hours=1))
        assert clock.now() == T0 + timedelta(days=3, hours=1)

    def test_advance_rejects_negative_delta(self):
        clock = OffsetClock(FixedClock(T0))
        with pytest.raises(ValueError, match="backwards"):
            clock.advance(timedelta(seconds=-1))

    def test_advance_to_instant(self):
        clock = OffsetClock(FixedClock(T0))
        target = T0 + timedelta(days=14)
        assert clock.advance_to(target) == target
        assert clock.offset == timedelta(days=14)

    def test_advance_to_past_rejected(self):
        clock = OffsetClock(FixedClock(T0), offset=timedelta(days=1))
        with pytest.raises(ValueError, match="backwards"):
            clock.advance_to(T0)

    def test_negative_initial_offset_rejected(self):
        with pytest.raises(ValueError):
            OffsetClock(FixedClock(T0), offset=timedelta(days=-1))

    def test_disable_reports_base_time_and_keeps_offset(self):
        clock = OffsetClock(FixedClock(T0))
        clock.advance(timedelta(days=5))
        clock.set_enabled(False)
        assert clock.now() == T0
        clock.set_enabled(True)
        assert clock.now() == T0 + timedelta(days=5)

    def test_defaults_to_system_base(self):
        clock = OffsetClock()
        assert isinstance(clock.base, SystemClock)
        assert isinstance(clock, Clock)
