"""
Tests for oracle.py - Trigger oracles and the eligibility predicate
"""

import pytest
from datetime import datetime, timedelta

from seasonfund import (
    MockWeatherOracle, TimeSeriesOracle, OracleReading, TriggerOracle,
    FixedClock, OffsetClock, is_triggered,
)


T0 = datetime(2025, 3, 1)


class TestIsTriggered:

    @pytest.mark.parametrize("value,expected", [
        (-3, True),
        (0, True),
        (9, True),
        (10, False),
        (11, False),
    ])
    def test_strictly_below_threshold(self, value, expected):
        reading = OracleReading(1, value, T0)
        assert is_triggered(reading, 10) is expected

    def test_missing_reading_never_triggers(self):
        assert is_triggered(None, 10) is False


class TestMockWeatherOracle:

    def test_initial_reading(self):
        oracle = MockWeatherOracle(5, FixedClock(T0))
        assert oracle.latest_reading() == OracleReading(1, 5, T0)

    def test_set_value_starts_new_round(self):
        clock = OffsetClock(FixedClock(T0))
        oracle = MockWeatherOracle(5, clock)
        clock.advance(timedelta(hours=2))
        reading = oracle.set_value(15)
        assert reading.round_id == 2
        assert reading.value == 15
        assert reading.timestamp == T0 + timedelta(hours=2)
        assert oracle.latest_reading() == reading

    def test_satisfies_protocol(self):
        assert isinstance(MockWeatherOracle(5, FixedClock(T0)), TriggerOracle)


class TestTimeSeriesOracle:

    def test_no_reading_before_first_observation(self):
        oracle = TimeSeriesOracle([(T0 + timedelta(days=1), 4)], clock=FixedClock(T0))
        assert oracle.latest_reading() is None

    def test_latest_at_or_before_now(self):
        clock = OffsetClock(FixedClock(T0))
        oracle = TimeSeriesOracle(
            [(T0 + timedelta(days=2), 8), (T0, 12), (T0 + timedelta(days=4), 15)],
            clock=clock,
        )
        assert oracle.latest_reading() == OracleReading(1, 12, T0)
        clock.advance(timedelta(days=3))
        assert oracle.latest_reading() == OracleReading(2, 8, T0 + timedelta(days=2))
        clock.advance(timedelta(days=1))
        assert oracle.latest_reading().value == 15

    def test_add_reading_keeps_order(self):
        oracle = TimeSeriesOracle(clock=FixedClock(T0 + timedelta(days=10)))
        oracle.add_reading(T0 + timedelta(days=5), 3)
        oracle.add_reading(T0 + timedelta(days=1), 20)
        assert oracle.latest_reading().value == 3
        assert oracle.reading_at(T0 + timedelta(days=2)).value == 20
