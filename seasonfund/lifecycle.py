"""
lifecycle.py - Season phase state machine

A season is described by one instant, the season-over boundary T, and the
phase window w. The phase is a pure function of the current time:

    now <  T - w            ACTIVE
    T - w <= now < T        INACTIVE
    T <= now < T + w        CLAIM
    T + w <= now < T + 2w   WITHDRAW
    now >= T + 2w           FINISHED

No phase is ever stored, so the phase cannot drift from the clock. Moving
between phases is done by moving the clock.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple, Type

from .clock import OffsetClock
from .core import Clock, Phase, PhaseViolation, PHASE_ORDER


def phase_at(now: datetime, season_over: datetime, window: timedelta) -> Phase:
    """Compute the phase of a season at a given instant."""
    if now < season_over - window:
        return Phase.ACTIVE
    if now < season_over:
        return Phase.INACTIVE
    if now < season_over + window:
        return Phase.CLAIM
    if now < season_over + 2 * window:
        return Phase.WITHDRAW
    return Phase.FINISHED


def phase_schedule(season_over: datetime, window: timedelta) -> Dict[Phase, datetime]:
    """
    First instant of every phase after ACTIVE.

    ACTIVE has no boundary of its own; it covers everything before INACTIVE.
    """
    return {
        Phase.INACTIVE: season_over - window,
        Phase.CLAIM: season_over,
        Phase.WITHDRAW: season_over + window,
        Phase.FINISHED: season_over + 2 * window,
    }


def next_phase(phase: Phase) -> Optional[Phase]:
    """The phase that follows, or None for FINISHED."""
    idx = PHASE_ORDER.index(phase)
    if idx + 1 == len(PHASE_ORDER):
        return None
    return PHASE_ORDER[idx + 1]


class SeasonLifecycle:
    """
    Evaluates and gates phases against a clock.

    Attributes:
        clock: Time source; must be an OffsetClock for fast_forward()
        window: Phase length
    """

    def __init__(self, clock: Clock, window: timedelta):
        if window <= timedelta(0):
            raise ValueError(f"window must be positive, got {window}")
        self.clock = clock
        self.window = window

    def now(self) -> datetime:
        return self.clock.now()

    def phase(self, season_over: datetime) -> Phase:
        return phase_at(self.clock.now(), season_over, self.window)

    def new_season_over(self) -> datetime:
        """Boundary for a season starting now: one window Active, then the rest."""
        return self.clock.now() + 2 * self.window

    def require(
        self,
        season_over: datetime,
        allowed: Tuple[Phase, ...],
        error: Type[PhaseViolation],
        operation: str,
    ) -> Phase:
        """
        Return the current phase if it is one of allowed.

        Raises:
            error: With the current phase attached, otherwise
        """
        current = self.phase(season_over)
        if current not in allowed:
            names = "/".join(p.name for p in allowed)
            raise error(
                f"requires {names} phase, season is {current.name}",
                operation=operation,
                phase=current,
            )
        return current

    def time_until_next_phase(self, season_over: datetime) -> Optional[timedelta]:
        """None once the season is FINISHED."""
        upcoming = next_phase(self.phase(season_over))
        if upcoming is None:
            return None
        return phase_schedule(season_over, self.window)[upcoming] - self.clock.now()

    def fast_forward(self, season_over: datetime) -> Phase:
        """
        Move the virtual clock to the first instant of the next phase.

        Repeated calls once FINISHED are no-ops.

        Raises:
            TypeError: If the lifecycle is not driven by an OffsetClock
        """
        if not isinstance(self.clock, OffsetClock):
            raise TypeError(f"fast_forward needs an OffsetClock, got {type(self.clock).__name__}")
        upcoming = next_phase(self.phase(season_over))
        if upcoming is None:
            return Phase.FINISHED
        self.clock.advance_to(phase_schedule(season_over, self.window)[upcoming])
        return upcoming
