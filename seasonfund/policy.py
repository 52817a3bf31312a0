"""
policy.py - Seasons and their policy ledgers

This module provides the per-season records of the fund:
1. quote_premium() / quote_payout() - Pure pricing of a unit count
2. PolicyLedger - Coverage units held per holder within one season
3. Season - Terms of one season plus its PolicyLedger
4. create_season() - Factory that derives payout terms from the premium

Seasons are kept in an indexed list by the fund (season id = index + 1);
a Season is never deleted and only its units sold ever change.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .core import (
    AmountLike, Holdings, SeasonTerms,
    InvalidAmount, NoPoliciesToClaim,
    to_decimal,
)


def quote_premium(premium: Decimal, units: int) -> Decimal:
    """Total premium for units of coverage."""
    return premium * units


def quote_payout(payout_per_unit: Decimal, units: int) -> Decimal:
    """Total payout owed on units of coverage."""
    return payout_per_unit * units


def _check_units(units: int) -> None:
    if isinstance(units, bool) or not isinstance(units, int):
        raise InvalidAmount(f"units must be an integer, got {units!r}")
    if units <= 0:
        raise InvalidAmount(f"units must be positive, got {units}")


class PolicyLedger:
    """
    Coverage units per holder for a single season.

    Holdings are created on issue() and removed entirely on settle():
    a holder either holds a positive unit count or is absent.
    """

    def __init__(self, season_id: int):
        self.season_id = season_id
        self.total_units_sold: int = 0
        self._holdings: Holdings = {}
        self._units_settled: int = 0

    def units_of(self, holder: str) -> int:
        return self._holdings.get(holder, 0)

    def holders(self) -> List[str]:
        return sorted(self._holdings)

    @property
    def outstanding_units(self) -> int:
        """Units sold and not yet claimed."""
        return self.total_units_sold - self._units_settled

    def issue(self, holder: str, units: int) -> int:
        """
        Credit units to holder.

        Returns:
            The holder's new unit balance

        Raises:
            InvalidAmount: If units is not a positive integer
        """
        _check_units(units)
        self._holdings[holder] = self._holdings.get(holder, 0) + units
        self.total_units_sold += units
        return self._holdings[holder]

    def settle(self, holder: str) -> int:
        """
        Burn the holder's entire balance.

        Returns:
            The number of units burned

        Raises:
            NoPoliciesToClaim: If the holder has no units in this season
        """
        units = self._holdings.pop(holder, 0)
        if units <= 0:
            raise NoPoliciesToClaim(
                f"{holder} holds no policies in season {self.season_id}"
            )
        self._units_settled += units
        return units

    def __repr__(self):
        return (f"PolicyLedger(season={self.season_id}, sold={self.total_units_sold}, "
                f"holders={len(self._holdings)})")


@dataclass(slots=True)
class Season:
    """
    One bounded coverage period.

    Attributes:
        season_id: 1-based, monotonically increasing
        created_at: When the season was opened
        premium: Price of one unit of coverage
        payout_per_unit: Paid per unit when the trigger holds
        season_over: Boundary T the lifecycle phases are computed from
        policies: The season's PolicyLedger
    """
    season_id: int
    created_at: datetime
    premium: Decimal
    payout_per_unit: Decimal
    season_over: datetime
    policies: Optional[PolicyLedger] = None

    def __post_init__(self):
        if self.policies is None:
            self.policies = PolicyLedger(self.season_id)

    @property
    def total_units_sold(self) -> int:
        return self.policies.total_units_sold

    @property
    def max_liability(self) -> Decimal:
        """Payout owed if every outstanding unit were claimed."""
        return quote_payout(self.payout_per_unit, self.policies.outstanding_units)

    def terms(self) -> SeasonTerms:
        return SeasonTerms(
            season_id=self.season_id,
            created_at=self.created_at,
            premium=self.premium,
            payout_per_unit=self.payout_per_unit,
            total_units_sold=self.total_units_sold,
            season_over=self.season_over,
        )


def create_season(
    season_id: int,
    created_at: datetime,
    premium: AmountLike,
    payout_multiplier: int,
    season_over: datetime,
) -> Season:
    """
    Open a season whose payout is a fixed multiple of its premium.

    Raises:
        InvalidAmount: If premium is not positive
        ValueError: If season_id < 1 or season_over is not after created_at
    """
    premium = to_decimal(premium)
    if not premium.is_finite() or premium <= 0:
        raise InvalidAmount(f"premium must be positive, got {premium}")
    if season_id < 1:
        raise ValueError(f"season_id must be >= 1, got {season_id}")
    if season_over <= created_at:
        raise ValueError(f"season_over {season_over} must be after creation {created_at}")
    return Season(
        season_id=season_id,
        created_at=created_at,
        premium=premium,
        payout_per_unit=premium * payout_multiplier,
        season_over=season_over,
    )
