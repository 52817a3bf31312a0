"""
vault.py - Share accounting over the commingled pool

Investors own shares, not amounts. A share is a claim on a fraction of
whatever the pool holds when it is redeemed:

    minted  = amount                                  if total_shares == 0
            = amount * total_shares / pool_before     otherwise
    payout  = shares * pool / total_shares

Rounding:
    Both conversions round DOWN to the asset quantum. A depositor never
    receives more shares than paid for and a redeemer never takes more than
    their fraction, so rounding residue always stays in the pool.

Premiums grow the pool without minting shares and claims shrink it without
burning any; that is how investors carry the season's risk.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict

from .core import (
    Positions, ZERO,
    InvalidAmount, InsufficientFunds,
    round_down,
)


def shares_for_deposit(
    amount: Decimal,
    total_shares: Decimal,
    pool_before: Decimal,
    step: Decimal,
) -> Decimal:
    """
    Shares minted for a deposit of amount, priced before the deposit lands.

    The first deposit (no shares outstanding) mints 1:1 and absorbs any
    residue already sitting in the pool.

    Raises:
        InsufficientFunds: If shares exist but the pool is empty; they are
            worthless and must be redeemed before new capital can be priced
    """
    if total_shares == ZERO:
        return round_down(amount, step)
    if pool_before <= ZERO:
        raise InsufficientFunds(
            f"{total_shares} shares outstanding against an empty pool"
        )
    return round_down(amount * total_shares / pool_before, step)


def assets_for_shares(
    shares: Decimal,
    total_shares: Decimal,
    pool: Decimal,
    step: Decimal,
) -> Decimal:
    """Pool amount that shares redeem for right now (0 if no shares exist)."""
    if total_shares == ZERO or pool <= ZERO:
        return ZERO
    return round_down(shares * pool / total_shares, step)


def share_price(total_shares: Decimal, pool: Decimal) -> Decimal:
    """Pool value of one share; 1 before the first deposit."""
    if total_shares == ZERO:
        return Decimal("1")
    return pool / total_shares


@dataclass(slots=True)
class VaultPosition:
    """
    An investor's stake in the pool.

    Attributes:
        shares: Current share balance
        contributed: Cumulative amount ever deposited (never reduced)
    """
    shares: Decimal = ZERO
    contributed: Decimal = ZERO


class Vault:
    """
    Share ledger of the pool. Global across seasons.

    The vault only books shares; moving the underlying asset is the fund's
    job. Invariant: sum of position shares == total_shares.
    """

    def __init__(self):
        self._positions: Dict[str, VaultPosition] = {}
        self.total_shares: Decimal = ZERO

    def shares_of(self, investor: str) -> Decimal:
        position = self._positions.get(investor)
        return position.shares if position else ZERO

    def contributed_of(self, investor: str) -> Decimal:
        position = self._positions.get(investor)
        return position.contributed if position else ZERO

    def positions(self) -> Positions:
        """Non-zero share balances by investor."""
        return {
            investor: p.shares
            for investor, p in sorted(self._positions.items())
            if p.shares > ZERO
        }

    def mint(self, investor: str, shares: Decimal, amount: Decimal) -> Decimal:
        """Book shares bought for amount. Returns the new share balance."""
        if shares <= ZERO:
            raise InvalidAmount(f"cannot mint {shares} shares")
        position = self._positions.setdefault(investor, VaultPosition())
        position.shares += shares
        position.contributed += amount
        self.total_shares += shares
        return position.shares

    def burn(self, investor: str, shares: Decimal) -> Decimal:
        """
        Remove shares from an investor. Returns the remaining balance.

        Raises:
            InvalidAmount: If shares is not positive or exceeds the balance
        """
        if shares <= ZERO:
            raise InvalidAmount(f"shares must be positive, got {shares}")
        held = self.shares_of(investor)
        if shares > held:
            raise InvalidAmount(f"{investor} holds {held} shares, cannot redeem {shares}")
        position = self._positions[investor]
        position.shares -= shares
        self.total_shares -= shares
        return position.shares

    def check_supply(self) -> bool:
        """True when the positions add up to total_shares."""
        return sum((p.shares for p in self._positions.values()), ZERO) == self.total_shares

    def __repr__(self):
        return f"Vault({len(self.positions())} investors, {self.total_shares} shares)"
