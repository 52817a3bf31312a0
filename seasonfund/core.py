"""
Core types and pure helpers for the season fund.

This module provides the foundational data structures and protocols for the fund:
1. Protocols: Clock, AssetLedger and TriggerOracle collaborators
2. Immutable data structures: Move, Transaction, OracleReading, SeasonTerms, events
3. Configuration: FundConfig with validated defaults
4. Exceptions: FundError taxonomy and the token ledger's LedgerError family
5. Type aliases and Decimal helpers

Nothing in this module mutates fund or ledger state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import Dict, Optional, Protocol, Tuple, Union, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Share pricing divides large products (shares * pool) by the share supply.
# prec=50 keeps those intermediates exact for any realistic asset amount;
# every result is then quantized explicitly with ROUND_DOWN.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_FUND_DECIMAL_CONTEXT = getcontext()
_FUND_DECIMAL_CONTEXT.prec = 50
_FUND_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for token issuance. Exempt from balance validation.
SYSTEM_WALLET = "system"

# Wallet that holds the commingled pool unless configured otherwise.
DEFAULT_POOL_WALLET = "season_fund"

# Length of each lifecycle phase after Active.
DEFAULT_WINDOW = timedelta(days=7)

# Claims pay out when the oracle reading is strictly below this value.
DEFAULT_TRIGGER_THRESHOLD = 10

# payout_per_unit = premium * multiplier
DEFAULT_PAYOUT_MULTIPLIER = 4

DEFAULT_PREMIUM = Decimal("9")

# USDC-style precision for the pooled asset and for vault shares.
DEFAULT_ASSET_DECIMALS = 6

ZERO = Decimal("0")


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Anything accepted where an asset amount is expected.
AmountLike = Union[Decimal, int, str]

# Mapping from wallet ID to a Decimal quantity (token balances, vault shares).
Positions = Dict[str, Decimal]

# Mapping from holder ID to coverage units held in one season.
Holdings = Dict[str, int]


def to_decimal(value: AmountLike) -> Decimal:
    """Convert an amount to Decimal without going through binary floats."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a valid amount")
    return Decimal(str(value))


def quantum(decimals: int) -> Decimal:
    """Smallest representable step for an asset with the given precision."""
    return Decimal(10) ** -decimals


def round_down(value: Decimal, step: Decimal) -> Decimal:
    """Quantize toward zero. Every value leaving the pool goes through here."""
    return value.quantize(step, rounding=ROUND_DOWN)


# ============================================================================
# ENUMS
# ============================================================================

class Phase(Enum):
    """
    Lifecycle phase of a season, in the only order a season can visit them.

    ACTIVE: policies can be bought, investors can deposit.
    INACTIVE: coverage is locked in; deposits still accepted.
    CLAIM: holders claim against the oracle reading.
    WITHDRAW: investors redeem shares.
    FINISHED: the season is closed; a new one may be started.
    """
    ACTIVE = "active"
    INACTIVE = "inactive"
    CLAIM = "claim"
    WITHDRAW = "withdraw"
    FINISHED = "finished"


PHASE_ORDER: Tuple[Phase, ...] = (
    Phase.ACTIVE,
    Phase.INACTIVE,
    Phase.CLAIM,
    Phase.WITHDRAW,
    Phase.FINISHED,
)


class ErrorKind(Enum):
    """
    Classification of fund errors.

    Lets callers tell "try later" (PHASE, ELIGIBILITY) apart from
    "never" (VALIDATION, AUTHORIZATION) and "systemic" (RESOURCE, TRANSFER).
    """
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    PHASE = "phase"
    ELIGIBILITY = "eligibility"
    RESOURCE = "resource"
    TRANSFER = "transfer"


class ExecuteResult(Enum):
    """
    Outcome of a token ledger execution attempt.

    APPLIED: all moves were validated and applied.
    REJECTED: validation failed; no balance changed.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


# ============================================================================
# FUND EXCEPTIONS
# ============================================================================

class FundError(Exception):
    """
    Base exception for every failed fund operation.

    Attributes:
        kind: ErrorKind of the failure (class-level).
        operation: Name of the entry point that failed, if known.
    """
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation

    @property
    def retryable(self) -> bool:
        """True when the same call may succeed later without changing inputs."""
        return self.kind in (ErrorKind.PHASE, ErrorKind.ELIGIBILITY)

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class InvalidAmount(FundError):
    """Raised for non-positive, unrepresentable or excessive amounts."""
    kind = ErrorKind.VALIDATION


class UnknownSeason(FundError):
    """Raised when querying a season id that was never created."""
    kind = ErrorKind.VALIDATION


class Unauthorized(FundError):
    """Raised when a caller lacks the admin capability (or test mode is off)."""
    kind = ErrorKind.AUTHORIZATION


class ReentrantCall(FundError):
    """Raised when an asset callback tries to re-enter the fund mid-operation."""
    kind = ErrorKind.AUTHORIZATION


class PhaseViolation(FundError):
    """
    Raised when an operation is attempted outside its legal phases.

    Attributes:
        phase: The phase the season was in when the call was made.
    """
    kind = ErrorKind.PHASE

    def __init__(self, message: str, operation: Optional[str] = None,
                 phase: Optional[Phase] = None):
        super().__init__(message, operation)
        self.phase = phase


class NotActivePeriod(PhaseViolation):
    """Policies can only be bought while the season is ACTIVE."""


class NotClaimPeriod(PhaseViolation):
    """Claims are only accepted during CLAIM."""


class NotWithdrawPeriod(PhaseViolation):
    """Shares can only be redeemed during WITHDRAW."""


class NotFinished(PhaseViolation):
    """A new season can only start once the current one is FINISHED."""


class SeasonNotActive(PhaseViolation):
    """Deposits are only accepted during ACTIVE and INACTIVE."""


class ConditionNotMet(FundError):
    """
    Raised when the trigger condition does not hold at claim time.

    Attributes:
        reading: The oracle reading that was evaluated (None if unavailable).
    """
    kind = ErrorKind.ELIGIBILITY

    def __init__(self, message: str, operation: Optional[str] = None,
                 reading: Optional['OracleReading'] = None):
        super().__init__(message, operation)
        self.reading = reading


class NoPoliciesToClaim(FundError):
    kind = ErrorKind.ELIGIBILITY


class InsufficientFunds(FundError):
    """Raised when the pool cannot back an operation."""
    kind = ErrorKind.RESOURCE


class TransferFailed(FundError):
    """Raised when the asset ledger refuses a transfer into or out of the pool."""
    kind = ErrorKind.TRANSFER


# ============================================================================
# LEDGER EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for token ledger misuse."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when reading a wallet that has not been registered with the ledger."""
    pass


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of the pooled asset between two wallets.

    Attributes:
        quantity: The amount to transfer (must be finite and positive).
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        reference: Free-form tag describing why the move happened.
    """
    quantity: Decimal
    source: str
    dest: str
    reference: str = "transfer"

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if self.quantity.is_infinite() or self.quantity.is_nan():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of token moves.

    Attributes:
        moves: Tuple of value transfers applied together
        exec_id: Unique execution identifier (ledger + sequence)
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed
        sequence_number: Monotonic sequence within the ledger
    """
    moves: Tuple[Move, ...]
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")

    def __repr__(self) -> str:
        moves = ", ".join(repr(m) for m in self.moves)
        return f"Transaction({self.exec_id}: {moves})"


@dataclass(frozen=True, slots=True)
class OracleReading:
    """
    One observation from the trigger oracle.

    Attributes:
        round_id: Monotonic update counter of the feed.
        value: Signed reading (e.g. rainfall index).
        timestamp: When the reading was published.
    """
    round_id: int
    value: int
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class SeasonTerms:
    """Read-only snapshot of a season's terms and sales."""
    season_id: int
    created_at: datetime
    premium: Decimal
    payout_per_unit: Decimal
    total_units_sold: int
    season_over: datetime


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PolicyBought:
    holder: str
    season_id: int
    units: int
    total_premium: Decimal


@dataclass(frozen=True, slots=True)
class ClaimMade:
    holder: str
    season_id: int
    units: int
    total_payout: Decimal


@dataclass(frozen=True, slots=True)
class InvestmentMade:
    investor: str
    amount: Decimal


@dataclass(frozen=True, slots=True)
class InvestmentWithdrawn:
    investor: str
    amount: Decimal


@dataclass(frozen=True, slots=True)
class NewSeasonStarted:
    season_id: int
    premium: Decimal
    payout_per_unit: Decimal


FundEvent = Union[PolicyBought, ClaimMade, InvestmentMade, InvestmentWithdrawn, NewSeasonStarted]


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class FundConfig:
    """
    Static configuration of a season fund.

    Attributes:
        admin: The only identity allowed to start seasons and drive test time.
        window: Length of the Inactive, Claim and Withdraw phases.
        threshold: Claims pay when the oracle value is strictly below this.
        payout_multiplier: payout_per_unit = premium * payout_multiplier.
        initial_premium: Premium per unit of the first season.
        asset_decimals: Precision of the pooled asset and of vault shares.
        pool_wallet: Wallet on the asset ledger that holds the pool.
    """
    admin: str
    window: timedelta = DEFAULT_WINDOW
    threshold: int = DEFAULT_TRIGGER_THRESHOLD
    payout_multiplier: int = DEFAULT_PAYOUT_MULTIPLIER
    initial_premium: Decimal = DEFAULT_PREMIUM
    asset_decimals: int = DEFAULT_ASSET_DECIMALS
    pool_wallet: str = DEFAULT_POOL_WALLET

    def __post_init__(self):
        if not self.admin or not self.admin.strip():
            raise ValueError("admin cannot be empty")
        if not self.pool_wallet or not self.pool_wallet.strip():
            raise ValueError("pool_wallet cannot be empty")
        if self.admin == self.pool_wallet:
            raise ValueError("admin and pool_wallet must be different")
        if self.window <= timedelta(0):
            raise ValueError(f"window must be positive, got {self.window}")
        if self.payout_multiplier <= 0:
            raise ValueError(f"payout_multiplier must be positive, got {self.payout_multiplier}")
        if self.asset_decimals < 0:
            raise ValueError(f"asset_decimals must be non-negative, got {self.asset_decimals}")
        premium = to_decimal(self.initial_premium)
        if not premium.is_finite() or premium <= 0:
            raise ValueError(f"initial_premium must be positive, got {self.initial_premium}")
        object.__setattr__(self, 'initial_premium', premium)

    @property
    def quantum(self) -> Decimal:
        return quantum(self.asset_decimals)


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class Clock(Protocol):
    """Source of the current time for the lifecycle."""

    def now(self) -> datetime:
        ...


@runtime_checkable
class AssetLedger(Protocol):
    """
    Transfer-capable source of truth for asset balances.

    The pool balance is balance_of(pool_wallet). transfer and transfer_from
    report failure by returning False; they never partially apply.
    """

    def balance_of(self, wallet_id: str) -> Decimal:
        ...

    def transfer(self, sender: str, to: str, amount: Decimal) -> bool:
        ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: Decimal) -> bool:
        ...


@runtime_checkable
class TriggerOracle(Protocol):
    """Read-only source of the eligibility signal."""

    def latest_reading(self) -> Optional[OracleReading]:
        """Return the most recent reading, or None if the feed has none yet."""
        ...
