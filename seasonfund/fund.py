"""
fund.py - Seasonal pooled parametric-insurance fund

SeasonFund is the only object that mutates fund state. Every public
operation is an atomic step:

    1. Validate everything (amounts, phase, eligibility, funds)
    2. Snapshot, then mutate the fund's ledgers (holdings, shares, tallies)
    3. Move value on the asset ledger
    4. Record the event

Value always moves after step 2, in both directions, so anything the asset
ledger calls back into during the transfer sees books that already match
the balances: a claimed holding zeroed, shares burned or minted, a premium
booked. If the transfer is refused, or a callback raises, the fund state is
restored from the snapshot and nothing is emitted. A reentrancy flag rejects
nested entry from asset callbacks.

Event listeners run only after the operation has committed and the
reentrancy flag is released. A listener failure never turns a committed
operation into a raised error; it is recorded in listener_errors instead.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Tuple
import copy

from .clock import OffsetClock, SystemClock
from .core import (
    # Types
    AssetLedger, TriggerOracle, Clock, FundConfig, FundEvent, Phase, PHASE_ORDER,
    SeasonTerms, AmountLike, Positions,
    PolicyBought, ClaimMade, InvestmentMade, InvestmentWithdrawn, NewSeasonStarted,
    ZERO,
    # Exceptions
    FundError, InvalidAmount, UnknownSeason, Unauthorized, ReentrantCall,
    NotActivePeriod, NotClaimPeriod, NotWithdrawPeriod, NotFinished, SeasonNotActive,
    ConditionNotMet, NoPoliciesToClaim, InsufficientFunds, TransferFailed,
    # Helpers
    to_decimal,
)
from .ledger import TokenLedger
from .lifecycle import SeasonLifecycle, phase_at, phase_schedule
from .oracle import is_triggered
from .policy import Season, create_season, quote_payout, quote_premium
from .vault import Vault, assets_for_shares, share_price, shares_for_deposit


EventListener = Callable[[FundEvent], None]


@dataclass
class FundState:
    """
    All mutable state of a fund.

    seasons[i] is season id i + 1. The four tallies are the running totals
    the pool balance must always equal:
        premiums + deposits - claims - redemptions
    """
    seasons: List[Season] = field(default_factory=list)
    vault: Vault = field(default_factory=Vault)
    premiums_collected: Decimal = ZERO
    deposits_received: Decimal = ZERO
    claims_paid: Decimal = ZERO
    redemptions_paid: Decimal = ZERO

    @property
    def current(self) -> Season:
        return self.seasons[-1]


def entry_point(method):
    """
    Wrap a public fund operation.

    Rejects nested entry while another operation is running and prints
    rejections in verbose mode. Errors always propagate. Events recorded by
    a successful call are handed to listeners once the guard is released;
    those of a failed call are dropped.
    """
    operation = method.__name__

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._entered is not None:
            raise ReentrantCall(
                f"called while {self._entered} is in progress", operation=operation
            )
        self._entered = operation
        try:
            result = method(self, *args, **kwargs)
        except FundError as e:
            if self.verbose:
                print(f"✗ REJECTED [{e.kind.value}] {e}")
            raise
        finally:
            self._entered = None
            committed, self._pending = self._pending, []
        self._notify(committed)
        return result

    return wrapper


class SeasonFund:
    """
    Pooled parametric insurance over a sequence of seasons.

    Farmers buy coverage units for the season's premium; investors deposit
    capital for shares of the pool; during the claim window holders are paid
    when the oracle reading is below the threshold; during the withdraw
    window investors redeem shares for their fraction of what is left.

    Thread Safety:
        Not thread-safe. Operations are serial and atomic per call.

    Example:
        usdc = TokenLedger("usdc", verbose=False)
        for w in ("admin", "farmer", "investor"):
            usdc.register_wallet(w)
        fund = SeasonFund(usdc, MockWeatherOracle(5), FundConfig(admin="admin"),
                          test_mode=True, verbose=False)
        usdc.mint("investor", 1000)
        usdc.approve("investor", fund.pool_wallet, 1000)
        fund.deposit("investor", 1000)
    """

    def __init__(
        self,
        asset: AssetLedger,
        oracle: TriggerOracle,
        config: FundConfig,
        clock: Optional[Clock] = None,
        verbose: bool = True,
        test_mode: bool = False,
    ):
        """
        Create a fund and open season 1.

        Args:
            asset: Ledger holding the pooled asset
            oracle: Source of the trigger reading
            config: Static fund configuration
            clock: Time source (default: SystemClock). In test mode it is
                   wrapped in an OffsetClock unless it already is one.
            verbose: Print events and rejections (default: True)
            test_mode: Allow the admin to drive virtual time (default: False)
        """
        self.asset = asset
        self.oracle = oracle
        self.config = config
        self.verbose = verbose
        self._test_mode = test_mode
        clock = clock or SystemClock()
        if test_mode and not isinstance(clock, OffsetClock):
            clock = OffsetClock(clock)
        self.clock = clock
        self.lifecycle = SeasonLifecycle(clock, config.window)
        self.quantum = config.quantum
        if config.initial_premium != config.initial_premium.quantize(self.quantum):
            raise ValueError(
                f"initial_premium {config.initial_premium} exceeds "
                f"{config.asset_decimals} decimal places"
            )
        self.state = FundState()
        self.events: List[FundEvent] = []
        self._listeners: List[EventListener] = []
        self._pending: List[FundEvent] = []
        self.listener_errors: List[Tuple[FundEvent, Exception]] = []
        self._entered: Optional[str] = None

        if isinstance(asset, TokenLedger) and not asset.is_registered(config.pool_wallet):
            asset.register_wallet(config.pool_wallet)

        self._open_season(config.initial_premium)

    # ========================================================================
    # QUERIES
    # ========================================================================

    @property
    def pool_wallet(self) -> str:
        return self.config.pool_wallet

    @property
    def test_mode(self) -> bool:
        return self._test_mode

    @property
    def current_season_id(self) -> int:
        return self.state.current.season_id

    @property
    def total_shares(self) -> Decimal:
        return self.state.vault.total_shares

    def current_phase(self) -> Phase:
        return self.lifecycle.phase(self.state.current.season_over)

    def season(self, season_id: Optional[int] = None) -> SeasonTerms:
        """
        Terms of a season (default: the current one).

        Raises:
            UnknownSeason: If no season with that id was ever created
        """
        return self._season(season_id).terms()

    def seasons(self) -> List[SeasonTerms]:
        return [s.terms() for s in self.state.seasons]

    def units_of(self, holder: str, season_id: Optional[int] = None) -> int:
        return self._season(season_id).policies.units_of(holder)

    def policy_holders(self, season_id: Optional[int] = None) -> List[str]:
        return self._season(season_id).policies.holders()

    def max_liability(self) -> Decimal:
        """Payout owed by the current season if every holder claimed."""
        return self.state.current.max_liability

    def pool_balance(self) -> Decimal:
        return self.asset.balance_of(self.config.pool_wallet)

    def shares_of(self, investor: str) -> Decimal:
        return self.state.vault.shares_of(investor)

    def contributed_of(self, investor: str) -> Decimal:
        """Cumulative amount the investor has deposited."""
        return self.state.vault.contributed_of(investor)

    def investor_positions(self) -> Positions:
        return self.state.vault.positions()

    def share_price(self) -> Decimal:
        return share_price(self.total_shares, self.pool_balance())

    def preview_redeem(self, investor: str, shares: Optional[AmountLike] = None) -> Decimal:
        """
        What redeeming shares (default: all of them) would pay right now.

        An estimate: claims and premiums before the withdraw window move it.
        """
        if shares is None:
            shares = self.shares_of(investor)
        return assets_for_shares(
            to_decimal(shares), self.total_shares, self.pool_balance(), self.quantum
        )

    def preview_deposit(self, amount: AmountLike) -> Decimal:
        """Shares a deposit of amount would mint right now."""
        return shares_for_deposit(
            to_decimal(amount), self.total_shares, self.pool_balance(), self.quantum
        )

    def phase_schedule(self) -> Dict[Phase, datetime]:
        """First instant of each phase after ACTIVE for the current season."""
        return phase_schedule(self.state.current.season_over, self.config.window)

    def time_until_next_phase(self) -> Optional[timedelta]:
        return self.lifecycle.time_until_next_phase(self.state.current.season_over)

    def verify_pool_conservation(self) -> Dict[str, Any]:
        """
        Check that the pool holds exactly what the fund has booked.

        Returns:
            Dict with keys:
            - 'valid': bool - True if pool balance equals the booked total
            - 'expected': premiums + deposits - claims - redemptions
            - 'actual': pool balance on the asset ledger
            - 'difference': actual - expected
        """
        s = self.state
        expected = s.premiums_collected + s.deposits_received - s.claims_paid - s.redemptions_paid
        actual = self.pool_balance()
        return {
            'valid': actual == expected and s.vault.check_supply(),
            'expected': expected,
            'actual': actual,
            'difference': actual - expected,
        }

    # ========================================================================
    # EVENTS
    # ========================================================================

    def subscribe(self, listener: EventListener) -> None:
        """
        Call listener with every event of a committed operation.

        Listeners run after the operation returns control to the fund, so
        they may call fund operations themselves. Exceptions they raise are
        collected in listener_errors and do not reach the operation's caller.
        """
        self._listeners.append(listener)

    def _emit(self, event: FundEvent) -> None:
        self.events.append(event)
        if self.verbose:
            print(f"✓ {event}")
        if self._entered is None:
            self._notify([event])
        else:
            self._pending.append(event)

    def _notify(self, events: List[FundEvent]) -> None:
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception as e:
                    self.listener_errors.append((event, e))
                    if self.verbose:
                        print(f"✗ listener {listener!r} failed on {event}: {e!r}")

    # ========================================================================
    # POLICY OPERATIONS
    # ========================================================================

    @entry_point
    def buy_policy(self, holder: str, units: int) -> Decimal:
        """
        Buy units of coverage in the current season.

        Premium is pulled from the holder with transfer_from; the holder
        must have approved the pool wallet beforehand.

        Returns:
            The premium paid

        Raises:
            InvalidAmount: If units is not a positive integer
            NotActivePeriod: Outside ACTIVE
            InsufficientFunds: While no investor capital backs the pool
            TransferFailed: If the premium could not be collected
        """
        op = "buy_policy"
        if isinstance(units, bool) or not isinstance(units, int) or units <= 0:
            raise InvalidAmount(f"units must be a positive integer, got {units!r}", op)
        season = self.state.current
        self.lifecycle.require(season.season_over, (Phase.ACTIVE,), NotActivePeriod, op)
        if self.state.vault.total_shares == ZERO:
            raise InsufficientFunds("no investor capital backs the pool yet", op)

        cost = quote_premium(season.premium, units)

        snapshot = self._checkpoint()
        season.policies.issue(holder, units)
        self.state.premiums_collected += cost
        self._move_value(
            snapshot,
            lambda: self.asset.transfer_from(self.pool_wallet, holder, self.pool_wallet, cost),
            f"could not collect premium {cost} from {holder}", op,
        )
        self._emit(PolicyBought(holder, season.season_id, units, cost))
        return cost

    @entry_point
    def claim_policies(self, holder: str) -> Decimal:
        """
        Claim the holder's entire unit balance in the current season.

        Eligibility is judged once, against the oracle reading at call time.

        Returns:
            The payout transferred to the holder

        Raises:
            NotClaimPeriod: Outside CLAIM
            NoPoliciesToClaim: If the holder has no units
            ConditionNotMet: If the reading is missing or not below threshold
            InsufficientFunds: If the pool cannot cover the payout
            TransferFailed: If the payout transfer was refused
        """
        op = "claim_policies"
        season = self.state.current
        self.lifecycle.require(season.season_over, (Phase.CLAIM,), NotClaimPeriod, op)
        units = season.policies.units_of(holder)
        if units <= 0:
            raise NoPoliciesToClaim(
                f"{holder} holds no policies in season {season.season_id}", op
            )
        reading = self.oracle.latest_reading()
        if not is_triggered(reading, self.config.threshold):
            observed = "no reading" if reading is None else f"value {reading.value}"
            raise ConditionNotMet(
                f"{observed} does not satisfy < {self.config.threshold}", op, reading=reading
            )
        payout = quote_payout(season.payout_per_unit, units)
        pool = self.pool_balance()
        if pool < payout:
            raise InsufficientFunds(f"pool {pool} cannot cover payout {payout}", op)

        snapshot = self._checkpoint()
        season.policies.settle(holder)
        self.state.claims_paid += payout
        self._move_value(
            snapshot,
            lambda: self.asset.transfer(self.pool_wallet, holder, payout),
            f"could not pay {payout} to {holder}", op,
        )

        self._emit(ClaimMade(holder, season.season_id, units, payout))
        return payout

    # ========================================================================
    # VAULT OPERATIONS
    # ========================================================================

    @entry_point
    def deposit(self, investor: str, amount: AmountLike) -> Decimal:
        """
        Deposit capital into the pool in exchange for shares.

        Returns:
            Shares minted

        Raises:
            InvalidAmount: If amount is not positive, too precise, or too
                small to mint a share
            SeasonNotActive: Outside ACTIVE and INACTIVE
            InsufficientFunds: If outstanding shares have no pool backing
            TransferFailed: If the deposit could not be collected
        """
        op = "deposit"
        amount = self._check_amount(amount, op)
        season = self.state.current
        self.lifecycle.require(
            season.season_over, (Phase.ACTIVE, Phase.INACTIVE), SeasonNotActive, op
        )
        vault = self.state.vault
        try:
            shares = shares_for_deposit(amount, vault.total_shares, self.pool_balance(), self.quantum)
        except InsufficientFunds as e:
            raise InsufficientFunds(e.message, op) from e
        if shares <= ZERO:
            raise InvalidAmount(f"deposit {amount} is too small to mint a share", op)

        snapshot = self._checkpoint()
        self.state.vault.mint(investor, shares, amount)
        self.state.deposits_received += amount
        self._move_value(
            snapshot,
            lambda: self.asset.transfer_from(self.pool_wallet, investor, self.pool_wallet, amount),
            f"could not collect deposit {amount} from {investor}", op,
        )
        self._emit(InvestmentMade(investor, amount))
        return shares

    @entry_point
    def redeem(self, investor: str, shares: AmountLike) -> Decimal:
        """
        Burn shares for their fraction of the current pool.

        The payout rounds down; the residue stays in the pool.

        Returns:
            The amount transferred to the investor

        Raises:
            InvalidAmount: If shares is not positive or exceeds the balance
            NotWithdrawPeriod: Outside WITHDRAW
            TransferFailed: If the payout transfer was refused
        """
        op = "redeem"
        shares = self._check_amount(shares, op)
        season = self.state.current
        self.lifecycle.require(season.season_over, (Phase.WITHDRAW,), NotWithdrawPeriod, op)
        vault = self.state.vault
        held = vault.shares_of(investor)
        if shares > held:
            raise InvalidAmount(f"{investor} holds {held} shares, cannot redeem {shares}", op)
        payout = assets_for_shares(shares, vault.total_shares, self.pool_balance(), self.quantum)

        snapshot = self._checkpoint()
        vault.burn(investor, shares)
        self.state.redemptions_paid += payout
        if payout > ZERO:
            self._move_value(
                snapshot,
                lambda: self.asset.transfer(self.pool_wallet, investor, payout),
                f"could not pay {payout} to {investor}", op,
            )

        self._emit(InvestmentWithdrawn(investor, payout))
        return payout

    def redeem_all(self, investor: str) -> Decimal:
        """Redeem every share the investor holds."""
        return self.redeem(investor, self.shares_of(investor))

    # ========================================================================
    # ADMIN OPERATIONS
    # ========================================================================

    @entry_point
    def start_new_season(self, caller: str, new_premium: AmountLike) -> int:
        """
        Open the next season with a fresh policy ledger.

        Returns:
            The new season id

        Raises:
            Unauthorized: If caller is not the admin
            NotFinished: Unless the current season is FINISHED
            InvalidAmount: If the premium is not positive or too precise
        """
        op = "start_new_season"
        self._require_admin(caller, op)
        self.lifecycle.require(
            self.state.current.season_over, (Phase.FINISHED,), NotFinished, op
        )
        premium = self._check_amount(new_premium, op)
        season = self._open_season(premium)
        return season.season_id

    @entry_point
    def advance_phase(self, caller: str) -> Phase:
        """
        Fast-forward virtual time to the start of the next phase.

        No-op once FINISHED.

        Returns:
            The phase after the call

        Raises:
            Unauthorized: If caller is not the admin, test mode is off, or
                simulated time is disabled
        """
        op = "advance_phase"
        self._require_test_admin(caller, op)
        if not self.clock.enabled:
            raise Unauthorized("simulated time is disabled", op)
        before = self.current_phase()
        after = self.lifecycle.fast_forward(self.state.current.season_over)
        if self.verbose and after != before:
            print(f"⏩ season {self.current_season_id}: {before.name} → {after.name} "
                  f"at {self.clock.now().isoformat()}")
        return after

    @entry_point
    def set_simulated_time(self, caller: str, enabled: bool) -> None:
        """
        Switch the virtual clock offset on or off (test mode only).

        Switching off makes the clock report base time again, which is
        refused if it would put the current season back into an earlier
        phase: a season only ever moves forward through its phases.

        Raises:
            Unauthorized: If caller is not the admin, test mode is off, or
                disabling would rewind the current season
        """
        op = "set_simulated_time"
        self._require_test_admin(caller, op)
        if not enabled and self.clock.enabled:
            current = self.current_phase()
            rewound = phase_at(
                self.clock.base.now(), self.state.current.season_over, self.config.window
            )
            if PHASE_ORDER.index(rewound) < PHASE_ORDER.index(current):
                raise Unauthorized(
                    f"disabling simulated time would move season {self.current_season_id} "
                    f"back from {current.name} to {rewound.name}", op
                )
        self.clock.set_enabled(enabled)

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _season(self, season_id: Optional[int]) -> Season:
        if season_id is None:
            return self.state.current
        if isinstance(season_id, bool) or not isinstance(season_id, int) \
                or not 1 <= season_id <= len(self.state.seasons):
            raise UnknownSeason(f"season {season_id!r} does not exist")
        return self.state.seasons[season_id - 1]

    def _open_season(self, premium: Decimal) -> Season:
        now = self.lifecycle.now()
        season = create_season(
            season_id=len(self.state.seasons) + 1,
            created_at=now,
            premium=premium,
            payout_multiplier=self.config.payout_multiplier,
            season_over=self.lifecycle.new_season_over(),
        )
        self.state.seasons.append(season)
        self._emit(NewSeasonStarted(season.season_id, season.premium, season.payout_per_unit))
        return season

    def _check_amount(self, value: AmountLike, operation: str) -> Decimal:
        try:
            amount = to_decimal(value)
        except (TypeError, ArithmeticError) as e:
            raise InvalidAmount(f"not an amount: {value!r}", operation) from e
        if not amount.is_finite() or amount <= ZERO:
            raise InvalidAmount(f"amount must be positive, got {value!r}", operation)
        if amount != amount.quantize(self.quantum):
            raise InvalidAmount(
                f"{amount} exceeds {self.config.asset_decimals} decimal places", operation
            )
        return amount

    def _require_admin(self, caller: str, operation: str) -> None:
        if caller != self.config.admin:
            raise Unauthorized(f"{caller} is not the fund admin", operation)

    def _require_test_admin(self, caller: str, operation: str) -> None:
        self._require_admin(caller, operation)
        if not self._test_mode:
            raise Unauthorized("only available in test mode", operation)

    def _checkpoint(self) -> FundState:
        return copy.deepcopy(self.state)

    def _move_value(self, snapshot: FundState, transfer: Callable[[], bool],
                    failure: str, operation: str) -> None:
        """
        Run a transfer against already-updated books.

        Restores snapshot and raises TransferFailed if the asset ledger refuses;
        restores snapshot and re-raises if the transfer raised (e.g. a hook).
        """
        try:
            moved = transfer()
        except Exception:
            self.state = snapshot
            raise
        if not moved:
            self.state = snapshot
            raise TransferFailed(failure, operation)

    def __repr__(self):
        return (f"SeasonFund(season={self.current_season_id}, phase={self.current_phase().name}, "
                f"pool={self.pool_balance()}, shares={self.total_shares})")
