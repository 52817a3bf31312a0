"""
ledger.py - In-process token ledger for the pooled asset

TokenLedger is the reference AssetLedger collaborator of the fund: a
single-asset double-entry ledger with ERC20-style transfer/approve semantics.

Key responsibilities:
    - Maintains wallet balances and spender allowances
    - Executes moves atomically (all moves succeed or all fail)
    - Issues new tokens from the system wallet (mint)
    - Logs every applied transaction with a monotonic sequence number
    - Notifies receive hooks after credits, so a recipient can call back
      into whoever sent the funds; a hook that raises undoes the whole
      execution, including anything it did itself
"""

from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Set, Tuple, Any

from .clock import SystemClock
from .core import (
    # Types
    Move, Transaction, ExecuteResult, Clock, AmountLike, Positions,
    # Constants
    SYSTEM_WALLET, ZERO,
    # Exceptions
    WalletNotRegistered,
    # Helpers
    to_decimal, quantum,
)


# Called with the applied move after the recipient's balance was credited.
ReceiveHook = Callable[[Move], None]

# Allowance that is never decremented by transfer_from.
UNLIMITED = Decimal("Infinity")


class TokenLedger:
    """
    Double-entry ledger for one fungible asset.

    The system wallet is the issuer: minting moves value out of it, so its
    balance is the negative of the circulating supply and the sum of all
    balances is always zero.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own TokenLedger instance.

    Example:
        usdc = TokenLedger("usdc", symbol="USDC", verbose=False)
        usdc.register_wallet("alice")
        usdc.register_wallet("bob")
        usdc.mint("alice", Decimal("100"))
        usdc.transfer("alice", "bob", Decimal("40"))   # True
    """

    def __init__(
        self,
        name: str = "asset",
        symbol: str = "USDC",
        decimals: int = 6,
        clock: Optional[Clock] = None,
        verbose: bool = True,
    ):
        """
        Create a token ledger.

        Args:
            name: Ledger identifier
            symbol: Asset symbol used in log output
            decimals: Number of decimal places an amount may carry
            clock: Time source for transaction records (default: SystemClock)
            verbose: Print applied and rejected transactions (default: True)
        """
        if decimals < 0:
            raise ValueError(f"decimals must be non-negative, got {decimals}")
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.quantum = quantum(decimals)
        self.clock = clock or SystemClock()
        self.verbose = verbose
        self.balances: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        self.registered_wallets: Set[str] = {SYSTEM_WALLET}
        self.allowances: Dict[Tuple[str, str], Decimal] = {}
        self.transaction_log: List[Transaction] = []
        self._next_sequence: int = 0
        self._receive_hooks: Dict[str, List[ReceiveHook]] = defaultdict(list)

    # ========================================================================
    # READ-ONLY METHODS
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        return self.clock.now()

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    def balance_of(self, wallet_id: str) -> Decimal:
        """
        Get the balance of a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return self.balances[wallet_id]

    def allowance(self, owner: str, spender: str) -> Decimal:
        return self.allowances.get((owner, spender), ZERO)

    def positions(self) -> Positions:
        """All non-zero balances outside the system wallet."""
        return {
            w: b for w, b in self.balances.items()
            if w != SYSTEM_WALLET and b != ZERO
        }

    def total_supply(self) -> Decimal:
        """Circulating supply: everything ever minted."""
        return -self.balances[SYSTEM_WALLET]

    def verify_double_entry(self) -> Dict[str, Any]:
        """
        Verify that the ledger's balances net to zero.

        Wallets are sorted before summation to ensure deterministic
        accumulation order.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all balances sum to zero
            - 'supply': Decimal - circulating supply
            - 'net': Decimal - sum of all balances including the system wallet
        """
        net = sum((self.balances[w] for w in sorted(self.registered_wallets)), ZERO)
        return {
            'valid': net == ZERO,
            'supply': self.total_supply(),
            'net': net,
        }

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet.

        Raises:
            ValueError: If wallet is empty or already registered
        """
        if not wallet_id or not wallet_id.strip():
            raise ValueError("wallet_id cannot be empty")
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        return wallet_id

    def add_receive_hook(self, wallet_id: str, hook: ReceiveHook) -> None:
        """
        Call hook after every move that credits wallet_id.

        Hooks run after the balances are updated and the transaction is logged.
        If a hook raises, the execution that triggered it is rolled back and
        the exception propagates to whoever initiated the transfer.
        """
        self._receive_hooks[wallet_id].append(hook)

    def remove_receive_hook(self, wallet_id: str, hook: ReceiveHook) -> None:
        self._receive_hooks[wallet_id].remove(hook)

    # ========================================================================
    # TOKEN OPERATIONS (Mutating)
    # ========================================================================

    def mint(self, to: str, amount: AmountLike) -> bool:
        """Issue new tokens to a wallet."""
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValueError(f"mint amount must be positive, got {amount}")
        move = Move(amount, SYSTEM_WALLET, to, "mint")
        return self.execute([move]) == ExecuteResult.APPLIED

    def approve(self, owner: str, spender: str, amount: AmountLike) -> bool:
        """
        Let spender move up to amount out of owner's wallet.

        Use UNLIMITED for an allowance that transfer_from never decrements.
        """
        amount = to_decimal(amount)
        if amount < 0:
            raise ValueError(f"allowance cannot be negative, got {amount}")
        if owner not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {owner} not registered")
        self.allowances[(owner, spender)] = amount
        return True

    def transfer(self, sender: str, to: str, amount: AmountLike) -> bool:
        """Move amount from sender to to. Returns False if rejected."""
        move = self._make_move(sender, to, amount, "transfer")
        if move is None:
            return False
        return self.execute([move]) == ExecuteResult.APPLIED

    def transfer_from(self, spender: str, owner: str, to: str, amount: AmountLike) -> bool:
        """
        Move amount from owner to to on behalf of spender.

        Requires an allowance of at least amount; the allowance is only
        consumed if the move is applied.
        """
        move = self._make_move(owner, to, amount, f"transfer_from:{spender}")
        if move is None:
            return False
        current = self.allowance(owner, spender)
        if current < move.quantity:
            self._reject(f"allowance {owner}->{spender}: {current} < {move.quantity}")
            return False
        if current != UNLIMITED:
            self.allowances[(owner, spender)] = current - move.quantity
        try:
            result = self.execute([move])
        except Exception:
            if current != UNLIMITED:
                self.allowances[(owner, spender)] = current
            raise
        if result != ExecuteResult.APPLIED and current != UNLIMITED:
            self.allowances[(owner, spender)] = current
        return result == ExecuteResult.APPLIED

    def _make_move(self, source: str, dest: str, amount: AmountLike,
                   reference: str) -> Optional[Move]:
        try:
            return Move(to_decimal(amount), source, dest, reference)
        except ValueError as e:
            self._reject(str(e))
            return None

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def execute(self, moves: List[Move]) -> ExecuteResult:
        """
        Execute moves atomically.

        All moves are validated against wallet registration, asset precision
        and non-negative balances (the system wallet is exempt) before any
        balance changes. Receive hooks run after the moves are applied; if one
        raises, balances, allowances and the log are restored to what they
        were before this call and the exception propagates.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.REJECTED if validation failed
        """
        if not moves:
            raise ValueError("execute() needs at least one move")

        valid, reason = self._validate(moves)
        if not valid:
            self._reject(reason)
            return ExecuteResult.REJECTED

        saved = self._save()
        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            moves=tuple(moves),
            exec_id=f"exec:{self.name}:{sequence:012d}",
            ledger_name=self.name,
            execution_time=self.current_time,
            sequence_number=sequence,
        )
        for move in tx.moves:
            self.balances[move.source] -= move.quantity
            self.balances[move.dest] += move.quantity
        self.transaction_log.append(tx)

        if self.verbose:
            for move in tx.moves:
                print(f"✓ {self.name}: {move.quantity} {self.symbol} "
                      f"{move.source} → {move.dest} [{move.reference}]")

        try:
            for move in tx.moves:
                for hook in list(self._receive_hooks.get(move.dest, ())):
                    hook(move)
        except Exception:
            self._restore(saved)
            if self.verbose:
                print(f"↺ {self.name}: rolled back {tx.exec_id} after a receive hook failed")
            raise
        return ExecuteResult.APPLIED

    def _save(self) -> Tuple[Dict[str, Decimal], Dict[Tuple[str, str], Decimal], int, int]:
        return (dict(self.balances), dict(self.allowances),
                len(self.transaction_log), self._next_sequence)

    def _restore(self, saved) -> None:
        balances, allowances, log_length, sequence = saved
        self.balances = defaultdict(lambda: ZERO, balances)
        self.allowances = allowances
        del self.transaction_log[log_length:]
        self._next_sequence = sequence

    def _validate(self, moves: List[Move]) -> Tuple[bool, str]:
        net: Dict[str, Decimal] = defaultdict(lambda: ZERO)
        for move in moves:
            if move.source not in self.registered_wallets:
                return False, f"wallet not registered: {move.source}"
            if move.dest not in self.registered_wallets:
                return False, f"wallet not registered: {move.dest}"
            if move.quantity != move.quantity.quantize(self.quantum):
                return False, f"{move.quantity} exceeds {self.decimals} decimal places"
            net[move.source] -= move.quantity
            net[move.dest] += move.quantity

        # SYSTEM_WALLET is the issuer and may go negative
        for wallet, delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            proposed = self.balances[wallet] + delta
            if proposed < ZERO:
                return False, f"{wallet}: {self.balances[wallet]} + {delta} < 0"
        return True, ""

    def _reject(self, reason: str) -> None:
        if self.verbose:
            print(f"✗ {self.name} REJECTED: {reason}")

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> TokenLedger:
        """
        Create an independent copy of balances, allowances and the log.

        Receive hooks are not copied: they belong to live collaborators.
        """
        cloned = TokenLedger.__new__(TokenLedger)
        cloned.name = self.name
        cloned.symbol = self.symbol
        cloned.decimals = self.decimals
        cloned.quantum = self.quantum
        cloned.clock = self.clock
        cloned.verbose = self.verbose
        cloned.balances = defaultdict(lambda: ZERO, self.balances)
        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.allowances = dict(self.allowances)
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence
        cloned._receive_hooks = defaultdict(list)
        return cloned
