"""
seasonfund - Seasonal Pooled Parametric Insurance

Farmers buy coverage units for a season's premium, investors back the pool
with capital for shares, holders are paid automatically when the oracle
reading drops below the threshold during the claim window, and investors
redeem whatever the pool holds afterwards in proportion to their shares.

Usage:
    from seasonfund import (
        SeasonFund, FundConfig, TokenLedger, MockWeatherOracle, UNLIMITED,
    )

    usdc = TokenLedger("usdc")
    for wallet in ("admin", "farmer", "investor"):
        usdc.register_wallet(wallet)

    fund = SeasonFund(usdc, MockWeatherOracle(5), FundConfig(admin="admin"),
                      test_mode=True)

    usdc.mint("investor", 1000)
    usdc.approve("investor", fund.pool_wallet, UNLIMITED)
    fund.deposit("investor", 1000)

    usdc.mint("farmer", 27)
    usdc.approve("farmer", fund.pool_wallet, UNLIMITED)
    fund.buy_policy("farmer", 3)

    fund.advance_phase("admin")            # INACTIVE
    fund.advance_phase("admin")            # CLAIM
    fund.claim_policies("farmer")          # pays 3 * 36
"""

# Core types
from .core import (
    Clock,
    AssetLedger,
    TriggerOracle,
    Move,
    Transaction,
    OracleReading,
    SeasonTerms,
    FundConfig,
    Phase,
    PHASE_ORDER,
    ErrorKind,
    ExecuteResult,
    # Events
    PolicyBought,
    ClaimMade,
    InvestmentMade,
    InvestmentWithdrawn,
    NewSeasonStarted,
    # Exceptions
    FundError,
    InvalidAmount,
    UnknownSeason,
    Unauthorized,
    ReentrantCall,
    PhaseViolation,
    NotActivePeriod,
    NotClaimPeriod,
    NotWithdrawPeriod,
    NotFinished,
    SeasonNotActive,
    ConditionNotMet,
    NoPoliciesToClaim,
    InsufficientFunds,
    TransferFailed,
    LedgerError,
    WalletNotRegistered,
    # Constants
    SYSTEM_WALLET,
    DEFAULT_POOL_WALLET,
    DEFAULT_WINDOW,
    DEFAULT_TRIGGER_THRESHOLD,
    DEFAULT_PAYOUT_MULTIPLIER,
    DEFAULT_PREMIUM,
    DEFAULT_ASSET_DECIMALS,
)

# Clocks
from .clock import SystemClock, FixedClock, OffsetClock

# Asset ledger
from .ledger import TokenLedger, UNLIMITED

# Oracles
from .oracle import MockWeatherOracle, TimeSeriesOracle, is_triggered

# Lifecycle
from .lifecycle import SeasonLifecycle, phase_at, phase_schedule, next_phase

# Policies
from .policy import PolicyLedger, Season, create_season, quote_premium, quote_payout

# Vault
from .vault import Vault, VaultPosition, shares_for_deposit, assets_for_shares, share_price

# Fund
from .fund import SeasonFund, FundState


__all__ = [
    # Core
    'Clock', 'AssetLedger', 'TriggerOracle', 'Move', 'Transaction', 'OracleReading',
    'SeasonTerms', 'FundConfig', 'Phase', 'PHASE_ORDER', 'ErrorKind', 'ExecuteResult',
    # Events
    'PolicyBought', 'ClaimMade', 'InvestmentMade', 'InvestmentWithdrawn', 'NewSeasonStarted',
    # Exceptions
    'FundError', 'InvalidAmount', 'UnknownSeason', 'Unauthorized', 'ReentrantCall',
    'PhaseViolation', 'NotActivePeriod', 'NotClaimPeriod', 'NotWithdrawPeriod',
    'NotFinished', 'SeasonNotActive', 'ConditionNotMet', 'NoPoliciesToClaim',
    'InsufficientFunds', 'TransferFailed', 'LedgerError', 'WalletNotRegistered',
    # Constants
    'SYSTEM_WALLET', 'DEFAULT_POOL_WALLET', 'DEFAULT_WINDOW', 'DEFAULT_TRIGGER_THRESHOLD',
    'DEFAULT_PAYOUT_MULTIPLIER', 'DEFAULT_PREMIUM', 'DEFAULT_ASSET_DECIMALS',
    # Clocks
    'SystemClock', 'FixedClock', 'OffsetClock',
    # Asset ledger
    'TokenLedger', 'UNLIMITED',
    # Oracles
    'MockWeatherOracle', 'TimeSeriesOracle', 'is_triggered',
    # Lifecycle
    'SeasonLifecycle', 'phase_at', 'phase_schedule', 'next_phase',
    # Policies
    'PolicyLedger', 'Season', 'create_season', 'quote_premium', 'quote_payout',
    # Vault
    'Vault', 'VaultPosition', 'shares_for_deposit', 'assets_for_shares', 'share_price',
    # Fund
    'SeasonFund', 'FundState',
]

__version__ = '1.0.0'
