"""
conftest.py - Shared pytest fixtures for season fund tests

Provides common fixtures used across unit, conformance and functional tests:
- Virtual clock anchored at a fixed instant
- Token ledger with the standard test wallets
- Funds at various points of a season (empty, capitalised, insured)
"""

import pytest
from decimal import Decimal

from seasonfund import (
    TokenLedger, MockWeatherOracle, FixedClock, OffsetClock,
    FundConfig, SeasonFund,
)

from tests.fund_helpers import T0, WINDOW, ADMIN, WALLETS, make_fund, invest, insure


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Virtual clock at T0 that only moves when a test moves it."""
    return OffsetClock(FixedClock(T0))


@pytest.fixture
def usdc(clock):
    """Token ledger with every standard test wallet registered."""
    ledger = TokenLedger("usdc", decimals=6, clock=clock, verbose=False)
    for wallet in WALLETS:
        ledger.register_wallet(wallet)
    return ledger


@pytest.fixture
def oracle(clock):
    """Weather oracle reading 5: below the default threshold of 10."""
    return MockWeatherOracle(5, clock)


@pytest.fixture
def config():
    return FundConfig(admin=ADMIN, window=WINDOW, initial_premium=Decimal("9"))


# =============================================================================
# FUND FIXTURES
# =============================================================================

@pytest.fixture
def fund(usdc, oracle, config, clock):
    """Season 1, ACTIVE, nothing deposited or sold."""
    return SeasonFund(usdc, oracle, config, clock=clock, verbose=False, test_mode=True)


@pytest.fixture
def capitalised_fund():
    """Investor has deposited 1000 in season 1."""
    fund = make_fund()
    invest(fund, "investor", 1000)
    return fund


@pytest.fixture
def insured_fund(capitalised_fund):
    """Capitalised fund where farmer holds 3 units (premium 9, payout 36)."""
    insure(capitalised_fund, "farmer", 3)
    return capitalised_fund
