"""
test_season_scenarios.py - End-to-end season walkthroughs

Full seasons driven through the public API:
- Drought season: deposit, sell cover, pay claims, investors take the rest
- Good-weather season: claims rejected, investors keep the premiums
- Bootstrap and insolvency edge cases
- Multi-season rollover with a time-series oracle
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from seasonfund import (
    Phase, SeasonFund, FundConfig, TokenLedger, TimeSeriesOracle,
    FixedClock, OffsetClock, UNLIMITED,
    PolicyBought, ClaimMade, InvestmentMade, InvestmentWithdrawn, NewSeasonStarted,
    ConditionNotMet, InsufficientFunds,
)

from tests.fund_helpers import T0, WINDOW, ADMIN, make_fund, give, advance_to, invest, insure


class TestDroughtSeason:

    def test_default_terms(self):
        """Premium 9, payout 36 per unit: 1000 + 27 in, 108 out."""
        fund = make_fund()
        assert invest(fund, "investor", 1000) == Decimal("1000")
        assert insure(fund, "farmer", 3) == Decimal("27")
        assert fund.pool_balance() == Decimal("1027")

        advance_to(fund, Phase.CLAIM)
        assert fund.claim_policies("farmer") == Decimal("108")
        assert fund.pool_balance() == Decimal("919")

        advance_to(fund, Phase.WITHDRAW)
        assert fund.redeem_all("investor") == Decimal("919")
        assert fund.asset.balance_of("investor") == Decimal("919")
        assert fund.asset.balance_of("farmer") == Decimal("108")
        assert fund.pool_balance() == Decimal("0")

        assert [type(e) for e in fund.events] == [
            NewSeasonStarted, InvestmentMade, PolicyBought, ClaimMade, InvestmentWithdrawn,
        ]
        assert fund.verify_pool_conservation()['valid']
        assert fund.asset.verify_double_entry()['valid']

    def test_premium_three_payout_thirty_six(self):
        """Cover priced at 3 per unit paying 36: 1000 + 9 in, 108 out."""
        fund = make_fund(premium=Decimal("3"), multiplier=12)
        invest(fund, "investor", 1000)
        insure(fund, "farmer", 3)
        assert fund.pool_balance() == Decimal("1009")

        advance_to(fund, Phase.CLAIM)
        assert fund.claim_policies("farmer") == Decimal("108")
        assert fund.pool_balance() == Decimal("901")

        advance_to(fund, Phase.WITHDRAW)
        assert fund.redeem_all("investor") == Decimal("901")

    def test_two_investors_share_the_loss(self):
        fund = make_fund()
        invest(fund, "investor", 600)
        invest(fund, "investor2", 400)
        insure(fund, "farmer", 5)
        insure(fund, "farmer2", 5)
        assert fund.pool_balance() == Decimal("1090")

        advance_to(fund, Phase.CLAIM)
        fund.claim_policies("farmer")
        assert fund.pool_balance() == Decimal("910")
        # farmer2 never claims: their cover lapses and the pool keeps it

        advance_to(fund, Phase.WITHDRAW)
        assert fund.redeem_all("investor") == Decimal("546")
        assert fund.redeem_all("investor2") == Decimal("364")
        assert fund.pool_balance() == Decimal("0")


class TestGoodWeatherSeason:

    def test_investors_keep_premiums(self):
        fund = make_fund(oracle_value=15)
        invest(fund, "investor", 1000)
        insure(fund, "farmer", 3)

        advance_to(fund, Phase.CLAIM)
        with pytest.raises(ConditionNotMet):
            fund.claim_policies("farmer")
        assert fund.units_of("farmer") == 3

        advance_to(fund, Phase.WITHDRAW)
        assert fund.redeem_all("investor") == Decimal("1027")
        assert fund.asset.balance_of("farmer") == Decimal("0")


class TestBootstrap:

    def test_cover_needs_capital_first(self):
        fund = make_fund()
        give(fund, "farmer", 27)
        with pytest.raises(InsufficientFunds):
            fund.buy_policy("farmer", 3)
        invest(fund, "investor", 1000)
        assert fund.buy_policy("farmer", 3) == Decimal("27")

    def test_donation_before_first_deposit_goes_to_first_investor(self):
        fund = make_fund()
        give(fund, "alice", 50)
        fund.asset.transfer("alice", fund.pool_wallet, 50)
        report = fund.verify_pool_conservation()
        assert report['difference'] == Decimal("50")

        assert invest(fund, "investor", 100) == Decimal("100")
        advance_to(fund, Phase.WITHDRAW)
        assert fund.redeem_all("investor") == Decimal("150")
        assert fund.verify_pool_conservation()['difference'] == Decimal("50")


class TestInsolventPool:

    def _drained_fund(self):
        fund = make_fund()
        invest(fund, "investor", 81)
        insure(fund, "farmer", 3)
        assert fund.pool_balance() == Decimal("108")
        advance_to(fund, Phase.CLAIM)
        fund.claim_policies("farmer")
        assert fund.pool_balance() == Decimal("0")
        assert fund.total_shares == Decimal("81")
        return fund

    def test_worthless_shares_redeem_for_nothing(self):
        fund = self._drained_fund()
        advance_to(fund, Phase.WITHDRAW)
        assert fund.preview_redeem("investor") == Decimal("0")
        assert fund.redeem_all("investor") == Decimal("0")
        assert fund.total_shares == Decimal("0")
        assert isinstance(fund.events[-1], InvestmentWithdrawn)

    def test_new_capital_rejected_while_worthless_shares_exist(self):
        fund = self._drained_fund()
        advance_to(fund, Phase.FINISHED)
        fund.start_new_season(ADMIN, 9)
        give(fund, "investor2", 100)
        with pytest.raises(InsufficientFunds):
            fund.deposit("investor2", 100)

    def test_capital_accepted_after_worthless_shares_redeemed(self):
        fund = self._drained_fund()
        advance_to(fund, Phase.WITHDRAW)
        fund.redeem_all("investor")
        advance_to(fund, Phase.FINISHED)
        fund.start_new_season(ADMIN, 9)
        assert invest(fund, "investor2", 100) == Decimal("100")


class TestMultiSeason:

    def test_rollover_keeps_capital_and_history(self):
        fund = make_fund(oracle_value=15)
        invest(fund, "investor", 1000)
        insure(fund, "farmer", 3)
        advance_to(fund, Phase.FINISHED)

        assert fund.start_new_season(ADMIN, Decimal("10")) == 2
        assert fund.pool_balance() == Decimal("1027")
        assert fund.shares_of("investor") == Decimal("1000")
        assert fund.units_of("farmer") == 0

        fund.oracle.set_value(2)
        insure(fund, "farmer", 2)
        advance_to(fund, Phase.CLAIM)
        assert fund.claim_policies("farmer") == Decimal("80")
        advance_to(fund, Phase.WITHDRAW)
        assert fund.redeem_all("investor") == Decimal("967")

        seasons = fund.seasons()
        assert [(s.season_id, s.premium, s.total_units_sold) for s in seasons] == [
            (1, Decimal("9"), 3), (2, Decimal("10"), 2),
        ]
        assert seasons[1].created_at == T0 + 4 * WINDOW
        assert fund.verify_pool_conservation()['valid']

    def test_time_series_weather_across_seasons(self):
        clock = OffsetClock(FixedClock(T0))
        # wet first claim window, dry second one
        oracle = TimeSeriesOracle(
            [(T0, 30), (T0 + 5 * WINDOW, 4)],
            clock=clock,
        )
        usdc = TokenLedger("usdc", clock=clock, verbose=False)
        for wallet in ("admin", "farmer", "investor"):
            usdc.register_wallet(wallet)
            if wallet != "admin":
                usdc.mint(wallet, 10000)
                usdc.approve(wallet, "season_fund", UNLIMITED)
        fund = SeasonFund(usdc, oracle, FundConfig(admin=ADMIN, window=WINDOW),
                          clock=clock, verbose=False, test_mode=True)

        fund.deposit("investor", 1000)
        fund.buy_policy("farmer", 3)
        advance_to(fund, Phase.CLAIM)
        with pytest.raises(ConditionNotMet):
            fund.claim_policies("farmer")

        advance_to(fund, Phase.FINISHED)
        fund.start_new_season(ADMIN, 9)
        fund.buy_policy("farmer", 3)
        advance_to(fund, Phase.CLAIM)
        assert clock.now() == T0 + 6 * WINDOW
        assert fund.claim_policies("farmer") == Decimal("108")
        assert fund.pool_balance() == Decimal("946")
