"""
test_valuation.py - Unit tests for USD valuation

Tests:
- usd_value and amount_from_usd against reference values
- Truncation direction
- Multi-asset account totals
- Oracle failures propagate
"""

import pytest

from dsc_engine import OracleError, UnsupportedAsset, AccountInformation
from tests.conftest import WAD, feed_price, fund_and_approve


class TestConversions:

    def test_usd_value(self, engine):
        # 15 WETH at $2000
        assert engine.get_usd_value("WETH", 15 * WAD) == 30_000 * WAD

    def test_token_amount_from_usd(self, engine):
        # $100 of WETH at $2000
        assert engine.get_token_amount_from_usd("WETH", 100 * WAD) == 5 * 10**16

    def test_amount_from_usd_rounds_down(self, engine, eth_usd_feed):
        eth_usd_feed.update_answer(feed_price(3000))
        # $1 at $3000 is 0.000333... WETH
        assert engine.get_token_amount_from_usd("WETH", WAD) == 333333333333333

    def test_zero_amount(self, engine):
        assert engine.get_usd_value("WETH", 0) == 0

    def test_unsupported_asset(self, engine):
        with pytest.raises(UnsupportedAsset):
            engine.get_usd_value("DOGE", 1)

    def test_non_positive_price(self, engine, eth_usd_feed):
        eth_usd_feed.update_answer(0)
        with pytest.raises(OracleError):
            engine.get_usd_value("WETH", WAD)

    def test_price_sample(self, engine):
        sample = engine.get_price("WBTC")
        assert sample.price == feed_price(1000)
        assert sample.normalized == 1000 * WAD


class TestAccountValue:

    def test_empty_account(self, engine):
        assert engine.get_account_collateral_value("nobody") == 0
        assert engine.get_account_information("nobody") == AccountInformation(0, 0)

    def test_multi_asset_total(self, engine, weth, wbtc):
        fund_and_approve(engine, weth, "alice", 2 * WAD)
        fund_and_approve(engine, wbtc, "alice", 3 * WAD)
        engine.deposit_collateral("alice", "WETH", 2 * WAD)
        engine.deposit_collateral("alice", "WBTC", 3 * WAD)
        assert engine.valuation.collateral_values("alice") == {
            "WETH": 4_000 * WAD,
            "WBTC": 3_000 * WAD,
        }
        assert engine.get_account_collateral_value("alice") == 7_000 * WAD

    def test_unheld_asset_feed_is_not_read(self, engine, weth, btc_usd_feed):
        fund_and_approve(engine, weth, "alice", WAD)
        engine.deposit_collateral("alice", "WETH", WAD)
        btc_usd_feed.update_answer(0)
        assert engine.get_account_collateral_value("alice") == 2_000 * WAD

    def test_value_follows_price(self, engine, deposited_user, eth_usd_feed):
        before = engine.get_account_collateral_value(deposited_user)
        eth_usd_feed.update_answer(feed_price(1000))
        assert engine.get_account_collateral_value(deposited_user) == before // 2
