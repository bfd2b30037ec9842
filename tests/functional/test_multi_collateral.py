"""
test_multi_collateral.py - Multi-collateral scenarios driven by price paths

Tests a WETH + WBTC market over several days:
- Health factor drift as time-series prices move
- Liquidation against either collateral asset
- Staleness rejecting old prices while deposits continue
- Conservation across the whole run
"""

import pytest
from datetime import timedelta

from dsc_engine import (
    TimeSeriesPriceFeed, EngineConfig, StalenessPolicy, EventKind,
    HealthFactorOk, StalePrice, MIN_HEALTH_FACTOR,
)
from tests.conftest import WAD, T0, build_engine, feed_price, open_position


DAY = timedelta(days=1)


@pytest.fixture
def paths(chain):
    clock = lambda: chain.current_time
    eth = TimeSeriesPriceFeed(clock, [
        (T0, feed_price(2_000)),
        (T0 + DAY, feed_price(1_500)),
        (T0 + 2 * DAY, feed_price(1_000)),
    ])
    btc = TimeSeriesPriceFeed(clock, [
        (T0, feed_price(30_000)),
        (T0 + 3 * DAY, feed_price(25_000)),
    ])
    return [eth, btc]


@pytest.fixture
def market(chain, paths):
    """
    alice: 10 WETH + 1 WBTC backing 20,000 DSC
    liquidator: 20 WETH backing 10,000 DSC
    """
    engine, weth, wbtc, dsc, _ = build_engine(chain, feeds=paths)
    weth.issue("alice", 10 * WAD)
    wbtc.issue("alice", WAD)
    weth.approve("alice", engine.address, 10 * WAD)
    wbtc.approve("alice", engine.address, WAD)
    engine.deposit_collateral("alice", "WETH", 10 * WAD)
    engine.deposit_collateral_and_mint_dsc("alice", "WBTC", WAD, 20_000 * WAD)
    open_position(engine, weth, "liquidator", 20 * WAD, 10_000 * WAD)
    dsc.approve("liquidator", engine.address, 10_000 * WAD)
    return engine, weth, wbtc, dsc


class TestPricePath:

    def test_health_factor_follows_prices(self, chain, market):
        engine, *_ = market
        expected = [
            (T0, 1_250_000_000_000_000_000),
            (T0 + DAY, 1_125_000_000_000_000_000),
            (T0 + 2 * DAY, 1_000_000_000_000_000_000),
            (T0 + 3 * DAY, 875_000_000_000_000_000),
        ]
        for when, hf in expected:
            chain.advance_time(when)
            assert engine.get_health_factor("alice") == hf

    def test_collateral_value_breakdown(self, chain, market):
        engine, *_ = market
        chain.advance_time(T0 + 2 * DAY)
        info = engine.get_account_information("alice")
        assert info.collateral_value_usd == 40_000 * WAD
        assert engine.get_usd_value("WETH", 10 * WAD) == 10_000 * WAD
        assert engine.get_usd_value("WBTC", WAD) == 30_000 * WAD

    def test_max_mintable_shrinks(self, chain, market):
        engine, *_ = market
        assert engine.get_max_mintable("alice") == 5_000 * WAD
        chain.advance_time(T0 + 2 * DAY)
        assert engine.get_max_mintable("alice") == 0


class TestLiquidationAcrossAssets:

    def test_seize_btc_then_eth(self, chain, market):
        engine, weth, wbtc, dsc = market
        chain.advance_time(T0 + 3 * DAY)

        quote = engine.liquidate("liquidator", "alice", "WBTC", 5_000 * WAD)
        assert quote.total_collateral_to_seize == 22 * 10 ** 16
        assert wbtc.balance_of("liquidator") == 22 * 10 ** 16
        assert engine.get_health_factor("alice") == 983_333_333_333_333_333

        quote = engine.liquidate("liquidator", "alice", "WETH", 5_000 * WAD)
        assert quote.total_collateral_to_seize == 55 * 10 ** 17
        assert weth.balance_of("liquidator") == 55 * 10 ** 17
        assert engine.get_health_factor("alice") == 1_200_000_000_000_000_000

        with pytest.raises(HealthFactorOk):
            engine.liquidate("liquidator", "alice", "WETH", 1_000 * WAD)

        assert dsc.total_supply() == 20_000 * WAD
        assert engine.get_health_factor("liquidator") >= MIN_HEALTH_FACTOR
        liquidations = [e for e in engine.event_log if e.kind == EventKind.LIQUIDATED]
        assert [e.asset_id for e in liquidations] == ["WBTC", "WETH"]

    def test_conservation_after_run(self, chain, market):
        engine, weth, wbtc, dsc = market
        chain.advance_time(T0 + 3 * DAY)
        engine.liquidate("liquidator", "alice", "WBTC", 5_000 * WAD)
        engine.liquidate("liquidator", "alice", "WETH", 5_000 * WAD)

        assert engine.collateral_ledger.total_debt() == dsc.total_supply()
        assert engine.collateral_ledger.total_deposited("WETH") == weth.balance_of(engine.address)
        assert engine.collateral_ledger.total_deposited("WBTC") == wbtc.balance_of(engine.address)
        result = chain.verify_conservation({"DSC": 20_000 * WAD})
        assert result['valid'], result['discrepancies']


class TestStaleness:

    @pytest.fixture
    def strict_market(self, chain, paths):
        config = EngineConfig(staleness=StalenessPolicy(max_age=timedelta(hours=12)))
        engine, weth, _, dsc, _ = build_engine(
            chain, feeds=paths, config=config, clock=lambda: chain.current_time,
        )
        weth.issue("alice", 20 * WAD)
        weth.approve("alice", engine.address, 20 * WAD)
        return engine, dsc

    def test_old_price_blocks_mint(self, chain, strict_market):
        engine, dsc = strict_market
        chain.advance_time(T0 + DAY + timedelta(hours=13))
        engine.deposit_collateral("alice", "WETH", 10 * WAD)
        with pytest.raises(StalePrice):
            engine.mint_dsc("alice", 100 * WAD)
        assert dsc.balance_of("alice") == 0

    def test_new_observation_unblocks(self, chain, paths, strict_market):
        engine, dsc = strict_market
        chain.advance_time(T0 + DAY + timedelta(hours=13))
        engine.deposit_collateral("alice", "WETH", 10 * WAD)
        paths[0].add_price(T0 + DAY + timedelta(hours=12), feed_price(1_600))
        engine.mint_dsc("alice", 100 * WAD)
        assert dsc.balance_of("alice") == 100 * WAD
