"""
conftest.py - Shared pytest fixtures for engine tests

Provides common fixtures used across unit, conformance and functional tests:
- A chain ledger with WETH, WBTC and the DSC stable unit
- Mock price feeds at $2000 (ETH) and $1000 (BTC)
- An engine that owns the stable unit
- Helpers to fund users and open positions
"""

import pytest
from datetime import datetime, timedelta

from dsc_engine import (
    AssetLedger, MockToken, StableUnit, MockPriceFeed, DSCEngine,
    EngineConfig, StalenessPolicy,
)


# =============================================================================
# CONSTANTS
# =============================================================================

WAD = 10 ** 18
FEED_DECIMALS = 8
ETH_USD_PRICE = 2000 * 10 ** FEED_DECIMALS
BTC_USD_PRICE = 1000 * 10 ** FEED_DECIMALS
STARTING_BALANCE = 100 * WAD
AMOUNT_COLLATERAL = 10 * WAD
AMOUNT_TO_MINT = 100 * WAD
DEPLOYER = "deployer"
T0 = datetime(2025, 1, 1)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def feed_price(usd: int) -> int:
    """Whole-dollar price in 8-digit feed precision."""
    return usd * 10 ** FEED_DECIMALS


def fund(token: MockToken, user: str, amount: int = STARTING_BALANCE) -> None:
    token.issue(user, amount)


def fund_and_approve(engine: DSCEngine, token: MockToken, user: str, amount: int = STARTING_BALANCE) -> None:
    """Give `user` tokens and approve the engine to pull all of them."""
    token.issue(user, amount)
    token.approve(user, engine.address, amount)


def open_position(
    engine: DSCEngine,
    token: MockToken,
    user: str,
    collateral: int = AMOUNT_COLLATERAL,
    minted: int = AMOUNT_TO_MINT,
) -> None:
    """Fund, approve, deposit and mint in one call."""
    fund_and_approve(engine, token, user, collateral)
    engine.deposit_collateral_and_mint_dsc(user, token.symbol, collateral, minted)


def build_engine(chain: AssetLedger, feeds=None, config=None, clock=None, verbose=False):
    """Create WETH/WBTC/DSC on `chain` and an engine owning DSC."""
    weth = MockToken(chain, "WETH", "Wrapped Ether")
    wbtc = MockToken(chain, "WBTC", "Wrapped Bitcoin")
    dsc = StableUnit(chain, owner=DEPLOYER)
    if feeds is None:
        feeds = [
            MockPriceFeed(FEED_DECIMALS, ETH_USD_PRICE, clock=clock),
            MockPriceFeed(FEED_DECIMALS, BTC_USD_PRICE, clock=clock),
        ]
    engine = DSCEngine([weth, wbtc], feeds, dsc, config=config, clock=clock, verbose=verbose)
    dsc.transfer_ownership(DEPLOYER, engine.address)
    return engine, weth, wbtc, dsc, feeds


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def chain():
    """Empty asset ledger at T0."""
    return AssetLedger("chain", initial_time=T0, verbose=False)


@pytest.fixture
def deployment(chain):
    """(engine, weth, wbtc, dsc, [eth_usd_feed, btc_usd_feed])."""
    return build_engine(chain)


@pytest.fixture
def engine(deployment):
    return deployment[0]


@pytest.fixture
def weth(deployment):
    return deployment[1]


@pytest.fixture
def wbtc(deployment):
    return deployment[2]


@pytest.fixture
def dsc(deployment):
    return deployment[3]


@pytest.fixture
def eth_usd_feed(deployment):
    return deployment[4][0]


@pytest.fixture
def btc_usd_feed(deployment):
    return deployment[4][1]


@pytest.fixture
def deposited_user(engine, weth):
    """'alice' with 10 WETH deposited and no debt."""
    fund_and_approve(engine, weth, "alice", AMOUNT_COLLATERAL)
    engine.deposit_collateral("alice", "WETH", AMOUNT_COLLATERAL)
    return "alice"


@pytest.fixture
def minted_user(engine, weth):
    """'alice' with 10 WETH deposited and 100 DSC minted."""
    open_position(engine, weth, "alice")
    return "alice"


@pytest.fixture
def timed_deployment(chain):
    """Like `deployment`, but prices expire one hour after publication (chain clock)."""
    config = EngineConfig(staleness=StalenessPolicy(max_age=timedelta(hours=1)))
    return build_engine(chain, config=config, clock=lambda: chain.current_time)
