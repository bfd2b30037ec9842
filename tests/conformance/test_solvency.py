"""
Solvency Conformance Tests

INVARIANT: Every committed operation that grows debt or releases
collateral leaves the acting account healthy.

    mint / redeem / burn / composites commit ⟹ HF(user) >= MIN_HEALTH_FACTOR
    liquidate commits                      ⟹ HF(liquidator) >= MIN_HEALTH_FACTOR
                                              ∧ HF(user) improved

Deposits never check health: adding collateral can only help.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from datetime import datetime

from dsc_engine import AssetLedger, EngineError, MAX_UINT256, MIN_HEALTH_FACTOR
from tests.conftest import build_engine, WAD, feed_price


USERS = ["alice", "bob", "carol"]
ASSETS = ["WETH", "WBTC"]

amount = st.integers(min_value=1, max_value=30 * WAD)
debt_amount = st.integers(min_value=1, max_value=30_000 * WAD)

operation = st.one_of(
    st.tuples(st.just("deposit_collateral"), st.sampled_from(USERS), st.sampled_from(ASSETS), amount),
    st.tuples(st.just("mint_dsc"), st.sampled_from(USERS), debt_amount),
    st.tuples(st.just("redeem_collateral"), st.sampled_from(USERS), st.sampled_from(ASSETS), amount),
    st.tuples(st.just("burn_dsc"), st.sampled_from(USERS), debt_amount),
    st.tuples(
        st.just("deposit_collateral_and_mint_dsc"),
        st.sampled_from(USERS), st.sampled_from(ASSETS), amount, debt_amount,
    ),
    st.tuples(
        st.just("redeem_collateral_for_dsc"),
        st.sampled_from(USERS), st.sampled_from(ASSETS), amount, debt_amount,
    ),
    st.tuples(st.just("liquidate"), st.sampled_from(USERS), st.sampled_from(USERS), st.sampled_from(ASSETS), debt_amount),
    st.tuples(st.just("price"), st.integers(min_value=300, max_value=4_000)),
)


def fresh_engine():
    chain = AssetLedger("chain", initial_time=datetime(2025, 1, 1))
    engine, weth, wbtc, dsc, feeds = build_engine(chain)
    for user in USERS:
        for token in (weth, wbtc):
            token.issue(user, 100 * WAD)
            token.approve(user, engine.address, MAX_UINT256)
        dsc.approve(user, engine.address, MAX_UINT256)
    return engine, feeds


class TestSolvencyProperties:

    @given(st.lists(operation, min_size=1, max_size=40))
    @settings(max_examples=60, deadline=None)
    def test_committed_operations_leave_actor_healthy(self, operations):
        """
        PROPERTY: Right after any committed non-deposit operation, the
        account that acted is at or above the minimum health factor.
        """
        engine, feeds = fresh_engine()
        for name, *args in operations:
            if name == "price":
                feeds[0].update_answer(feed_price(args[0]))
                continue
            before = engine.get_health_factor(args[1]) if name == "liquidate" else None
            try:
                getattr(engine, name)(*args)
            except EngineError:
                continue
            if name == "deposit_collateral":
                continue
            actor = args[0]
            assert engine.get_health_factor(actor) >= MIN_HEALTH_FACTOR
            if name == "liquidate" and args[0] != args[1]:
                assert engine.get_health_factor(args[1]) > before

    @given(
        collateral=st.integers(min_value=1, max_value=1_000 * WAD),
        price=st.integers(min_value=1, max_value=100_000),
    )
    @settings(max_examples=100, deadline=None)
    def test_max_mintable_is_exactly_the_ceiling(self, collateral, price):
        """
        PROPERTY: Minting get_max_mintable() succeeds and leaves the account
        healthy; one more unit would break it.
        """
        engine, feeds = fresh_engine()
        feeds[0].update_answer(feed_price(price))
        weth = engine.get_collateral_token("WETH")
        weth.issue("dave", collateral)
        weth.approve("dave", engine.address, collateral)
        engine.deposit_collateral("dave", "WETH", collateral)

        ceiling = engine.get_max_mintable("dave")
        if ceiling > 0:
            engine.mint_dsc("dave", ceiling)
            assert engine.get_health_factor("dave") >= MIN_HEALTH_FACTOR
        assert not engine.simulate("mint_dsc", "dave", 1).ok


class TestSolvencyExamples:

    def test_price_drop_does_not_block_deposits(self, engine, weth, eth_usd_feed):
        weth.issue("alice", 20 * WAD)
        weth.approve("alice", engine.address, 20 * WAD)
        engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10 * WAD, 10_000 * WAD)
        eth_usd_feed.update_answer(feed_price(1_000))
        assert engine.get_health_factor("alice") < MIN_HEALTH_FACTOR
        engine.deposit_collateral("alice", "WETH", 5 * WAD)
        assert engine.get_collateral_balance_of_user("alice", "WETH") == 15 * WAD
