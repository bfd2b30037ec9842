"""
Atomicity Conformance Tests

INVARIANT: Engine operations are all-or-nothing.

    ∀ operation O:
        O commits ⟹ every ledger, token and notification effect of O is kept
        O raises  ⟹ state after O == state before O, and no notification is sent

Partial application is impossible: every effect happens inside one
checkpointed scope.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from datetime import datetime

from dsc_engine import AssetLedger, EngineError, MAX_UINT256
from tests.conftest import build_engine, WAD, feed_price


USERS = ["alice", "bob", "carol"]


def snapshot(engine, chain):
    """Everything observable about the engine and its collaborators."""
    balances = {w: chain.get_wallet_balances(w) for w in sorted(chain.list_wallets())}
    return {
        "accounts": {u: engine.get_account(u) for u in USERS + [engine.address]},
        "owners": engine.collateral_ledger.owners(),
        "balances": {w: b for w, b in balances.items() if b},
        "allowances": dict(chain.allowances),
        "log_length": len(chain.transaction_log),
        "events": list(engine.event_log),
    }


def fresh_engine():
    chain = AssetLedger("chain", initial_time=datetime(2025, 1, 1))
    engine, weth, wbtc, dsc, feeds = build_engine(chain)
    for user in USERS:
        for token in (weth, wbtc):
            token.issue(user, 50 * WAD)
            token.approve(user, engine.address, MAX_UINT256)
        dsc.approve(user, engine.address, MAX_UINT256)
    return chain, engine, feeds


# =============================================================================
# STRATEGIES FOR PROPERTY-BASED TESTING
# =============================================================================

amount = st.integers(min_value=0, max_value=60 * WAD)
debt_amount = st.integers(min_value=0, max_value=40_000 * WAD)

operation = st.one_of(
    st.tuples(st.just("deposit_collateral"), st.sampled_from(USERS), st.sampled_from(["WETH", "WBTC", "DOGE"]), amount),
    st.tuples(st.just("mint_dsc"), st.sampled_from(USERS), debt_amount),
    st.tuples(st.just("redeem_collateral"), st.sampled_from(USERS), st.sampled_from(["WETH", "WBTC"]), amount),
    st.tuples(st.just("burn_dsc"), st.sampled_from(USERS), debt_amount),
    st.tuples(st.just("liquidate"), st.sampled_from(USERS), st.sampled_from(USERS), st.just("WETH"), debt_amount),
)


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(
        st.lists(operation, min_size=1, max_size=25),
        st.lists(st.integers(min_value=500, max_value=3_000), min_size=1, max_size=25),
    )
    @settings(max_examples=60, deadline=None)
    def test_rejected_operations_leave_no_trace(self, operations, prices):
        """
        PROPERTY: Whenever an operation raises, the full observable state
        is unchanged.
        """
        chain, engine, feeds = fresh_engine()
        for i, (name, *args) in enumerate(operations):
            feeds[0].update_answer(feed_price(prices[i % len(prices)]))
            before = snapshot(engine, chain)
            try:
                getattr(engine, name)(*args)
            except EngineError:
                assert snapshot(engine, chain) == before

    @given(st.lists(operation, min_size=1, max_size=25))
    @settings(max_examples=40, deadline=None)
    def test_events_only_for_committed_operations(self, operations):
        """
        PROPERTY: Each committed operation adds at least one notification;
        each rejected one adds none.
        """
        chain, engine, _ = fresh_engine()
        for name, *args in operations:
            count = len(engine.event_log)
            try:
                getattr(engine, name)(*args)
            except EngineError:
                assert len(engine.event_log) == count
            else:
                assert len(engine.event_log) > count


class TestAtomicityExamples:
    """Explicit atomicity examples."""

    def test_failed_composite_restores_deposit(self):
        chain, engine, _ = fresh_engine()
        before = snapshot(engine, chain)
        with pytest.raises(EngineError):
            engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10 * WAD, 10_000 * WAD + 1)
        assert snapshot(engine, chain) == before

    def test_failed_liquidation_restores_both_parties(self):
        chain, engine, feeds = fresh_engine()
        engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10 * WAD, 10_000 * WAD)
        engine.deposit_collateral_and_mint_dsc("bob", "WETH", 30 * WAD, 10_000 * WAD)
        feeds[0].update_answer(feed_price(1_050))
        before = snapshot(engine, chain)
        with pytest.raises(EngineError):
            engine.liquidate("bob", "alice", "WETH", 1_000 * WAD)
        assert snapshot(engine, chain) == before

    def test_simulate_never_mutates(self):
        chain, engine, _ = fresh_engine()
        before = snapshot(engine, chain)
        assert engine.simulate("deposit_collateral_and_mint_dsc", "alice", "WETH", 10 * WAD, 100 * WAD).ok
        assert snapshot(engine, chain) == before
