"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - Rejected operations leave no trace
2. conservation.py - Stable-unit supply equals recorded debt; custody equals deposits
3. solvency.py - Every committed operation leaves its accounts healthy
4. monotonicity.py - Health factor is monotone in collateral and debt
5. round_trip.py - USD conversions never overstate value
6. reentrancy.py - An account cannot re-enter mid-operation
7. determinism.py - Identical inputs give identical state

These tests use hypothesis for property-based testing.
"""
