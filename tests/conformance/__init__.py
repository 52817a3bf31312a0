"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the season fund.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. no_double_payout.py - A unit pays at most once
2. phase_gating.py - Operations only succeed in their phases
3. pool_conservation.py - Pool balance equals the booked flows
4. proportional_redemption.py - Redemptions pay the share fraction
5. eligibility.py - Claims pay only on a reading below threshold
6. atomicity.py - Failed operations leave no trace; no reentrancy

Property-based tests use hypothesis.
"""
