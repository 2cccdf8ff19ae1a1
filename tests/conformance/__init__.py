"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the collateral engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. solvency.py - Actors stay healthy, books balance
2. atomicity.py - All-or-nothing operation semantics
3. reentrancy.py - No operation can start inside another
4. idempotency.py - Queries are pure and repeatable
5. temporal.py - Price freshness

These tests use hypothesis for property-based testing.
"""
