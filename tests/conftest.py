"""
conftest.py - Shared pytest fixtures for collateral engine tests

Provides common fixtures used across unit, conformance and functional tests:
- A logical clock and static feeds
- A fully wired two-asset system (WETH, WBTC)
- Systems with positions already open
"""

import logging

import pytest
from datetime import timedelta

from collateral_engine import (
    LogicalClock, PriceOracleAdapter, StaticPriceFeed, CollateralRegistry,
    TokenLedger, PositionStore, CollateralLedger, DebtLedger,
)

from collateral_engine.logging_config import LOGGER_NAME

from tests.support import build_system, units, T0, ETH_USD_2000, BTC_USD_30000, ENGINE


# =============================================================================
# PRICING FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Logical clock starting at 2025-01-01."""
    return LogicalClock(T0)


@pytest.fixture
def eth_feed(clock):
    """WETH/USD feed at $2000, 8 decimals."""
    return StaticPriceFeed(ETH_USD_2000, decimals=8, clock=clock)


@pytest.fixture
def btc_feed(clock):
    """WBTC/USD feed at $30000, 8 decimals."""
    return StaticPriceFeed(BTC_USD_30000, decimals=8, clock=clock)


@pytest.fixture
def registry(clock, eth_feed, btc_feed):
    """Two-asset registry in WETH, WBTC order."""
    return CollateralRegistry(
        ["WETH", "WBTC"],
        [PriceOracleAdapter(eth_feed, clock=clock), PriceOracleAdapter(btc_feed, clock=clock)],
    )


# =============================================================================
# LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def store():
    """Fresh, isolated position store."""
    return PositionStore()


@pytest.fixture
def collateral_ledger(registry, store):
    return CollateralLedger(registry, store)


@pytest.fixture
def debt_ledger(store):
    return DebtLedger(store)


@pytest.fixture
def weth():
    return TokenLedger("WETH", custodian=ENGINE)


@pytest.fixture
def peg():
    return TokenLedger("PEG", custodian=ENGINE, mintable=True)


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def system():
    """Wired engine with WETH at $2000 and WBTC at $30000, no positions."""
    return build_system()


@pytest.fixture
def engine(system):
    return system.engine


@pytest.fixture
def alice_at_limit(system):
    """
    alice: 10 WETH deposited, 10,000 PEG minted (health factor exactly 1.0).
    bob: 20 WETH deposited, 5,000 PEG minted (health factor 4.0), peg approved.
    """
    system.fund("alice", "WETH", units(10))
    system.engine.deposit_collateral_and_mint("alice", "WETH", units(10), units(10_000))
    system.fund("bob", "WETH", units(20))
    system.engine.deposit_collateral_and_mint("bob", "WETH", units(20), units(5_000))
    system.approve_peg("bob", units(5_000))
    return system


@pytest.fixture
def after_price_drop(alice_at_limit):
    """alice_at_limit after WETH falls to $1800 (alice health factor 0.9)."""
    alice_at_limit.clock.advance(timedelta(minutes=5))
    alice_at_limit.set_price("WETH", 1800_00000000)
    return alice_at_limit


# =============================================================================
# LOGGING FIXTURES
# =============================================================================

@pytest.fixture
def package_logger():
    """The collateral_engine logger, restored to its prior state afterwards."""
    logger = logging.getLogger(LOGGER_NAME)
    saved = (logger.level, list(logger.handlers), logger.propagate)
    logger.handlers.clear()
    yield logger
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]
