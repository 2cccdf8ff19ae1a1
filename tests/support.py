"""
support.py - Test helpers for building isolated engines

Provides a small builder that wires feeds, adapters, registry, units and an
engine around a shared LogicalClock, plus token doubles for failure and
re-entrancy testing.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from collateral_engine import (
    CollateralEngine, CollateralRegistry, LogicalClock, PriceOracleAdapter,
    StaticPriceFeed, TokenLedger, EngineError, PRECISION,
)


ENGINE = "engine"
T0 = datetime(2025, 1, 1)

# Feed answers at 8 decimals
ETH_USD_2000 = 2000_00000000
BTC_USD_30000 = 30000_00000000


def units(n) -> int:
    """Whole units -> 18-decimal base units (accepts ints or strings like '0.5')."""
    if isinstance(n, str):
        whole, _, frac = n.partition(".")
        frac = (frac + "0" * 18)[:18]
        return int(whole) * PRECISION + int(frac or 0)
    return n * PRECISION


@dataclass
class System:
    """Everything a test needs to drive one engine."""
    engine: CollateralEngine
    clock: LogicalClock
    feeds: Dict[str, StaticPriceFeed]
    tokens: Dict[str, TokenLedger]
    peg: TokenLedger

    def fund(self, user: str, asset: str, amount: int) -> None:
        """Give user amount of asset and approve the engine to pull it."""
        token = self.tokens[asset]
        token.set_balance(user, token.balance_of(user) + amount)
        token.approve(user, token.allowance(user) + amount)

    def approve_peg(self, user: str, amount: int) -> None:
        self.peg.approve(user, self.peg.allowance(user) + amount)

    def set_price(self, asset: str, answer: int) -> None:
        """Update a feed's answer, timestamped at the current clock time."""
        self.feeds[asset].update_answer(answer)


def build_system(
    prices: Optional[Dict[str, int]] = None,
    token_factory: Callable[..., TokenLedger] = TokenLedger,
    peg_mintable: bool = True,
) -> System:
    """
    Build an isolated engine with one 8-decimal feed per asset.

    Args:
        prices: asset -> 8-decimal feed answer (default WETH $2000, WBTC $30000)
        token_factory: class used for collateral units
        peg_mintable: whether the pegged unit accepts mint()
    """
    prices = prices or {"WETH": ETH_USD_2000, "WBTC": BTC_USD_30000}
    clock = LogicalClock(T0)
    feeds = {asset: StaticPriceFeed(answer, decimals=8, clock=clock) for asset, answer in prices.items()}
    registry = CollateralRegistry(
        list(prices),
        [PriceOracleAdapter(feeds[asset], clock=clock) for asset in prices],
    )
    tokens = {asset: token_factory(asset, custodian=ENGINE) for asset in prices}
    peg = TokenLedger("PEG", custodian=ENGINE, mintable=peg_mintable)
    engine = CollateralEngine(registry, tokens, peg, account=ENGINE, pegged_symbol="PEG")
    return System(engine=engine, clock=clock, feeds=feeds, tokens=tokens, peg=peg)


class ReentrantToken(TokenLedger):
    """
    Token that calls back into an engine from inside pull().

    The callback's outcome is stored in ``reentry_result`` / ``reentry_error``;
    by default the error is re-raised so the outer operation aborts.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.callback: Optional[Callable[[], object]] = None
        self.reraise = True
        self.reentry_result = None
        self.reentry_error: Optional[Exception] = None

    def pull(self, source, amount):
        if self.callback is not None:
            try:
                self.reentry_result = self.callback()
            except Exception as e:
                self.reentry_error = e
                if self.reraise:
                    raise
        return super().pull(source, amount)


class RefusingToken(TokenLedger):
    """Token whose push() always reports failure."""

    def push(self, dest, amount):
        return False


USERS = ("alice", "bob", "carol")


def run_operation(system: System, op: tuple) -> bool:
    """
    Apply one generated operation to system, funding the caller first.

    Returns True if the engine accepted it, False if it was rejected with an
    EngineError.
    """
    kind, user, asset, amount, other = op
    engine = system.engine
    try:
        if kind == "deposit":
            system.fund(user, asset, amount)
            engine.deposit_collateral(user, asset, amount)
        elif kind == "mint":
            engine.mint_debt(user, amount)
        elif kind == "deposit_and_mint":
            system.fund(user, asset, amount)
            engine.deposit_collateral_and_mint(user, asset, amount, amount)
        elif kind == "redeem":
            engine.redeem_collateral(user, asset, amount)
        elif kind == "burn":
            system.approve_peg(user, amount)
            engine.burn_debt(user, amount)
        elif kind == "redeem_for_debt":
            system.approve_peg(user, amount)
            engine.redeem_collateral_for_debt(user, asset, amount // 1000 or 1, amount)
        elif kind == "liquidate":
            system.approve_peg(user, amount)
            engine.liquidate(user, other, asset, amount)
        else:
            raise ValueError(f"Unknown operation {kind}")
    except EngineError:
        return False
    return True


class InterruptingToken(TokenLedger):
    """Token whose push() is interrupted, as by Ctrl-C mid-interaction."""

    def push(self, dest, amount):
        raise KeyboardInterrupt
