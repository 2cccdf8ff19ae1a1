#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Collateral Engine Step by Step

Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3: Foundation   - Wiring feeds and units, depositing, minting to the limit
  4-5: Liquidation  - A price drop, health factors, seizing collateral with a bonus
  6-7: Safety       - Stale prices, atomic rollback, invariant checks

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
import sys

from collateral_engine import (
    CollateralEngine, CollateralRegistry, PriceOracleAdapter, StaticPriceFeed,
    LogicalClock, TokenLedger, PRECISION, STALENESS_WINDOW,
    EngineError, StalePrice, setup_logging,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Feed answers, 8 decimals
    eth_price: int = 2000_00000000
    btc_price: int = 30000_00000000
    eth_crash_price: int = 1800_00000000

    # Positions, whole units
    alice_weth: int = 10
    alice_debt: int = 10_000
    bob_weth: int = 20
    bob_debt: int = 5_000


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def fmt(amount: int) -> str:
    """18-decimal base units as a readable number."""
    return f"{amount / PRECISION:,.6f}"


def show_account(engine: CollateralEngine, user: str):
    info = engine.get_account_info(user)
    print(f"{user:>6}: debt {fmt(info.debt_minted):>16}   "
          f"collateral ${fmt(info.collateral_value_usd):>16}   "
          f"health {fmt(engine.get_health_factor(user))}")


@dataclass
class World:
    engine: CollateralEngine
    clock: LogicalClock
    eth_feed: StaticPriceFeed
    weth: TokenLedger
    peg: TokenLedger


# ============================================================================
# STEPS
# ============================================================================

def step_01_wiring() -> World:
    step_header(1, "Wiring the Engine",
        "Every collateral asset needs a price feed, an adapter and a unit.")

    print("""
    The engine never reads prices directly. Each asset is registered with a
    PriceOracleAdapter that scales the feed's answer to 18 decimals and
    rejects answers older than the staleness window.
    """)

    clock = LogicalClock(CONFIG.start_time)
    eth_feed = StaticPriceFeed(CONFIG.eth_price, decimals=8, clock=clock)
    btc_feed = StaticPriceFeed(CONFIG.btc_price, decimals=8, clock=clock)
    registry = CollateralRegistry(
        ["WETH", "WBTC"],
        [PriceOracleAdapter(eth_feed, clock=clock), PriceOracleAdapter(btc_feed, clock=clock)],
    )
    weth = TokenLedger("WETH", custodian="engine")
    wbtc = TokenLedger("WBTC", custodian="engine")
    peg = TokenLedger("PEG", custodian="engine", mintable=True)
    engine = CollateralEngine(registry, {"WETH": weth, "WBTC": wbtc}, peg, account="engine")

    section_header("Registry")
    print(f"Assets:            {engine.get_collateral_assets()}")
    print(f"Staleness window:  {STALENESS_WINDOW}")
    print(f"1 WETH in USD:     ${fmt(engine.get_usd_value('WETH', PRECISION))}")

    return World(engine, clock, eth_feed, weth, peg)


def step_02_deposit_and_mint(world: World) -> World:
    step_header(2, "Deposit and Mint",
        "Collateral counts at 50%; health factor 1.0 is the limit.")

    engine = world.engine
    for user, weth, debt in (("alice", CONFIG.alice_weth, CONFIG.alice_debt),
                             ("bob", CONFIG.bob_weth, CONFIG.bob_debt)):
        world.weth.set_balance(user, weth * PRECISION)
        world.weth.approve(user, weth * PRECISION)
        print(f">>> engine.deposit_collateral_and_mint('{user}', 'WETH', {weth}e18, {debt}e18)")
        engine.deposit_collateral_and_mint(user, "WETH", weth * PRECISION, debt * PRECISION)

    section_header("Accounts")
    show_account(engine, "alice")
    show_account(engine, "bob")
    return world


def step_03_rejected_mint(world: World) -> World:
    step_header(3, "Rejected Operations Change Nothing",
        "An operation that would break health is rolled back entirely.")

    engine = world.engine
    print(">>> engine.mint_debt('alice', 1)")
    try:
        engine.mint_debt("alice", 1)
    except EngineError as e:
        print(f"Rejected: {type(e).__name__}: {e}")

    section_header("State after rejection")
    show_account(engine, "alice")
    print(f"PEG supply: {fmt(world.peg.total_supply())}")
    return world


def step_04_price_drop(world: World) -> World:
    step_header(4, "Price Drop",
        "Health factors move with prices; below 1.0 a position is liquidatable.")

    world.clock.advance(timedelta(minutes=5))
    world.eth_feed.update_answer(CONFIG.eth_crash_price)
    print(f"WETH now ${fmt(world.engine.get_usd_value('WETH', PRECISION))}")

    section_header("Accounts")
    show_account(world.engine, "alice")
    show_account(world.engine, "bob")

    solvency = world.engine.verify_solvency()
    print(f"\nSolvent: {solvency['valid']}  violations: {solvency['violations']}")
    return world


def step_05_liquidation(world: World) -> World:
    step_header(5, "Liquidation",
        "Bob repays half of alice's debt and seizes WETH plus a 10% bonus.")

    world.peg.approve("bob", 5_000 * PRECISION)
    print(">>> engine.liquidate('bob', 'alice', 'WETH', 5_000e18)")
    result = world.engine.liquidate("bob", "alice", "WETH", 5_000 * PRECISION)

    section_header("Result")
    print(f"Debt covered:   {fmt(result.debt_covered)}")
    print(f"WETH seized:    {fmt(result.total_seized)} (bonus {fmt(result.bonus)})")
    print(f"Alice health:   {fmt(result.starting_health)} -> {fmt(result.ending_health)}")
    print(f"Bob's WETH:     {fmt(world.weth.balance_of('bob'))}")
    return world


def step_06_stale_price(world: World) -> World:
    step_header(6, "Stale Prices",
        "Operations that need a price refuse one older than the window.")

    world.clock.advance(STALENESS_WINDOW + timedelta(seconds=1))
    print(f"Clock advanced to {world.clock.current_time}")
    try:
        world.engine.get_health_factor("alice")
    except StalePrice as e:
        print(f"StalePrice: {e}")

    world.eth_feed.update_answer(CONFIG.eth_crash_price)
    print("\nFeed refreshed.")
    show_account(world.engine, "alice")
    return world


def step_07_invariants(world: World) -> World:
    step_header(7, "Invariant Checks",
        "Custody, supply and solvency can be audited at any time.")

    engine = world.engine
    print(f"Solvency: {engine.verify_solvency()['valid']}")
    print(f"Custody:  {engine.verify_custody()['holdings']}")
    print(f"Supply:   {world.peg.verify_supply()}")

    section_header("Event log")
    for event in engine.events:
        print(f"  {event}")
    return world


def main():
    """Run the complete tutorial."""
    setup_logging(logging.WARNING)

    print("=" * 70)
    print("       COLLATERAL ENGINE - INTERACTIVE TUTORIAL")
    print("=" * 70)
    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    world = step_01_wiring()
    wait_for_enter()
    for step in (step_02_deposit_and_mint, step_03_rejected_mint, step_04_price_drop,
                 step_05_liquidation, step_06_stale_price, step_07_invariants):
        world = step(world)
        wait_for_enter()

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)


if __name__ == "__main__":
    main()
