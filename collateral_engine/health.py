"""
health.py - Collateral valuation and health factor

ARCHITECTURE (Pure Function Pattern):
=====================================

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly as ints
   - No ledgers, no oracles, no hidden state
   - Every formula multiplies before it divides

2. HealthFactorCalculator:
   - Binds the registry and both ledgers
   - Reads fresh prices through the registry's adapters on every call
   - The ONLY place that combines ledger state with prices

Key Formulas (all values 18-decimal fixed point unless noted):
    usd_value        = amount * price // PRECISION
    token_amount     = usd_amount * PRECISION // price
    collateral_value = sum(usd_value(balance[a], price[a]) for a in registry order)
    adjusted         = collateral_value * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION
    health_factor    = adjusted * PRECISION // debt      (MAX_HEALTH_FACTOR if debt == 0)
"""

from __future__ import annotations
from typing import Mapping

from .core import (
    AccountInfo, AssetId, BalanceMap, Price, UserId,
    PRECISION, LIQUIDATION_THRESHOLD, LIQUIDATION_PRECISION,
    MIN_HEALTH_FACTOR, MAX_HEALTH_FACTOR,
    HealthFactorBroken, InvalidPrice,
)
from .positions import CollateralLedger, DebtLedger
from .registry import CollateralRegistry


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_usd_value(amount: int, price: int) -> int:
    """
    USD value (18 decimals) of amount base units at an 18-decimal price.

    Example:
        # 10 WETH (18 decimals) at $2000
        calculate_usd_value(10 * 10**18, 2000 * 10**18) == 20_000 * 10**18
    """
    return amount * price // PRECISION


def calculate_token_amount_from_usd(usd_amount: int, price: int) -> int:
    """
    Base units of an asset worth usd_amount at an 18-decimal price.

    Raises:
        InvalidPrice: If price is not positive
    """
    if price <= 0:
        raise InvalidPrice(f"Cannot convert at non-positive price {price}")
    return usd_amount * PRECISION // price


def calculate_collateral_value(balances: Mapping[AssetId, int], prices: Mapping[AssetId, int]) -> int:
    """
    Total USD value of a set of balances.

    Each asset is valued (and floored) on its own, then summed; iteration
    follows the order of balances.

    Raises:
        ValueError: If a non-zero balance has no price
    """
    total = 0
    for asset, amount in balances.items():
        if amount == 0:
            continue
        if asset not in prices:
            raise ValueError(f"Missing price for collateral asset '{asset}'")
        total += calculate_usd_value(amount, prices[asset])
    return total


def calculate_health_factor(debt_minted: int, collateral_value_usd: int) -> int:
    """
    Risk-adjusted collateral over debt, 18-decimal fixed point.

    Returns MAX_HEALTH_FACTOR for an account without debt.
    """
    if debt_minted == 0:
        return MAX_HEALTH_FACTOR
    adjusted = collateral_value_usd * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION
    return adjusted * PRECISION // debt_minted


def calculate_max_mintable(collateral_value_usd: int, debt_minted: int = 0) -> int:
    """
    Largest additional debt that keeps the health factor at or above 1.0.

    Derived from calculate_health_factor: the health factor is >= 1.0 exactly
    when debt <= adjusted collateral value.
    """
    adjusted = collateral_value_usd * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION
    return max(0, adjusted * PRECISION // MIN_HEALTH_FACTOR - debt_minted)


# ============================================================================
# LEDGER-BOUND CALCULATOR
# ============================================================================

class HealthFactorCalculator:
    """Health factor of live accounts, priced fresh on every call."""

    def __init__(self, registry: CollateralRegistry, collateral: CollateralLedger, debt: DebtLedger):
        self.registry = registry
        self.collateral = collateral
        self.debt = debt

    def price(self, asset: AssetId) -> Price:
        return self.registry.adapter_for(asset).price(asset)

    def usd_value(self, asset: AssetId, amount: int) -> int:
        return calculate_usd_value(amount, self.price(asset).value)

    def token_amount_from_usd(self, asset: AssetId, usd_amount: int) -> int:
        return calculate_token_amount_from_usd(usd_amount, self.price(asset).value)

    def total_collateral_value_usd(self, user: UserId) -> int:
        """
        Sum of user's collateral at current prices, in registry order.

        Assets with a zero balance are skipped without reading their feed.
        """
        balances: BalanceMap = self.collateral.balances(user)
        prices = {
            asset: self.price(asset).value
            for asset, amount in balances.items() if amount > 0
        }
        return calculate_collateral_value(balances, prices)

    def account_info(self, user: UserId) -> AccountInfo:
        return AccountInfo(
            debt_minted=self.debt.balance(user),
            collateral_value_usd=self.total_collateral_value_usd(user),
        )

    def health_factor(self, user: UserId) -> int:
        debt = self.debt.balance(user)
        if debt == 0:
            return MAX_HEALTH_FACTOR
        return calculate_health_factor(debt, self.total_collateral_value_usd(user))

    def assert_healthy(self, user: UserId) -> int:
        """
        Raises:
            HealthFactorBroken: If user's health factor is below MIN_HEALTH_FACTOR
        """
        value = self.health_factor(user)
        if value < MIN_HEALTH_FACTOR:
            raise HealthFactorBroken(value, user)
        return value
