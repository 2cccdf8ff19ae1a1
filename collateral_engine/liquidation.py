"""
liquidation.py - Forced closing of under-collateralized positions

A liquidator repays part of a target's debt with their own pegged units and
receives the equivalent collateral plus a LIQUIDATION_BONUS incentive.

Key Formulas:
    token_amount = debt_to_cover * PRECISION // price(seize_asset)
    bonus        = token_amount * LIQUIDATION_BONUS // LIQUIDATION_PRECISION
    total_seized = token_amount + bonus

Post-conditions checked before anything leaves the engine:
    ending_health > starting_health     (else HealthFactorNotImproved)
    liquidator health >= MIN_HEALTH_FACTOR  (else HealthFactorBroken)

The coordinator only performs the ledger side. Pulling the liquidator's pegged
units, burning them and pushing the seized collateral is left to the engine,
which runs those interactions after this returns.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging

from .core import (
    AssetId, UserId,
    LIQUIDATION_BONUS, LIQUIDATION_PRECISION, MIN_HEALTH_FACTOR,
    HealthFactorNotImproved, HealthFactorOk, ZeroAmount,
    require_account, require_amount,
)
from .health import HealthFactorCalculator, calculate_token_amount_from_usd
from .positions import CollateralLedger, DebtLedger


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LiquidationQuote:
    """Collateral owed to a liquidator for covering a given debt."""
    debt_to_cover: int
    price: int
    token_amount: int
    bonus: int

    @property
    def total_seized(self) -> int:
        return self.token_amount + self.bonus


@dataclass(frozen=True, slots=True)
class LiquidationResult:
    """
    Outcome of a committed liquidation.

    Health factors are the target's, before and after.
    """
    liquidator: UserId
    target_user: UserId
    seize_asset: AssetId
    debt_covered: int
    token_amount: int
    bonus: int
    total_seized: int
    starting_health: int
    ending_health: int


def quote_liquidation(debt_to_cover: int, price: int) -> LiquidationQuote:
    """
    PURE FUNCTION - convert covered debt into seized collateral at price.

    Args:
        debt_to_cover: Pegged-unit base units (18-decimal USD)
        price: 18-decimal USD price of the seized asset

    Example:
        # Cover $5000 of debt seizing WETH at $1500
        q = quote_liquidation(5000 * 10**18, 1500 * 10**18)
        q.token_amount  # 3.333... WETH
        q.bonus         # 10% of that
    """
    token_amount = calculate_token_amount_from_usd(debt_to_cover, price)
    bonus = token_amount * LIQUIDATION_BONUS // LIQUIDATION_PRECISION
    return LiquidationQuote(
        debt_to_cover=debt_to_cover,
        price=price,
        token_amount=token_amount,
        bonus=bonus,
    )


class LiquidationCoordinator:
    """Runs the ledger side of a liquidation and enforces its post-conditions."""

    def __init__(self, calculator: HealthFactorCalculator, collateral: CollateralLedger, debt: DebtLedger):
        self.calculator = calculator
        self.collateral = collateral
        self.debt = debt

    def liquidate(
        self,
        liquidator: UserId,
        target_user: UserId,
        seize_asset: AssetId,
        debt_to_cover: int,
    ) -> LiquidationResult:
        """
        Seize collateral from target_user in exchange for covering their debt.

        Mutates both ledgers. The caller must roll them back if this raises.

        Raises:
            ZeroAmount: If debt_to_cover is zero, or too small to seize any collateral
            UnsupportedAsset: If seize_asset is not approved
            HealthFactorOk: If target_user is not liquidatable
            InsufficientCollateral: If target_user lacks total_seized of seize_asset
            InsufficientDebt: If debt_to_cover exceeds target_user's debt
            HealthFactorNotImproved: If the target's health does not strictly rise
            HealthFactorBroken: If the liquidator is left unhealthy
        """
        require_amount(debt_to_cover, "debt_to_cover")
        require_account(liquidator, "liquidator")
        self.collateral.registry.require_supported(seize_asset)

        starting_health = self.calculator.health_factor(target_user)
        if starting_health >= MIN_HEALTH_FACTOR:
            raise HealthFactorOk(
                f"{target_user} is healthy ({starting_health}), cannot be liquidated"
            )

        quote = quote_liquidation(debt_to_cover, self.calculator.price(seize_asset).value)
        if quote.total_seized == 0:
            raise ZeroAmount(
                f"debt_to_cover {debt_to_cover} is too small to seize any {seize_asset}"
            )

        self.collateral.withdraw(target_user, seize_asset, quote.total_seized)
        self.debt.decrease(target_user, debt_to_cover)

        ending_health = self.calculator.health_factor(target_user)
        if ending_health <= starting_health:
            raise HealthFactorNotImproved(
                f"Liquidation of {target_user} would move health factor "
                f"from {starting_health} to {ending_health}"
            )

        # Liquidator's unrelated positions must stay sound.
        self.calculator.assert_healthy(liquidator)

        logger.debug(
            "liquidation quote %s: cover %d, seize %d %s (bonus %d), health %d -> %d",
            target_user, debt_to_cover, quote.total_seized, seize_asset,
            quote.bonus, starting_health, ending_health,
        )
        return LiquidationResult(
            liquidator=liquidator,
            target_user=target_user,
            seize_asset=seize_asset,
            debt_covered=debt_to_cover,
            token_amount=quote.token_amount,
            bonus=quote.bonus,
            total_seized=quote.total_seized,
            starting_health=starting_health,
            ending_health=ending_health,
        )
