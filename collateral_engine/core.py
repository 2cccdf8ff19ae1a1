"""
Core types and pure helpers for the collateral engine.

This module provides the foundational pieces every other module builds on:
1. Constants: fixed-point scaling, liquidation parameters, staleness window
2. Type aliases: Users, assets, balance maps
3. Exceptions: EngineError and the domain-specific error taxonomy
4. Immutable data structures: Price, RoundData, AccountInfo, EngineEvent
5. Validation helpers shared by the ledgers and the engine

All quantities are Python ints in base units. Prices and USD values use an
18-decimal fixed-point convention: 1 USD == 10**18.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Any, Optional, Mapping


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point "1.0" used for prices, USD values and health factors.
PRECISION = 10 ** 18

# Every feed is normalized to this many decimals.
PRICE_DECIMALS = 18

# Collateral counts at LIQUIDATION_THRESHOLD / LIQUIDATION_PRECISION of its
# USD value toward solvency (50% => 200% over-collateralization).
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_PRECISION = 100

# Extra collateral (percent of the debt-equivalent amount) paid to liquidators.
LIQUIDATION_BONUS = 10

# Positions below this health factor may be liquidated.
MIN_HEALTH_FACTOR = PRECISION

# Health factor of an account with no debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

# Maximum tolerated age of a price reading.
STALENESS_WINDOW = timedelta(hours=3)


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Opaque account identifier.
UserId = str

# Opaque collateral asset identifier.
AssetId = str

# Mapping from asset to amount held by a single user.
BalanceMap = Dict[AssetId, int]

# Mapping from asset to 18-decimal USD price.
PriceMap = Dict[AssetId, int]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for all collateral engine errors."""
    pass


# Input errors

class ZeroAmount(EngineError):
    """Raised when an operation is called with an amount of zero."""
    pass


class UnsupportedAsset(EngineError):
    """Raised when an asset is not on the collateral allow-list."""
    pass


class ConfigMismatch(EngineError):
    """Raised when the collateral registry or a feed is wired inconsistently."""
    pass


class ConfigError(EngineError):
    """Raised when a configuration file cannot be loaded or validated."""
    pass


# Solvency errors

class HealthFactorBroken(EngineError):
    """
    Raised when an operation would leave an account below MIN_HEALTH_FACTOR.

    The offending value is available as ``health_factor`` so callers can decide
    how much collateral to add or debt to repay.
    """

    def __init__(self, health_factor: int, user: Optional[UserId] = None):
        self.health_factor = health_factor
        self.user = user
        who = f" for {user}" if user is not None else ""
        super().__init__(f"Health factor broken{who}: {health_factor}")


class HealthFactorOk(EngineError):
    """Raised when liquidation is attempted on a healthy position."""
    pass


class HealthFactorNotImproved(EngineError):
    """Raised when a liquidation would not strictly improve the target's health factor."""
    pass


# Ledger errors

class InsufficientCollateral(EngineError):
    """Raised when a withdrawal or seizure exceeds the recorded collateral."""
    pass


class InsufficientDebt(EngineError):
    """Raised when a repayment exceeds the recorded debt."""
    pass


class InsufficientFunds(EngineError):
    """Raised when a fungible-unit account cannot cover a burn or transfer."""
    pass


# External-dependency errors

class StalePrice(EngineError):
    """Raised when a feed's latest answer is older than the staleness window."""
    pass


class InvalidPrice(EngineError):
    """Raised when a feed returns a zero or negative answer."""
    pass


class TransferFailed(EngineError):
    """Raised when a fungible-unit pull or push reports failure."""
    pass


class MintFailed(EngineError):
    """Raised when the pegged unit refuses to mint."""
    pass


# Guard errors

class ReentrantCall(EngineError):
    """Raised when a mutating engine operation is entered while another is running."""
    pass


# ============================================================================
# ENUMS
# ============================================================================

class EventType(Enum):
    """Kinds of audit events recorded by the engine."""
    COLLATERAL_DEPOSITED = "collateral_deposited"
    COLLATERAL_REDEEMED = "collateral_redeemed"
    DEBT_MINTED = "debt_minted"
    DEBT_BURNED = "debt_burned"
    LIQUIDATION = "liquidation"


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class RoundData:
    """
    Raw reading from a price feed.

    Attributes:
        answer: Price in the feed's native decimals (signed; may be invalid)
        updated_at: When the feed last updated this answer
    """
    answer: int
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class Price:
    """
    A validated, normalized price reading. Never cached across calls.

    Attributes:
        asset: Asset the price belongs to
        value: USD price per whole unit, scaled to 18 decimals
        updated_at: Timestamp reported by the feed
    """
    asset: AssetId
    value: int
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class AccountInfo:
    """Debt and collateral value for one account (both 18-decimal USD)."""
    debt_minted: int
    collateral_value_usd: int


@dataclass(frozen=True, slots=True)
class EngineEvent:
    """
    Immutable audit record of a committed engine operation.

    Attributes:
        event_type: What happened
        user: Account whose position changed
        asset: Collateral asset involved (None for pure debt events)
        amount: Quantity moved, in the asset's (or pegged unit's) base units
        counterparty: Other account involved (redeem destination, liquidator)
        sequence: Monotonic position in the engine's event log
        details: Extra values (e.g. bonus, health factors for liquidations)
    """
    event_type: EventType
    user: UserId
    asset: Optional[AssetId]
    amount: int
    counterparty: Optional[UserId] = None
    sequence: int = 0
    details: Mapping[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        parts = [f"#{self.sequence}", self.event_type.value, self.user]
        if self.asset:
            parts.append(self.asset)
        parts.append(str(self.amount))
        if self.counterparty:
            parts.append(f"-> {self.counterparty}")
        return f"EngineEvent({' '.join(parts)})"


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def require_amount(amount: int, name: str = "amount") -> int:
    """
    Validate a base-unit quantity and reject zero.

    Raises:
        TypeError: if amount is not an int (bool is rejected too)
        ValueError: if amount is negative
        ZeroAmount: if amount is zero
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"{name} must be int, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{name} cannot be negative, got {amount}")
    if amount == 0:
        raise ZeroAmount(f"{name} must be greater than zero")
    return amount


def require_account(account: UserId, name: str = "user") -> UserId:
    """Reject empty account identifiers."""
    if not account or not str(account).strip():
        raise ValueError(f"{name} cannot be empty")
    return account
