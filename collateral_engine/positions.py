"""
positions.py - Collateral and debt accounting

The durable state of the engine lives in a PositionStore: one map keyed by
(user, asset) for deposited collateral and one keyed by user for minted debt.
The store is owned by an engine instance and injected into the two ledgers,
so every test can build its own isolated state.

CollateralLedger and DebtLedger only do bookkeeping. They never move units
and never check health; the engine does both, in that order, around them.

Positions are never deleted. A position that returns to zero stays in the
store at zero, and a missing key reads as zero.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .core import (
    AssetId, BalanceMap, UserId,
    InsufficientCollateral, InsufficientDebt,
    require_account, require_amount,
)
from .registry import CollateralRegistry


CollateralKey = Tuple[UserId, AssetId]


@dataclass
class StoreSnapshot:
    """Point-in-time copy of a PositionStore, used to roll back failed operations."""
    collateral: Dict[CollateralKey, int]
    debt: Dict[UserId, int]


@dataclass
class PositionStore:
    """Injectable in-memory state for both ledgers."""
    collateral: Dict[CollateralKey, int] = field(default_factory=dict)
    debt: Dict[UserId, int] = field(default_factory=dict)

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(collateral=dict(self.collateral), debt=dict(self.debt))

    def restore(self, snapshot: StoreSnapshot) -> None:
        """Replace the current contents with a snapshot's contents."""
        self.collateral = dict(snapshot.collateral)
        self.debt = dict(snapshot.debt)


class CollateralLedger:
    """Per-user, per-asset deposited collateral."""

    def __init__(self, registry: CollateralRegistry, store: PositionStore):
        self.registry = registry
        self.store = store

    def balance(self, user: UserId, asset: AssetId) -> int:
        """Deposited amount of asset for user (0 if never deposited)."""
        return self.store.collateral.get((user, asset), 0)

    def balances(self, user: UserId) -> BalanceMap:
        """All deposited amounts for user, in registry order, zeros included."""
        return {asset: self.balance(user, asset) for asset in self.registry.list_assets()}

    def deposit(self, user: UserId, asset: AssetId, amount: int) -> int:
        """
        Record a deposit and return the new balance.

        Raises:
            ZeroAmount: If amount is zero
            UnsupportedAsset: If asset is not approved
        """
        require_amount(amount)
        self.registry.require_supported(asset)
        require_account(user)
        key = (user, asset)
        new_balance = self.store.collateral.get(key, 0) + amount
        self.store.collateral[key] = new_balance
        return new_balance

    def withdraw(self, user: UserId, asset: AssetId, amount: int) -> int:
        """
        Record a withdrawal (or seizure) and return the new balance.

        Raises:
            ZeroAmount: If amount is zero
            UnsupportedAsset: If asset is not approved
            InsufficientCollateral: If amount exceeds the recorded balance
        """
        require_amount(amount)
        self.registry.require_supported(asset)
        key = (user, asset)
        current = self.store.collateral.get(key, 0)
        if amount > current:
            raise InsufficientCollateral(
                f"{user} has {current} {asset} deposited, cannot remove {amount}"
            )
        self.store.collateral[key] = current - amount
        return current - amount

    def total_deposited(self, asset: AssetId) -> int:
        """Sum of every user's deposit of asset."""
        self.registry.require_supported(asset)
        return sum(qty for (_, a), qty in self.store.collateral.items() if a == asset)

    def users(self) -> List[UserId]:
        """Users that have ever held a collateral position, first-seen order."""
        seen: Dict[UserId, None] = {}
        for user, _ in self.store.collateral:
            seen.setdefault(user, None)
        return list(seen)


class DebtLedger:
    """Per-user minted debt, in pegged-unit base units."""

    def __init__(self, store: PositionStore):
        self.store = store

    def balance(self, user: UserId) -> int:
        return self.store.debt.get(user, 0)

    def increase(self, user: UserId, amount: int) -> int:
        """Add minted debt. The caller validates the resulting health factor."""
        require_amount(amount)
        require_account(user)
        new_balance = self.store.debt.get(user, 0) + amount
        self.store.debt[user] = new_balance
        return new_balance

    def decrease(self, user: UserId, amount: int) -> int:
        """
        Repay debt (voluntary burn or liquidation).

        Raises:
            InsufficientDebt: If amount exceeds the recorded debt
        """
        require_amount(amount)
        current = self.store.debt.get(user, 0)
        if amount > current:
            raise InsufficientDebt(f"{user} owes {current}, cannot repay {amount}")
        self.store.debt[user] = current - amount
        return current - amount

    def total(self) -> int:
        """Outstanding debt across all users."""
        return sum(self.store.debt.values())

    def debtors(self) -> List[UserId]:
        """Users with non-zero debt, first-seen order."""
        return [user for user, qty in self.store.debt.items() if qty > 0]
