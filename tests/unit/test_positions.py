"""
test_positions.py - Unit tests for CollateralLedger, DebtLedger and PositionStore

Tests:
- Deposit / withdraw bookkeeping and guards
- Underflow is an error, never a clamp
- Debt increase / decrease
- Zero positions persist
- Store snapshot and restore
"""

import pytest

from collateral_engine import (
    PositionStore, CollateralLedger, DebtLedger,
    ZeroAmount, UnsupportedAsset, InsufficientCollateral, InsufficientDebt,
)


class TestCollateralLedger:

    def test_initial_balance_is_zero(self, collateral_ledger):
        assert collateral_ledger.balance("alice", "WETH") == 0

    def test_deposit(self, collateral_ledger):
        assert collateral_ledger.deposit("alice", "WETH", 100) == 100
        assert collateral_ledger.deposit("alice", "WETH", 50) == 150
        assert collateral_ledger.balance("alice", "WETH") == 150

    def test_positions_are_per_user_and_asset(self, collateral_ledger):
        collateral_ledger.deposit("alice", "WETH", 100)
        collateral_ledger.deposit("alice", "WBTC", 7)
        collateral_ledger.deposit("bob", "WETH", 3)
        assert collateral_ledger.balances("alice") == {"WETH": 100, "WBTC": 7}
        assert collateral_ledger.balances("bob") == {"WETH": 3, "WBTC": 0}

    def test_balances_follow_registry_order(self, collateral_ledger):
        collateral_ledger.deposit("alice", "WBTC", 1)
        collateral_ledger.deposit("alice", "WETH", 1)
        assert list(collateral_ledger.balances("alice")) == ["WETH", "WBTC"]

    def test_deposit_zero(self, collateral_ledger, store):
        with pytest.raises(ZeroAmount):
            collateral_ledger.deposit("alice", "WETH", 0)
        assert store.collateral == {}

    def test_deposit_unsupported(self, collateral_ledger, store):
        with pytest.raises(UnsupportedAsset):
            collateral_ledger.deposit("alice", "DOGE", 1)
        assert store.collateral == {}

    def test_deposit_negative(self, collateral_ledger):
        with pytest.raises(ValueError):
            collateral_ledger.deposit("alice", "WETH", -1)

    def test_deposit_non_int(self, collateral_ledger):
        with pytest.raises(TypeError):
            collateral_ledger.deposit("alice", "WETH", 1.5)

    def test_withdraw(self, collateral_ledger):
        collateral_ledger.deposit("alice", "WETH", 100)
        assert collateral_ledger.withdraw("alice", "WETH", 40) == 60

    def test_withdraw_more_than_deposited(self, collateral_ledger):
        collateral_ledger.deposit("alice", "WETH", 100)
        with pytest.raises(InsufficientCollateral):
            collateral_ledger.withdraw("alice", "WETH", 101)
        assert collateral_ledger.balance("alice", "WETH") == 100

    def test_withdraw_zero(self, collateral_ledger):
        with pytest.raises(ZeroAmount):
            collateral_ledger.withdraw("alice", "WETH", 0)

    def test_full_withdraw_keeps_zero_position(self, collateral_ledger, store):
        collateral_ledger.deposit("alice", "WETH", 100)
        collateral_ledger.withdraw("alice", "WETH", 100)
        assert store.collateral[("alice", "WETH")] == 0
        assert collateral_ledger.users() == ["alice"]

    def test_total_deposited(self, collateral_ledger):
        collateral_ledger.deposit("alice", "WETH", 100)
        collateral_ledger.deposit("bob", "WETH", 20)
        collateral_ledger.deposit("bob", "WBTC", 5)
        assert collateral_ledger.total_deposited("WETH") == 120
        assert collateral_ledger.total_deposited("WBTC") == 5


class TestDebtLedger:

    def test_initial_debt_is_zero(self, debt_ledger):
        assert debt_ledger.balance("alice") == 0

    def test_increase_and_decrease(self, debt_ledger):
        debt_ledger.increase("alice", 500)
        debt_ledger.increase("alice", 250)
        assert debt_ledger.decrease("alice", 700) == 50
        assert debt_ledger.balance("alice") == 50

    def test_decrease_more_than_owed(self, debt_ledger):
        debt_ledger.increase("alice", 500)
        with pytest.raises(InsufficientDebt):
            debt_ledger.decrease("alice", 501)
        assert debt_ledger.balance("alice") == 500

    def test_decrease_without_debt(self, debt_ledger):
        with pytest.raises(InsufficientDebt):
            debt_ledger.decrease("alice", 1)

    def test_zero_amounts(self, debt_ledger):
        with pytest.raises(ZeroAmount):
            debt_ledger.increase("alice", 0)
        with pytest.raises(ZeroAmount):
            debt_ledger.decrease("alice", 0)

    def test_debtors_and_total(self, debt_ledger):
        debt_ledger.increase("alice", 10)
        debt_ledger.increase("bob", 5)
        debt_ledger.decrease("bob", 5)
        assert debt_ledger.debtors() == ["alice"]
        assert debt_ledger.total() == 10


class TestPositionStore:

    def test_ledgers_share_the_store(self, registry):
        store = PositionStore()
        CollateralLedger(registry, store).deposit("alice", "WETH", 5)
        DebtLedger(store).increase("alice", 3)
        assert store.collateral == {("alice", "WETH"): 5}
        assert store.debt == {"alice": 3}

    def test_snapshot_restore(self, collateral_ledger, debt_ledger, store):
        collateral_ledger.deposit("alice", "WETH", 5)
        saved = store.snapshot()
        collateral_ledger.deposit("alice", "WETH", 5)
        debt_ledger.increase("alice", 1)
        store.restore(saved)
        assert collateral_ledger.balance("alice", "WETH") == 5
        assert debt_ledger.balance("alice") == 0

    def test_snapshot_is_a_copy(self, collateral_ledger, store):
        saved = store.snapshot()
        collateral_ledger.deposit("alice", "WETH", 5)
        assert saved.collateral == {}

    def test_stores_are_isolated(self):
        assert PositionStore().collateral is not PositionStore().collateral
