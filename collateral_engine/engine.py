"""
engine.py - Over-collateralized debt engine

CollateralEngine is the public surface of the system and the only component
that sequences state changes. It owns the PositionStore, wires the ledgers,
the health calculator and the liquidation coordinator, and talks to the
fungible units.

Every mutating operation runs inside _operation(), which:
    1. Refuses re-entry (ReentrantCall) while another operation is running
    2. Snapshots the store, the event log and every Transactional unit
    3. Runs checks and ledger effects (the body of the with-block)
    4. Runs queued interactions (pull/push/mint/burn), in queue order
    5. On any exception restores the snapshot and re-raises

Interactions are only queued inside the body and only executed after it, so
no engine state is ever written after control passes to a unit.

Thread Safety:
    Not thread-safe. Calls are expected to be serialized by the caller.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .core import (
    AccountInfo, AssetId, EngineEvent, EventType, UserId,
    MIN_HEALTH_FACTOR,
    ConfigMismatch, MintFailed, ReentrantCall, TransferFailed,
    require_account, require_amount,
)
from .health import HealthFactorCalculator, calculate_health_factor
from .liquidation import LiquidationCoordinator, LiquidationResult
from .oracle import PriceOracleAdapter
from .positions import CollateralLedger, DebtLedger, PositionStore, StoreSnapshot
from .registry import CollateralRegistry
from .tokens import FungibleUnit, Transactional


logger = logging.getLogger(__name__)


PULL = "pull"
PUSH = "push"
MINT = "mint"
BURN = "burn"


@dataclass(frozen=True, slots=True)
class Interaction:
    """A queued call into a fungible unit."""
    action: str
    unit_symbol: str
    account: Optional[UserId]
    amount: int


@dataclass
class _EngineSnapshot:
    store: StoreSnapshot
    event_count: int
    next_sequence: int
    units: List[Tuple[Transactional, Any]]


class CollateralEngine:
    """
    Deposit collateral, mint the pegged unit against it, get liquidated when
    under-collateralized.

    Example:
        engine = CollateralEngine(registry, {"WETH": weth}, pegged, account="engine")
        engine.deposit_collateral_and_mint("alice", "WETH", 10 * 10**18, 5_000 * 10**18)
        engine.get_health_factor("alice")   # 2 * 10**18
    """

    def __init__(
        self,
        registry: CollateralRegistry,
        collateral_units: Mapping[AssetId, FungibleUnit],
        pegged_unit: FungibleUnit,
        store: Optional[PositionStore] = None,
        account: UserId = "engine",
        pegged_symbol: str = "PEG",
    ):
        """
        Args:
            registry: Collateral allow-list with price adapters
            collateral_units: Fungible unit for every registered asset
            pegged_unit: Mintable unit the engine issues as debt
            store: Position state (a fresh empty store if omitted)
            account: The engine's own account on every unit
            pegged_symbol: Symbol used for the pegged unit in logs and interactions

        Raises:
            ConfigMismatch: If collateral_units does not cover exactly the registry's assets,
                or pegged_symbol collides with a collateral asset
        """
        missing = [a for a in registry.list_assets() if a not in collateral_units]
        extra = [a for a in collateral_units if a not in registry]
        if missing or extra:
            raise ConfigMismatch(
                f"Collateral units do not match registry (missing={missing}, unregistered={extra})"
            )
        if pegged_symbol in collateral_units:
            raise ConfigMismatch(
                f"Pegged symbol {pegged_symbol} is also a collateral asset"
            )
        self.registry = registry
        self.collateral_units: Dict[AssetId, FungibleUnit] = dict(collateral_units)
        self.pegged_unit = pegged_unit
        self.pegged_symbol = pegged_symbol
        self.account = account
        self.store = store if store is not None else PositionStore()

        self.collateral = CollateralLedger(registry, self.store)
        self.debt = DebtLedger(self.store)
        self.calculator = HealthFactorCalculator(registry, self.collateral, self.debt)
        self.liquidations = LiquidationCoordinator(self.calculator, self.collateral, self.debt)

        self._events: List[EngineEvent] = []
        self._next_sequence = 0
        self._entered = False

    # ========================================================================
    # OPERATION SCOPE
    # ========================================================================

    def _transactional_units(self) -> List[Transactional]:
        units: List[Any] = [*self.collateral_units.values(), self.pegged_unit]
        seen: Dict[int, Transactional] = {}
        for unit in units:
            if isinstance(unit, Transactional):
                seen.setdefault(id(unit), unit)
        return list(seen.values())

    def _snapshot(self) -> _EngineSnapshot:
        return _EngineSnapshot(
            store=self.store.snapshot(),
            event_count=len(self._events),
            next_sequence=self._next_sequence,
            units=[(unit, unit.snapshot()) for unit in self._transactional_units()],
        )

    def _restore(self, snapshot: _EngineSnapshot) -> None:
        self.store.restore(snapshot.store)
        del self._events[snapshot.event_count:]
        self._next_sequence = snapshot.next_sequence
        for unit, saved in snapshot.units:
            unit.restore(saved)

    @contextmanager
    def _operation(self, name: str) -> Iterator[List[Interaction]]:
        if self._entered:
            raise ReentrantCall(f"{name} called while another engine operation is running")
        self._entered = True
        saved = self._snapshot()
        interactions: List[Interaction] = []
        try:
            yield interactions
            for interaction in interactions:
                self._interact(interaction)
        except BaseException as e:
            self._restore(saved)
            logger.warning("%s rejected: %s: %s", name, type(e).__name__, e)
            raise
        finally:
            self._entered = False

    def _unit(self, symbol: str) -> FungibleUnit:
        if symbol == self.pegged_symbol:
            return self.pegged_unit
        return self.collateral_units[symbol]

    def _interact(self, interaction: Interaction) -> None:
        unit = self._unit(interaction.unit_symbol)
        action, symbol, account, amount = (
            interaction.action, interaction.unit_symbol, interaction.account, interaction.amount
        )
        if action == PULL:
            if not unit.pull(account, amount):
                raise TransferFailed(f"Could not pull {amount} {symbol} from {account}")
        elif action == PUSH:
            if not unit.push(account, amount):
                raise TransferFailed(f"Could not push {amount} {symbol} to {account}")
        elif action == MINT:
            if not unit.mint(account, amount):
                raise MintFailed(f"Could not mint {amount} {symbol} to {account}")
        elif action == BURN:
            unit.burn(amount)
        else:
            raise ValueError(f"Unknown interaction {action}")

    def _record(
        self,
        event_type: EventType,
        user: UserId,
        asset: Optional[AssetId],
        amount: int,
        counterparty: Optional[UserId] = None,
        **details: Any,
    ) -> EngineEvent:
        event = EngineEvent(
            event_type=event_type,
            user=user,
            asset=asset,
            amount=amount,
            counterparty=counterparty,
            sequence=self._next_sequence,
            details=details,
        )
        self._next_sequence += 1
        self._events.append(event)
        return event

    # ========================================================================
    # STEPS (checks + effects, interactions queued)
    # ========================================================================

    def _deposit(self, interactions: List[Interaction], user: UserId, asset: AssetId, amount: int) -> None:
        self.collateral.deposit(user, asset, amount)
        self._record(EventType.COLLATERAL_DEPOSITED, user, asset, amount)
        interactions.append(Interaction(PULL, asset, user, amount))

    def _mint(self, interactions: List[Interaction], user: UserId, amount: int) -> None:
        self.debt.increase(user, amount)
        self._record(EventType.DEBT_MINTED, user, None, amount)
        interactions.append(Interaction(MINT, self.pegged_symbol, user, amount))

    def _redeem(self, interactions: List[Interaction], source: UserId, dest: UserId,
                asset: AssetId, amount: int) -> None:
        self.collateral.withdraw(source, asset, amount)
        self._record(EventType.COLLATERAL_REDEEMED, source, asset, amount, counterparty=dest)
        interactions.append(Interaction(PUSH, asset, dest, amount))

    def _burn(self, interactions: List[Interaction], on_behalf_of: UserId, payer: UserId, amount: int) -> None:
        self.debt.decrease(on_behalf_of, amount)
        self._record(EventType.DEBT_BURNED, on_behalf_of, None, amount, counterparty=payer)
        interactions.append(Interaction(PULL, self.pegged_symbol, payer, amount))
        interactions.append(Interaction(BURN, self.pegged_symbol, None, amount))

    # ========================================================================
    # PUBLIC OPERATIONS (mutating)
    # ========================================================================

    def deposit_collateral(self, user: UserId, asset: AssetId, amount: int) -> None:
        """
        Deposit amount of asset as collateral.

        Raises:
            ZeroAmount, UnsupportedAsset, TransferFailed
        """
        require_amount(amount)
        self.registry.require_supported(asset)
        require_account(user)
        with self._operation("deposit_collateral") as interactions:
            self._deposit(interactions, user, asset, amount)
        logger.info("%s deposited %d %s", user, amount, asset)

    def mint_debt(self, user: UserId, amount: int) -> None:
        """
        Mint amount of the pegged unit against user's collateral.

        Raises:
            ZeroAmount, HealthFactorBroken, MintFailed
        """
        require_amount(amount)
        require_account(user)
        with self._operation("mint_debt") as interactions:
            self._mint(interactions, user, amount)
            self.calculator.assert_healthy(user)
        logger.info("%s minted %d %s", user, amount, self.pegged_symbol)

    def deposit_collateral_and_mint(self, user: UserId, asset: AssetId, amount: int, mint_amount: int) -> None:
        """Deposit collateral and mint against it in one operation."""
        require_amount(amount)
        require_amount(mint_amount, "mint_amount")
        self.registry.require_supported(asset)
        require_account(user)
        with self._operation("deposit_collateral_and_mint") as interactions:
            self._deposit(interactions, user, asset, amount)
            self._mint(interactions, user, mint_amount)
            self.calculator.assert_healthy(user)
        logger.info("%s deposited %d %s and minted %d %s",
                    user, amount, asset, mint_amount, self.pegged_symbol)

    def redeem_collateral(self, user: UserId, asset: AssetId, amount: int) -> None:
        """
        Withdraw amount of deposited asset back to user.

        Raises:
            ZeroAmount, UnsupportedAsset, InsufficientCollateral, HealthFactorBroken, TransferFailed
        """
        require_amount(amount)
        self.registry.require_supported(asset)
        with self._operation("redeem_collateral") as interactions:
            self._redeem(interactions, user, user, asset, amount)
            self.calculator.assert_healthy(user)
        logger.info("%s redeemed %d %s", user, amount, asset)

    def burn_debt(self, user: UserId, amount: int) -> None:
        """
        Repay amount of user's debt with user's own pegged units.

        Raises:
            ZeroAmount, InsufficientDebt, TransferFailed
        """
        require_amount(amount)
        with self._operation("burn_debt") as interactions:
            self._burn(interactions, user, user, amount)
        logger.info("%s burned %d %s", user, amount, self.pegged_symbol)

    def redeem_collateral_for_debt(self, user: UserId, asset: AssetId, collateral_amount: int,
                                   debt_amount: int) -> None:
        """Burn debt_amount, then redeem collateral_amount of asset, in one operation."""
        require_amount(collateral_amount, "collateral_amount")
        require_amount(debt_amount, "debt_amount")
        self.registry.require_supported(asset)
        with self._operation("redeem_collateral_for_debt") as interactions:
            self._burn(interactions, user, user, debt_amount)
            self._redeem(interactions, user, user, asset, collateral_amount)
            self.calculator.assert_healthy(user)
        logger.info("%s burned %d %s and redeemed %d %s",
                    user, debt_amount, self.pegged_symbol, collateral_amount, asset)

    def liquidate(self, liquidator: UserId, target_user: UserId, seize_asset: AssetId,
                  debt_to_cover: int) -> LiquidationResult:
        """
        Cover debt_to_cover of target_user's debt and seize the equivalent
        seize_asset plus the liquidation bonus.

        The liquidator pays with pegged units from their own balance (pulled
        and burned); the seized collateral is pushed to the liquidator.

        Raises:
            ZeroAmount, UnsupportedAsset, HealthFactorOk, InsufficientCollateral,
            InsufficientDebt, HealthFactorNotImproved, HealthFactorBroken, TransferFailed
        """
        require_amount(debt_to_cover, "debt_to_cover")
        with self._operation("liquidate") as interactions:
            result = self.liquidations.liquidate(liquidator, target_user, seize_asset, debt_to_cover)
            self._record(
                EventType.LIQUIDATION, target_user, seize_asset, result.total_seized,
                counterparty=liquidator,
                debt_covered=result.debt_covered,
                bonus=result.bonus,
                starting_health=result.starting_health,
                ending_health=result.ending_health,
            )
            interactions.append(Interaction(PULL, self.pegged_symbol, liquidator, debt_to_cover))
            interactions.append(Interaction(BURN, self.pegged_symbol, None, debt_to_cover))
            interactions.append(Interaction(PUSH, seize_asset, liquidator, result.total_seized))
        logger.info(
            "%s liquidated %s: covered %d %s, seized %d %s (bonus %d), health %d -> %d",
            liquidator, target_user, debt_to_cover, self.pegged_symbol,
            result.total_seized, seize_asset, result.bonus,
            result.starting_health, result.ending_health,
        )
        return result

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    def get_account_info(self, user: UserId) -> AccountInfo:
        return self.calculator.account_info(user)

    def get_health_factor(self, user: UserId) -> int:
        return self.calculator.health_factor(user)

    def get_collateral_balance(self, user: UserId, asset: AssetId) -> int:
        return self.collateral.balance(user, asset)

    def get_debt(self, user: UserId) -> int:
        return self.debt.balance(user)

    def get_account_collateral_value(self, user: UserId) -> int:
        return self.calculator.total_collateral_value_usd(user)

    def get_usd_value(self, asset: AssetId, amount: int) -> int:
        return self.calculator.usd_value(asset, amount)

    def get_token_amount_from_usd(self, asset: AssetId, usd_amount: int) -> int:
        return self.calculator.token_amount_from_usd(asset, usd_amount)

    def calculate_health_factor(self, debt_minted: int, collateral_value_usd: int) -> int:
        return calculate_health_factor(debt_minted, collateral_value_usd)

    def get_collateral_assets(self) -> Tuple[AssetId, ...]:
        return self.registry.list_assets()

    def get_price_adapter(self, asset: AssetId) -> PriceOracleAdapter:
        return self.registry.adapter_for(asset)

    @property
    def events(self) -> List[EngineEvent]:
        """Audit log of committed operations (a copy)."""
        return list(self._events)

    # ========================================================================
    # INVARIANT CHECKS
    # ========================================================================

    def verify_solvency(self) -> Dict[str, Any]:
        """
        Check every debtor's health factor at current prices.

        Returns:
            Dict with 'valid' and 'violations' (list of {'user', 'health_factor'})

        Example:
            result = engine.verify_solvency()
            assert result['valid'], result['violations']
        """
        violations = []
        for user in self.debt.debtors():
            value = self.calculator.health_factor(user)
            if value < MIN_HEALTH_FACTOR:
                violations.append({'user': user, 'health_factor': value})
        return {'valid': len(violations) == 0, 'violations': violations}

    def verify_custody(self) -> Dict[str, Any]:
        """
        Check that the engine holds at least the recorded collateral of each asset.

        Units without a balance_of() query are reported as unchecked.

        Returns:
            Dict with 'valid', 'holdings' ({asset: (held, recorded)}), 'discrepancies'
            and 'unchecked'
        """
        holdings = {}
        discrepancies = []
        unchecked = []
        for asset in self.registry.list_assets():
            unit = self.collateral_units[asset]
            recorded = self.collateral.total_deposited(asset)
            balance_of = getattr(unit, "balance_of", None)
            if balance_of is None:
                unchecked.append(asset)
                continue
            held = balance_of(self.account)
            holdings[asset] = (held, recorded)
            if held < recorded:
                discrepancies.append({'asset': asset, 'held': held, 'recorded': recorded})
        return {
            'valid': len(discrepancies) == 0,
            'holdings': holdings,
            'discrepancies': discrepancies,
            'unchecked': unchecked,
        }

    def __repr__(self):
        return (
            f"CollateralEngine({len(self.registry)} assets, "
            f"{len(self.debt.debtors())} debtors, {len(self._events)} events)"
        )
