"""
tokens.py - In-memory fungible-unit ledger

The engine treats collateral assets and the pegged unit as external
collaborators reached through the FungibleUnit protocol. TokenLedger is a
complete in-memory implementation of that protocol, used to run the engine
end-to-end and in tests.

Every TokenLedger has one custodian account (the engine). pull/push move
units between an owner and the custodian; mint/burn create units for an
owner and destroy units held by the custodian.

Failure reporting follows the interface contract: pull, push and mint return
False instead of raising; burn raises InsufficientFunds because it is
assumed infallible once the custodian holds the units.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
import logging
from typing import Any, Dict, Protocol, Tuple, runtime_checkable

from .core import InsufficientFunds, UserId


logger = logging.getLogger(__name__)


@runtime_checkable
class FungibleUnit(Protocol):
    """Interface the engine uses for every unit it moves."""

    def pull(self, source: UserId, amount: int) -> bool:
        """Move amount from source to the custodian. False on failure."""
        ...

    def push(self, dest: UserId, amount: int) -> bool:
        """Move amount from the custodian to dest. False on failure."""
        ...

    def mint(self, dest: UserId, amount: int) -> bool:
        """Create amount new units for dest. False on failure."""
        ...

    def burn(self, amount: int) -> None:
        """Destroy amount units held by the custodian."""
        ...


@runtime_checkable
class Transactional(Protocol):
    """
    Optional interface for units that can be rolled back.

    When a unit implements it, the engine includes the unit's state in the
    all-or-nothing scope of each operation.
    """

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


@dataclass(frozen=True)
class TokenSnapshot:
    """Saved balances, allowances and supply counters of a TokenLedger."""
    balances: Dict[UserId, int]
    allowances: Dict[UserId, int]
    counters: Tuple[int, int, int]


class TokenLedger:
    """
    Balance and allowance bookkeeping for one fungible unit.

    Allowances are always granted to the custodian: approve(owner, n) lets the
    custodian pull up to n units from owner.

    Example:
        weth = TokenLedger("WETH", custodian="engine")
        weth.set_balance("alice", 10 * 10**18)
        weth.approve("alice", 10 * 10**18)
        weth.pull("alice", 10 * 10**18)   # True
    """

    def __init__(self, symbol: str, custodian: UserId, mintable: bool = False,
                 name: str = "", decimals: int = 18):
        """
        Args:
            symbol: Unit symbol
            custodian: Account allowed to pull, push and burn
            mintable: Whether mint() may create units (the pegged unit)
            name: Human-readable name
            decimals: Decimal places of one whole unit
        """
        if not symbol or not symbol.strip():
            raise ValueError("symbol cannot be empty")
        if not custodian or not custodian.strip():
            raise ValueError("custodian cannot be empty")
        self.symbol = symbol
        self.name = name or symbol
        self.decimals = decimals
        self.custodian = custodian
        self.mintable = mintable
        self.balances: Dict[UserId, int] = defaultdict(int)
        self.allowances: Dict[UserId, int] = defaultdict(int)
        self.issued = 0
        self.minted = 0
        self.burned = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def balance_of(self, account: UserId) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: UserId) -> int:
        return self.allowances.get(owner, 0)

    def total_supply(self) -> int:
        """Sum of all balances, accumulated in sorted account order."""
        return sum(self.balances[a] for a in sorted(self.balances))

    def verify_supply(self) -> Dict[str, Any]:
        """
        Check that balances add up to issued + minted - burned.

        Returns:
            Dict with 'valid', 'expected' and 'actual'
        """
        expected = self.issued + self.minted - self.burned
        actual = self.total_supply()
        return {'valid': expected == actual, 'expected': expected, 'actual': actual}

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    def set_balance(self, account: UserId, amount: int) -> None:
        """
        Set an account's balance directly, tracking the change as issuance.

        Used to fund accounts in tests and demos; bypasses mint authorization.
        """
        if amount < 0:
            raise ValueError(f"Balance cannot be negative, got {amount}")
        self.issued += amount - self.balance_of(account)
        self.balances[account] = amount

    def approve(self, owner: UserId, amount: int) -> None:
        """Allow the custodian to pull up to amount from owner."""
        if amount < 0:
            raise ValueError(f"Allowance cannot be negative, got {amount}")
        self.allowances[owner] = amount

    def transfer(self, source: UserId, dest: UserId, amount: int) -> bool:
        """Move units between two accounts. False if source is short."""
        if amount <= 0 or not dest or source == dest:
            return False
        if self.balance_of(source) < amount:
            return False
        self.balances[source] -= amount
        self.balances[dest] += amount
        return True

    # ------------------------------------------------------------------
    # FungibleUnit protocol
    # ------------------------------------------------------------------

    def pull(self, source: UserId, amount: int) -> bool:
        if self.allowance(source) < amount:
            logger.debug("%s pull from %s refused: allowance %d < %d",
                         self.symbol, source, self.allowance(source), amount)
            return False
        if not self.transfer(source, self.custodian, amount):
            logger.debug("%s pull from %s refused: balance %d < %d",
                         self.symbol, source, self.balance_of(source), amount)
            return False
        self.allowances[source] -= amount
        return True

    def push(self, dest: UserId, amount: int) -> bool:
        return self.transfer(self.custodian, dest, amount)

    def mint(self, dest: UserId, amount: int) -> bool:
        if not self.mintable or amount <= 0 or not dest:
            return False
        self.balances[dest] += amount
        self.minted += amount
        return True

    def burn(self, amount: int) -> None:
        """
        Raises:
            ValueError: If amount is not positive
            InsufficientFunds: If the custodian holds less than amount
        """
        if amount <= 0:
            raise ValueError(f"Burn amount must be positive, got {amount}")
        held = self.balance_of(self.custodian)
        if held < amount:
            raise InsufficientFunds(f"Burn amount {amount} exceeds custodian balance {held}")
        self.balances[self.custodian] = held - amount
        self.burned += amount

    # ------------------------------------------------------------------
    # Transactional protocol
    # ------------------------------------------------------------------

    def snapshot(self) -> TokenSnapshot:
        return TokenSnapshot(
            balances=dict(self.balances),
            allowances=dict(self.allowances),
            counters=(self.issued, self.minted, self.burned),
        )

    def restore(self, snapshot: TokenSnapshot) -> None:
        self.balances = defaultdict(int, snapshot.balances)
        self.allowances = defaultdict(int, snapshot.allowances)
        self.issued, self.minted, self.burned = snapshot.counters

    def __repr__(self):
        return f"TokenLedger({self.symbol}, supply={self.total_supply()}, custodian={self.custodian})"
