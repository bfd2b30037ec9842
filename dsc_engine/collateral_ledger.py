"""
collateral_ledger.py - Per-account collateral and debt of record

The CollateralLedger is the only mutable state the engine owns:
for each account, the amount deposited per collateral asset and the
stable units minted against it. Accounts appear on their first committed
write and are never deleted afterwards; zero balances are a valid
terminal state. Reverting a first write removes the account again.

Reads return frozen UserAccount snapshots. Mutations are journaled so
the enclosing operation can checkpoint() and revert_to() like any other
Revertible collaborator.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from .core import InsufficientCollateral, ExceedsDebt
from .fixed_point import add, checked


@dataclass(frozen=True, slots=True)
class UserAccount:
    """
    Immutable snapshot of one account.

    Attributes:
        owner: Account id
        collateral: asset_id -> deposited amount (zero entries omitted)
        minted_debt: Stable units minted and not yet burned
    """
    owner: str
    collateral: Mapping[str, int]
    minted_debt: int

    @property
    def is_empty(self) -> bool:
        return self.minted_debt == 0 and not any(self.collateral.values())


# Journal entry: ("collateral", owner, asset_id, previous) or ("debt", owner, None, previous);
# previous is None when the entry did not exist before the write.
_JournalEntry = Tuple[str, str, Optional[str], Optional[int]]


class CollateralLedger:
    """Deposits and minted debt per account."""

    def __init__(self):
        self._collateral: Dict[str, Dict[str, int]] = defaultdict(dict)
        self._debt: Dict[str, int] = {}
        self._journal: List[_JournalEntry] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def collateral_of(self, owner: str, asset_id: str) -> int:
        account = self._collateral.get(owner)
        return account.get(asset_id, 0) if account else 0

    def minted_debt(self, owner: str) -> int:
        return self._debt.get(owner, 0)

    def account(self, owner: str) -> UserAccount:
        deposits = self._collateral.get(owner, {})
        return UserAccount(
            owner=owner,
            collateral={k: v for k, v in deposits.items() if v},
            minted_debt=self.minted_debt(owner),
        )

    def owners(self) -> List[str]:
        """Every account ever touched, sorted."""
        return sorted(set(self._collateral) | set(self._debt))

    def total_deposited(self, asset_id: str) -> int:
        return sum(self._collateral[o].get(asset_id, 0) for o in sorted(self._collateral))

    def total_debt(self) -> int:
        return sum(self._debt[o] for o in sorted(self._debt))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def credit_collateral(self, owner: str, asset_id: str, amount: int) -> int:
        """Increase a deposit; returns the new balance."""
        current = self.collateral_of(owner, asset_id)
        return self._set_collateral(owner, asset_id, add(current, amount))

    def debit_collateral(self, owner: str, asset_id: str, amount: int) -> int:
        """
        Decrease a deposit; returns the new balance.

        Raises:
            InsufficientCollateral: If the deposit is smaller than amount
        """
        current = self.collateral_of(owner, asset_id)
        if amount > current:
            raise InsufficientCollateral(owner, asset_id, current, amount)
        return self._set_collateral(owner, asset_id, current - amount)

    def increase_debt(self, owner: str, amount: int) -> int:
        return self._set_debt(owner, add(self.minted_debt(owner), amount))

    def decrease_debt(self, owner: str, amount: int) -> int:
        """
        Raises:
            ExceedsDebt: If amount is larger than the minted debt
        """
        current = self.minted_debt(owner)
        if amount > current:
            raise ExceedsDebt(owner, current, amount)
        return self._set_debt(owner, current - amount)

    def _set_collateral(self, owner: str, asset_id: str, value: int) -> int:
        previous = self._collateral[owner].get(asset_id) if owner in self._collateral else None
        self._journal.append(("collateral", owner, asset_id, previous))
        self._collateral[owner][asset_id] = checked(value)
        return value

    def _set_debt(self, owner: str, value: int) -> int:
        self._journal.append(("debt", owner, None, self._debt.get(owner)))
        self._debt[owner] = checked(value)
        return value

    # ------------------------------------------------------------------
    # Revertible
    # ------------------------------------------------------------------

    def checkpoint(self) -> int:
        return len(self._journal)

    def revert_to(self, checkpoint: int) -> None:
        """Restore every value written after `checkpoint`, newest first."""
        for kind, owner, asset_id, previous in reversed(self._journal[checkpoint:]):
            if kind == "collateral":
                deposits = self._collateral[owner]
                if previous is None:
                    deposits.pop(asset_id, None)
                    if not deposits:
                        del self._collateral[owner]
                else:
                    deposits[asset_id] = previous
            elif previous is None:
                self._debt.pop(owner, None)
            else:
                self._debt[owner] = previous
        del self._journal[checkpoint:]

    def commit(self) -> None:
        """Forget the undo history once no open operation needs it."""
        self._journal.clear()

    def __repr__(self):
        return f"CollateralLedger({len(self.owners())} accounts, debt={self.total_debt()})"
