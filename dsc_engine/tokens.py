"""
tokens.py - ERC20-style token views over an AssetLedger

Classes:
- Token: balances, allowances, transfer and transfer_from for one asset
- MockToken: Token with an unrestricted faucet (collateral in tests and simulations)
- StableUnit: the pegged stable unit; only its owner may mint or burn

Every token is Revertible: checkpoint()/revert_to() delegate to the
underlying ledger, so the engine can undo transfers made during a failed
operation. Transfers never truncate: they either move the full amount or
raise a LedgerError. A zero-value transfer is a successful no-op.
"""

from __future__ import annotations
from typing import Optional

from .core import (
    Asset, Move, ExecuteResult, OriginType, TransactionOrigin,
    SYSTEM_WALLET, PRECISION_DECIMALS, build_transaction,
    LedgerError, InsufficientFunds, NotOwner, InvalidReceiver, InvalidAmount,
)
from .ledger import AssetLedger, LedgerCheckpoint


class Token:
    """
    Fungible token backed by an AssetLedger.

    The token registers its asset on construction. Callers are identified
    explicitly: every mutating method takes the acting wallet as its first
    argument.

    Example:
        chain = AssetLedger("chain")
        weth = MockToken(chain, "WETH", "Wrapped Ether")
        weth.issue("alice", 10 * 10**18)
        weth.approve("alice", "dsc_engine", 10 * 10**18)
    """

    def __init__(
        self,
        ledger: AssetLedger,
        symbol: str,
        name: str,
        decimals: int = PRECISION_DECIMALS,
    ):
        self.ledger = ledger
        self.symbol = symbol
        self.name = name
        self.decimals = decimals
        ledger.register_asset(Asset(symbol, name, decimals))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def balance_of(self, account: str) -> int:
        return self.ledger.get_balance(account, self.symbol)

    def total_supply(self) -> int:
        return self.ledger.total_supply(self.symbol)

    def allowance(self, owner: str, spender: str) -> int:
        return self.ledger.allowance(owner, spender, self.symbol)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Allow `spender` to move up to `amount` out of `owner`'s wallet."""
        if not spender or spender == SYSTEM_WALLET:
            raise InvalidReceiver(f"cannot approve spender {spender!r}")
        self.ledger.set_allowance(owner, spender, self.symbol, amount)
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """
        Move `amount` from `sender` to `to`.

        A zero amount succeeds without moving anything.

        Raises:
            InvalidReceiver: If `to` is empty or the system wallet
            InsufficientFunds: If `sender` holds less than `amount`
            InvalidAmount: If amount is negative
        """
        self._check_receiver(to)
        if amount == 0:
            return True
        self._move(sender, to, amount, OriginType.USER_ACTION, sender, "TRANSFER")
        return True

    def transfer_from(self, spender: str, source: str, to: str, amount: int) -> bool:
        """
        Move `amount` from `source` to `to` using `spender`'s allowance.

        A zero amount succeeds without touching the allowance.

        Raises:
            InsufficientAllowance: If `spender` is not approved for `amount`
            InsufficientFunds: If `source` holds less than `amount`
        """
        self._check_receiver(to)
        if amount == 0:
            return True
        self._check_balance(source, amount)
        self.ledger.spend_allowance(source, spender, self.symbol, amount)
        self._move(source, to, amount, OriginType.CONTRACT, spender, "TRANSFER_FROM")
        return True

    # ------------------------------------------------------------------
    # Revertible
    # ------------------------------------------------------------------

    def checkpoint(self) -> LedgerCheckpoint:
        return self.ledger.checkpoint()

    def revert_to(self, checkpoint: LedgerCheckpoint) -> None:
        self.ledger.revert_to(checkpoint)

    def commit(self) -> None:
        self.ledger.commit()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_receiver(self, to: str) -> None:
        if not to or not to.strip() or to == SYSTEM_WALLET:
            raise InvalidReceiver(f"invalid receiver {to!r} for {self.symbol}")

    def _check_balance(self, account: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmount(f"{self.symbol} amount must be positive, got {amount}")
        balance = self.balance_of(account)
        if balance < amount:
            raise InsufficientFunds(account, self.symbol, balance, amount)

    def _move(
        self,
        source: str,
        dest: str,
        amount: int,
        origin_type: OriginType,
        initiator: str,
        event_type: str,
    ) -> None:
        if dest != SYSTEM_WALLET:
            self._check_receiver(dest)
        if source != SYSTEM_WALLET:
            self._check_balance(source, amount)
        elif amount <= 0:
            raise InvalidAmount(f"{self.symbol} amount must be positive, got {amount}")
        pending = build_transaction(
            self.ledger,
            [Move(amount, self.symbol, source, dest, f"{self.symbol.lower()}_{event_type.lower()}")],
            TransactionOrigin(origin_type, initiator, event_type),
        )
        if self.ledger.execute(pending) != ExecuteResult.APPLIED:
            raise LedgerError(f"{event_type} of {amount} {self.symbol} rejected by {self.ledger.name}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol}, supply={self.total_supply()})"


class MockToken(Token):
    """Token with an unrestricted faucet, for collateral in tests and simulations."""

    def issue(self, to: str, amount: int) -> bool:
        """Create `amount` new tokens in `to`'s wallet."""
        self._move(SYSTEM_WALLET, to, amount, OriginType.ISSUANCE, to, "ISSUE")
        return True


class StableUnit(Token):
    """
    The pegged stable unit.

    Supply changes are restricted to the owner, which is the engine once
    ownership has been transferred to it. burn() only destroys tokens the
    owner itself holds, so the engine first pulls them in with transfer_from.
    """

    def __init__(
        self,
        ledger: AssetLedger,
        owner: str,
        symbol: str = "DSC",
        name: str = "Decentralized Stable Coin",
    ):
        super().__init__(ledger, symbol, name)
        self._owner = owner

    @property
    def owner(self) -> str:
        return self._owner

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._only_owner(caller)
        if not new_owner or new_owner == SYSTEM_WALLET:
            raise InvalidReceiver(f"invalid owner {new_owner!r}")
        self._owner = new_owner

    def mint(self, caller: str, to: str, amount: int) -> bool:
        """
        Create `amount` stable units in `to`'s wallet.

        Raises:
            NotOwner: If caller is not the owner
            InvalidReceiver: If `to` is empty or the system wallet
            InvalidAmount: If amount is not positive
        """
        self._only_owner(caller)
        self._check_receiver(to)
        self._move(SYSTEM_WALLET, to, amount, OriginType.ISSUANCE, caller, "MINT")
        return True

    def burn(self, caller: str, amount: int) -> None:
        """
        Destroy `amount` stable units held by the owner.

        Raises:
            NotOwner: If caller is not the owner
            InsufficientFunds: If the owner holds less than amount
        """
        self._only_owner(caller)
        self._move(caller, SYSTEM_WALLET, amount, OriginType.REDEMPTION, caller, "BURN")

    def _only_owner(self, caller: Optional[str]) -> None:
        if caller != self._owner:
            raise NotOwner(f"{caller!r} is not the owner of {self.symbol}")
