"""
positions.py - Balance-changing entry points

PositionOperations implements deposit, mint, redeem and burn (and their
compositions) on top of the CollateralLedger, ValuationService and the
external tokens.

Execution model:
    Every entry point runs inside one atomic() scope. The scope
    checkpoints the CollateralLedger and every Revertible collaborator,
    and on any exception reverts all of them (newest first) and drops the
    notifications buffered so far. Subscribers see the notifications at
    the end of the outermost scope; a subscriber that raises fails the
    operation like any other step. Only then does the scope commit.

Ordering:
    1. validate inputs
    2. update the CollateralLedger
    3. call the external token (transfer, mint, burn); minting checks the
       health factor before its token call
    4. check the health factor where collateral shrinks (redeem, burn and
       their composition), after the token call; a failure here reverts
       the transfer with everything else

Reentrancy:
    An account is locked for the duration of its operation. Any attempt to
    enter a balance-changing entry point for a locked account raises
    ReentrantCall. Read-only queries stay available.

The apply_* primitives perform one step each and must only be called
inside atomic(); LiquidationEngine composes them.
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Set

from .collateral_ledger import CollateralLedger
from .core import (
    DEFAULT_CONFIG, EngineConfig, EngineEvent, EventKind,
    CollateralToken, StableUnitToken, Revertible,
    EngineError, NeedsMoreThanZero, NotAllowedToken, BreaksHealthFactor,
    TransferFailed, ReentrantCall,
)
from .health import health_factor, is_healthy
from .registry import CollateralRegistry
from .valuation import ValuationService


Subscriber = Callable[[EngineEvent], None]


class PositionOperations:
    """
    State-mutating entry points for collateralized positions.

    Args:
        address: Wallet id of the engine (custodian of deposits, owner of the stable unit)
        registry: Supported collateral
        collateral_ledger: Deposits and debt of record
        valuation: USD valuation service
        dsc: Stable-unit token the engine mints and burns
        config: Risk parameters
        verbose: Print one line per committed or rejected operation
    """

    def __init__(
        self,
        address: str,
        registry: CollateralRegistry,
        collateral_ledger: CollateralLedger,
        valuation: ValuationService,
        dsc: StableUnitToken,
        config: Optional[EngineConfig] = None,
        verbose: bool = False,
    ):
        self.address = address
        self.registry = registry
        self.collateral_ledger = collateral_ledger
        self.valuation = valuation
        self.dsc = dsc
        self.config = config or DEFAULT_CONFIG
        self.verbose = verbose

        self.event_log: List[EngineEvent] = []
        self._subscribers: List[Subscriber] = []
        self._pending_events: List[EngineEvent] = []
        self._locked: Set[str] = set()
        self._depth = 0
        self._participants: List[Revertible] = self._collect_participants()

    def _collect_participants(self) -> List[Revertible]:
        """The CollateralLedger plus every distinct Revertible token."""
        participants: List[Revertible] = [self.collateral_ledger]
        candidates = [c.token for c in self.registry] + [self.dsc]
        for candidate in candidates:
            if isinstance(candidate, Revertible) and not any(candidate is p for p in participants):
                participants.append(candidate)
        return participants

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    def subscribe(self, callback: Subscriber) -> None:
        """
        Receive every EngineEvent of a committing operation, in order.

        Callbacks run at the end of the outermost operation, before it
        commits. An exception raised by a callback rolls the whole
        operation back and propagates to the caller.
        """
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers.remove(callback)

    def emit(self, event: EngineEvent) -> None:
        """Buffer a notification until the enclosing operation commits."""
        self._pending_events.append(event)

    def _deliver(self) -> None:
        # Operations started by a callback append to the buffer while we walk it.
        index = 0
        while index < len(self._pending_events):
            event = self._pending_events[index]
            index += 1
            for callback in list(self._subscribers):
                callback(event)

    def _publish(self) -> None:
        events, self._pending_events = self._pending_events, []
        self.event_log.extend(events)

    # ========================================================================
    # ATOMIC SCOPE
    # ========================================================================

    @property
    def locked_accounts(self) -> Set[str]:
        return set(self._locked)

    @contextmanager
    def atomic(self, operation: str, *accounts: str) -> Iterator[None]:
        """
        Run a block as one all-or-nothing unit for the given accounts.

        Raises:
            ReentrantCall: If any of the accounts is already mid-operation
        """
        for account in accounts:
            if account in self._locked:
                raise ReentrantCall(account)
        entered = set(accounts)
        self._locked.update(entered)
        checkpoints = [(p, p.checkpoint()) for p in self._participants]
        event_mark = len(self._pending_events)
        self._depth += 1
        try:
            yield
            if self._depth == 1:
                self._deliver()
        except BaseException as e:
            for participant, marker in reversed(checkpoints):
                participant.revert_to(marker)
            del self._pending_events[event_mark:]
            if self.verbose:
                print(f"✗ REJECTED: {operation}({', '.join(accounts)}): {type(e).__name__}: {e}")
            raise
        finally:
            self._depth -= 1
            self._locked.difference_update(entered)

        if self.verbose:
            print(f"✓ APPLIED: {operation}({', '.join(accounts)})")
        if self._depth == 0:
            for participant in self._participants:
                participant.commit()
            self._publish()

    @contextmanager
    def dry_run(self) -> Iterator[None]:
        """Run a block and then undo all of its effects, successful or not."""
        checkpoints = [(p, p.checkpoint()) for p in self._participants]
        event_mark = len(self._pending_events)
        self._depth += 1
        try:
            yield
        finally:
            for participant, marker in reversed(checkpoints):
                participant.revert_to(marker)
            del self._pending_events[event_mark:]
            self._depth -= 1

    # ========================================================================
    # CHECKS
    # ========================================================================

    @staticmethod
    def require_more_than_zero(*amounts: int) -> None:
        for amount in amounts:
            if amount <= 0:
                raise NeedsMoreThanZero(amount)

    def require_allowed_token(self, asset_id: str) -> None:
        if not self.registry.is_supported(asset_id):
            raise NotAllowedToken(asset_id)

    def health_factor(self, user: str) -> int:
        collateral_value = self.valuation.total_collateral_value(user)
        return health_factor(collateral_value, self.collateral_ledger.minted_debt(user), self.config)

    def check_health_factor(self, user: str) -> None:
        """
        Raises:
            BreaksHealthFactor: If the user's health factor is below the minimum
        """
        hf = self.health_factor(user)
        if not is_healthy(hf, self.config):
            raise BreaksHealthFactor(user, hf)

    # ========================================================================
    # ENTRY POINTS
    # ========================================================================

    def deposit_collateral(self, user: str, asset_id: str, amount: int) -> None:
        """
        Lock `amount` of a supported asset as collateral.

        The engine pulls the tokens with transfer_from, so `user` must have
        approved the engine's address beforehand.

        Raises:
            NeedsMoreThanZero, NotAllowedToken, TransferFailed, ReentrantCall
        """
        self.require_more_than_zero(amount)
        self.require_allowed_token(asset_id)
        with self.atomic("deposit_collateral", user):
            self.apply_deposit(user, asset_id, amount)

    def mint_dsc(self, user: str, amount: int) -> None:
        """
        Mint `amount` stable units to `user` against their collateral.

        Raises:
            NeedsMoreThanZero, BreaksHealthFactor, TransferFailed, ReentrantCall
        """
        self.require_more_than_zero(amount)
        with self.atomic("mint_dsc", user):
            self.apply_mint(user, amount)

    def deposit_collateral_and_mint_dsc(
        self,
        user: str,
        asset_id: str,
        amount_collateral: int,
        amount_dsc_to_mint: int,
    ) -> None:
        """Deposit and mint in one atomic operation."""
        self.require_more_than_zero(amount_collateral, amount_dsc_to_mint)
        self.require_allowed_token(asset_id)
        with self.atomic("deposit_collateral_and_mint_dsc", user):
            self.apply_deposit(user, asset_id, amount_collateral)
            self.apply_mint(user, amount_dsc_to_mint)

    def redeem_collateral(self, user: str, asset_id: str, amount: int) -> None:
        """
        Withdraw deposited collateral back to `user`.

        Raises:
            NeedsMoreThanZero, NotAllowedToken, TransferFailed (including a
            short deposit), BreaksHealthFactor, ReentrantCall
        """
        self.require_more_than_zero(amount)
        self.require_allowed_token(asset_id)
        with self.atomic("redeem_collateral", user):
            self.apply_redeem(asset_id, amount, source=user, dest=user)
            self.check_health_factor(user)

    def burn_dsc(self, user: str, amount: int) -> None:
        """
        Repay `amount` of debt with stable units held by `user`.

        Raises:
            NeedsMoreThanZero, TransferFailed (including burning more than the
            debt), BreaksHealthFactor, ReentrantCall
        """
        self.require_more_than_zero(amount)
        with self.atomic("burn_dsc", user):
            self.apply_burn(amount, on_behalf_of=user, dsc_from=user)
            self.check_health_factor(user)

    def redeem_collateral_for_dsc(
        self,
        user: str,
        asset_id: str,
        amount_collateral: int,
        amount_dsc_to_burn: int,
    ) -> None:
        """Burn stable units and withdraw collateral in one atomic operation."""
        self.require_more_than_zero(amount_collateral, amount_dsc_to_burn)
        self.require_allowed_token(asset_id)
        with self.atomic("redeem_collateral_for_dsc", user):
            self.apply_burn(amount_dsc_to_burn, on_behalf_of=user, dsc_from=user)
            self.apply_redeem(asset_id, amount_collateral, source=user, dest=user)
            self.check_health_factor(user)

    # ========================================================================
    # PRIMITIVES (inside atomic() only)
    # ========================================================================

    def apply_deposit(self, user: str, asset_id: str, amount: int) -> None:
        self.collateral_ledger.credit_collateral(user, asset_id, amount)
        self.emit(EngineEvent(EventKind.COLLATERAL_DEPOSITED, user, asset_id, amount))
        token = self.registry.token_for(asset_id)
        self._call_token(
            lambda: token.transfer_from(self.address, user, self.address, amount),
            f"deposit of {amount} {asset_id} from {user}",
        )

    def apply_mint(self, user: str, amount: int) -> None:
        self.collateral_ledger.increase_debt(user, amount)
        self.check_health_factor(user)
        self.emit(EngineEvent(EventKind.DSC_MINTED, user, self.dsc.symbol, amount))
        self._call_token(
            lambda: self.dsc.mint(self.address, user, amount),
            f"mint of {amount} {self.dsc.symbol} to {user}",
        )

    def apply_redeem(self, asset_id: str, amount: int, source: str, dest: str) -> None:
        """Move `amount` of `source`'s deposit out of custody to `dest`."""
        self.collateral_ledger.debit_collateral(source, asset_id, amount)
        self.emit(EngineEvent(
            EventKind.COLLATERAL_REDEEMED, source, asset_id, amount,
            counterparty=dest if dest != source else None,
        ))
        token: CollateralToken = self.registry.token_for(asset_id)
        self._call_token(
            lambda: token.transfer(self.address, dest, amount),
            f"redemption of {amount} {asset_id} to {dest}",
        )

    def apply_burn(self, amount: int, on_behalf_of: str, dsc_from: str) -> None:
        """Reduce `on_behalf_of`'s debt, paying with stable units held by `dsc_from`."""
        self.collateral_ledger.decrease_debt(on_behalf_of, amount)
        self.emit(EngineEvent(
            EventKind.DSC_BURNED, on_behalf_of, self.dsc.symbol, amount,
            counterparty=dsc_from if dsc_from != on_behalf_of else None,
        ))
        self._call_token(
            lambda: self.dsc.transfer_from(self.address, dsc_from, self.address, amount),
            f"collection of {amount} {self.dsc.symbol} from {dsc_from}",
        )
        self._call_token(
            lambda: self.dsc.burn(self.address, amount),
            f"burn of {amount} {self.dsc.symbol}",
        )

    @staticmethod
    def _call_token(call: Callable[[], Optional[bool]], description: str) -> None:
        """
        Run an external token call; any exception it raises, or an explicit
        False return, becomes TransferFailed. A call with no return value
        succeeds. EngineErrors from nested operations propagate unchanged.
        """
        try:
            success = call()
        except EngineError:
            raise
        except Exception as e:
            raise TransferFailed(f"{description} failed: {e}") from e
        if success is False:
            raise TransferFailed(f"{description} failed")
