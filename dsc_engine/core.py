"""
Core types for the stable-unit issuance engine.

This module provides the foundational data structures and protocols:
1. Constants: fixed-point scales and risk parameters
2. Protocols: PriceFeed, CollateralToken, StableUnitToken, Revertible, AssetView, EngineView
3. Immutable data structures: Move, PendingTransaction, Transaction, RoundData,
   PriceSample, SupportedCollateral, EngineEvent, EngineConfig
4. Exceptions: LedgerError (collaborator failures) and EngineError (engine outcomes)

All amounts are integers. USD values and stable-unit amounts carry 18
fractional digits (a "wad"); raw feed answers carry the feed's own precision.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import (
    Dict, List, Optional, Any, Protocol, Tuple, FrozenSet, NamedTuple,
    runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance and redemption.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# Default wallet id of the engine itself (custodian of deposited collateral).
ENGINE_WALLET = "dsc_engine"

# Unsigned 256-bit ceiling for every intermediate fixed-point product.
MAX_UINT256 = 2 ** 256 - 1

# Internal fixed-point scale: 18 fractional digits.
PRECISION = 10 ** 18
PRECISION_DECIMALS = 18

# Scale factor applied to an 8-digit feed answer to reach PRECISION.
ADDITIONAL_FEED_PRECISION = 10 ** 10

# Half of the collateral value counts toward solvency (200% overcollateralized).
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_PRECISION = 100

# Liquidators receive 10% extra collateral on top of the debt-equivalent amount.
LIQUIDATION_BONUS = 10

MIN_HEALTH_FACTOR = PRECISION

# Conventional heartbeat bound for opt-in staleness checks.
DEFAULT_ORACLE_TIMEOUT = timedelta(hours=3)


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Integer scaled by PRECISION.
Wad = int

# Mapping from wallet ID to quantity held by that wallet for a specific asset.
Positions = Dict[str, int]

# Mapping from asset symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of an execution attempt.

    APPLIED: The transaction or operation was validated and committed.
    REJECTED: Validation failed; no state was changed.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where an asset-ledger transaction originated."""
    USER_ACTION = "user_action"     # Direct token transfer by a holder
    CONTRACT = "contract"           # Transfer performed on behalf of a holder (transfer_from)
    ISSUANCE = "issuance"           # Mint through the system wallet
    REDEMPTION = "redemption"       # Burn through the system wallet


class EventKind(Enum):
    """Direction of a balance-changing engine notification."""
    COLLATERAL_DEPOSITED = "collateral_deposited"
    COLLATERAL_REDEEMED = "collateral_redeemed"
    DSC_MINTED = "dsc_minted"
    DSC_BURNED = "dsc_burned"
    LIQUIDATED = "liquidated"


# ============================================================================
# EXCEPTIONS - collaborators
# ============================================================================

class LedgerError(Exception):
    """Base exception for asset-ledger and token failures."""
    pass


class InsufficientFunds(LedgerError):
    """Raised when a move would take a wallet balance below zero."""

    def __init__(self, wallet: str, asset: str, balance: int, needed: int):
        super().__init__(f"{wallet} holds {balance} {asset}, needs {needed}")
        self.wallet = wallet
        self.asset = asset
        self.balance = balance
        self.needed = needed


class InsufficientAllowance(LedgerError):
    """Raised when a spender tries to move more than it was approved for."""

    def __init__(self, owner: str, spender: str, asset: str, allowance: int, needed: int):
        super().__init__(
            f"{spender} may move {allowance} {asset} for {owner}, needs {needed}"
        )
        self.owner = owner
        self.spender = spender
        self.asset = asset
        self.allowance = allowance
        self.needed = needed


class AssetNotRegistered(LedgerError):
    """Raised when operating on an asset unknown to the ledger."""
    pass


class NotOwner(LedgerError):
    """Raised when a restricted token operation is called by a non-owner."""
    pass


class InvalidReceiver(LedgerError):
    """Raised when tokens would be sent to an empty or reserved wallet."""
    pass


class InvalidAmount(LedgerError):
    """Raised when a token operation receives a negative amount, or zero for a supply change."""
    pass


# ============================================================================
# EXCEPTIONS - engine
# ============================================================================

class EngineError(Exception):
    """Base exception for every named engine failure. No state survives one."""
    pass


class LengthMismatch(EngineError):
    """Collateral assets and price feeds were supplied in unequal numbers."""

    def __init__(self, assets: int, feeds: int):
        super().__init__(f"{assets} collateral assets but {feeds} price feeds")
        self.assets = assets
        self.feeds = feeds


class NeedsMoreThanZero(EngineError):
    """An amount parameter was zero or negative."""

    def __init__(self, amount: int):
        super().__init__(f"amount must be more than zero, got {amount}")
        self.amount = amount


class UnsupportedAsset(EngineError):
    """The asset is not registered as collateral."""

    def __init__(self, asset_id: str):
        super().__init__(f"asset {asset_id!r} is not supported collateral")
        self.asset_id = asset_id


class NotAllowedToken(UnsupportedAsset):
    """A balance-changing entry point was called with an unsupported asset."""
    pass


class BreaksHealthFactor(EngineError):
    """The operation would leave the account below MIN_HEALTH_FACTOR."""

    def __init__(self, user: str, health_factor: int):
        super().__init__(f"health factor of {user} would be {health_factor}")
        self.user = user
        self.health_factor = health_factor


class HealthFactorOk(EngineError):
    """Liquidation was attempted on a healthy account."""

    def __init__(self, user: str, health_factor: int):
        super().__init__(f"{user} is healthy (health factor {health_factor})")
        self.user = user
        self.health_factor = health_factor


class HealthFactorNotImproved(EngineError):
    """Liquidation did not strictly raise the account's health factor."""

    def __init__(self, user: str, starting: int, ending: int):
        super().__init__(f"health factor of {user} went from {starting} to {ending}")
        self.user = user
        self.starting = starting
        self.ending = ending


class TransferFailed(EngineError):
    """An asset movement, mint or burn could not be carried out."""
    pass


class InsufficientCollateral(TransferFailed):
    """More collateral was requested than the account has deposited."""

    def __init__(self, user: str, asset_id: str, deposited: int, requested: int):
        super().__init__(
            f"{user} has {deposited} {asset_id} deposited, {requested} requested"
        )
        self.user = user
        self.asset_id = asset_id
        self.deposited = deposited
        self.requested = requested


class ExceedsDebt(TransferFailed):
    """More stable units were burned than the account has minted."""

    def __init__(self, user: str, debt: int, requested: int):
        super().__init__(f"{user} owes {debt}, {requested} requested")
        self.user = user
        self.debt = debt
        self.requested = requested


class OracleError(EngineError):
    """The price feed returned an invalid answer or could not be read."""
    pass


class StalePrice(OracleError):
    """The latest round is older than the configured staleness window."""
    pass


class ReentrantCall(EngineError):
    """An account re-entered a balance-changing entry point mid-operation."""

    def __init__(self, account: str):
        super().__init__(f"reentrant call for {account}")
        self.account = account


class FixedPointOverflow(EngineError, ArithmeticError):
    """A fixed-point intermediate left the unsigned 256-bit range."""

    def __init__(self, value: int):
        super().__init__(f"fixed-point value out of range: {value}")
        self.value = value


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class PriceFeed(Protocol):
    """External USD price source for one collateral asset."""

    decimals: int

    def latest_round_data(self) -> RoundData:
        """Return the most recent round."""
        ...


@runtime_checkable
class CollateralToken(Protocol):
    """
    Fungible collateral asset.

    Transfers fail loudly (raise) or return False; they never
    move less than requested.
    """

    symbol: str

    def balance_of(self, account: str) -> int:
        ...

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        ...

    def transfer_from(self, spender: str, source: str, to: str, amount: int) -> bool:
        ...


@runtime_checkable
class StableUnitToken(CollateralToken, Protocol):
    """Stable-unit token whose supply only the owner (the engine) may change."""

    def mint(self, caller: str, to: str, amount: int) -> bool:
        ...

    def burn(self, caller: str, amount: int) -> None:
        ...


@runtime_checkable
class Revertible(Protocol):
    """
    Collaborator whose effects can be undone.

    checkpoint() captures a marker; revert_to() restores the state as of that
    marker. Reverting twice to the same marker must be a no-op. commit()
    discards undo history once no marker is outstanding.
    """

    def checkpoint(self) -> Any:
        ...

    def revert_to(self, checkpoint: Any) -> None:
        ...

    def commit(self) -> None:
        ...


@runtime_checkable
class AssetView(Protocol):
    """
    Read-only interface to asset-ledger state.

    Functions accepting an AssetView declare their read-only intent.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, wallet_id: str, asset_symbol: str) -> int:
        """Return the balance of an asset in a wallet (0 if none)."""
        ...

    def get_positions(self, asset_symbol: str) -> Positions:
        """Return all non-zero positions for an asset across wallets."""
        ...


@runtime_checkable
class EngineView(Protocol):
    """Read-only interface to engine state, used by analytics."""

    def get_collateral_tokens(self) -> Tuple[str, ...]:
        ...

    def get_collateral_balance_of_user(self, user: str, asset_id: str) -> int:
        ...

    def get_usd_value(self, asset_id: str, amount: int) -> int:
        ...

    def get_account_information(self, user: str) -> 'AccountInformation':
        ...

    def get_liquidation_threshold(self) -> int:
        ...

    def get_liquidation_precision(self) -> int:
        ...


# ============================================================================
# ASSET LEDGER DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Asset:
    """
    Definition of a fungible asset held in an AssetLedger.

    Attributes:
        symbol: Short identifier (e.g. "WETH", "DSC")
        name: Human-readable name
        decimals: Number of fractional digits amounts are scaled by
    """
    symbol: str
    name: str
    decimals: int = PRECISION_DECIMALS

    def __post_init__(self):
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Asset symbol cannot be empty")
        if self.decimals < 0:
            raise ValueError(f"Asset decimals cannot be negative, got {self.decimals}")


@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Wallet that initiated the transaction
        event_type: Specific event within the source (e.g. "TRANSFER", "MINT")
    """
    origin_type: OriginType
    source_id: str
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of an asset between two wallets.

    Attributes:
        quantity: The integer amount to transfer (must be positive).
        asset: The symbol of the asset being transferred.
        source: The wallet ID debited.
        dest: The wallet ID credited.
        contract_id: Identifier of the operation generating this move.
    """
    quantity: int
    asset: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.asset or not self.asset.strip():
            raise ValueError("Move asset cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.asset}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A set of moves before execution - represents INTENT.

    Attributes:
        moves: Tuple of transfers, applied all together or not at all
        origin: Who/what created this transaction and why
        timestamp: Logical time at which it was built
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime

    def is_empty(self) -> bool:
        """Return True if this pending transaction has no moves."""
        return not self.moves

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {self.origin})"


def build_transaction(
    view: AssetView,
    moves: List[Move],
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves.

    Args:
        view: Read-only ledger view (provides current_time)
        moves: Moves to include in the transaction
        origin: Transaction origin (defaults to a CONTRACT origin)

    Example:
        tx = build_transaction(ledger, [Move(10**18, "WETH", "alice", "bob", "transfer")])
        ledger.execute(tx)
    """
    if origin is None:
        origin = TransactionOrigin(origin_type=OriginType.CONTRACT, source_id="contract")
    return PendingTransaction(
        moves=tuple(moves),
        origin=origin,
        timestamp=view.current_time,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of balance changes - represents FACT.

    Attributes:
        moves: Tuple of transfers applied
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was built
        exec_id: Unique execution identifier (ledger + sequence)
        ledger_name: Name of the ledger that executed this
        execution_time: Logical time of execution
        sequence_number: Monotonic sequence within the ledger
        contract_ids: Contract IDs from the moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        moves = ", ".join(repr(m) for m in self.moves)
        return f"Transaction({self.exec_id}, {self.origin}, [{moves}])"


# ============================================================================
# ENGINE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class RoundData:
    """
    One price-feed round, in the feed's native precision.

    Attributes:
        round_id: Monotonic round identifier
        answer: Raw price (e.g. 2000_00000000 for $2000 on an 8-digit feed)
        started_at: When the round started
        updated_at: When the answer was last written (None if never)
        answered_in_round: Round in which the answer was computed
    """
    round_id: int
    answer: int
    started_at: Optional[datetime]
    updated_at: Optional[datetime]
    answered_in_round: int


@dataclass(frozen=True, slots=True)
class PriceSample:
    """
    A validated oracle read. Ephemeral, never persisted.

    Attributes:
        price: Raw positive answer in the feed's native precision
        precision: Number of fractional digits of the answer
        timestamp: When the feed last updated
        round_id: Round the answer came from
    """
    price: int
    precision: int
    timestamp: Optional[datetime]
    round_id: int

    @property
    def additional_precision(self) -> int:
        """Factor that lifts the answer to PRECISION."""
        return 10 ** (PRECISION_DECIMALS - self.precision)

    @property
    def normalized(self) -> Wad:
        """Price with 18 fractional digits."""
        return self.price * self.additional_precision


@dataclass(frozen=True, slots=True)
class SupportedCollateral:
    """
    One entry of the collateral registry. Fixed at construction.

    Attributes:
        asset_id: Collateral asset identifier (the token symbol)
        token: Token used to move the asset in and out of custody
        feed: USD price feed for the asset
        additional_precision: Normalization factor for the feed's answers
    """
    asset_id: str
    token: CollateralToken
    feed: PriceFeed
    additional_precision: int


@dataclass(frozen=True, slots=True)
class StalenessPolicy:
    """
    Oracle freshness requirements.

    A max_age of None disables the age check; answers must still be positive.
    """
    max_age: Optional[timedelta] = None

    def __post_init__(self):
        if self.max_age is not None and self.max_age <= timedelta(0):
            raise ValueError(f"max_age must be positive, got {self.max_age}")

    @property
    def enabled(self) -> bool:
        return self.max_age is not None


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Immutable risk parameters, passed to every component at construction.

    The defaults require 200% overcollateralization and pay a 10% bonus
    to liquidators.
    """
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_precision: int = LIQUIDATION_PRECISION
    liquidation_bonus: int = LIQUIDATION_BONUS
    precision: int = PRECISION
    min_health_factor: int = MIN_HEALTH_FACTOR
    staleness: StalenessPolicy = field(default_factory=StalenessPolicy)

    def __post_init__(self):
        if self.liquidation_precision <= 0:
            raise ValueError(
                f"liquidation_precision must be positive, got {self.liquidation_precision}"
            )
        if not 0 < self.liquidation_threshold <= self.liquidation_precision:
            raise ValueError(
                f"liquidation_threshold must be in (0, {self.liquidation_precision}], "
                f"got {self.liquidation_threshold}"
            )
        if self.liquidation_bonus < 0:
            raise ValueError(f"liquidation_bonus cannot be negative, got {self.liquidation_bonus}")
        if self.precision <= 0:
            raise ValueError(f"precision must be positive, got {self.precision}")
        if self.min_health_factor <= 0:
            raise ValueError(f"min_health_factor must be positive, got {self.min_health_factor}")


DEFAULT_CONFIG = EngineConfig()


@dataclass(frozen=True, slots=True)
class EngineEvent:
    """
    Structured notification of a committed balance change.

    Attributes:
        kind: Direction of the change
        user: Account whose position changed
        asset_id: Collateral asset or the stable-unit symbol
        amount: Integer amount moved
        counterparty: Other side of the movement (redeem destination, liquidator)
    """
    kind: EventKind
    user: str
    asset_id: str
    amount: int
    counterparty: Optional[str] = None

    def __repr__(self) -> str:
        extra = f" ↔ {self.counterparty}" if self.counterparty else ""
        return f"EngineEvent({self.kind.value}: {self.user} {self.amount} {self.asset_id}{extra})"


class AccountInformation(NamedTuple):
    """Minted debt and total collateral value of one account, both in wad."""
    total_dsc_minted: int
    collateral_value_usd: int


@dataclass(frozen=True, slots=True)
class OperationResult:
    """
    Discriminated outcome of a simulated entry point.

    status is APPLIED with error None, or REJECTED with the named failure.
    """
    status: ExecuteResult
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.status == ExecuteResult.APPLIED
