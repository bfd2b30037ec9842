"""
ledger.py - Multi-asset balance ledger

The AssetLedger holds every fungible balance the engine's collaborators move:
collateral tokens and the stable unit. Tokens are thin views onto it.

Key responsibilities:
    - Implements the AssetView protocol for read-only access
    - Executes transactions atomically (all moves succeed or all fail)
    - Issues and redeems supply through SYSTEM_WALLET (double entry)
    - Keeps allowances for delegated transfers
    - Checkpoints and unwinds its own history, so an enclosing engine
      operation can roll back every transfer it caused
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Set, Optional, Tuple, Any
import copy

from .core import (
    # Types
    Asset, Move, Transaction, PendingTransaction, ExecuteResult,
    Positions, BalanceMap,
    # Constants
    SYSTEM_WALLET, MAX_UINT256,
    # Exceptions
    LedgerError, AssetNotRegistered, InsufficientAllowance,
)


AllowanceKey = Tuple[str, str, str]  # (owner, spender, asset)


@dataclass(frozen=True, slots=True)
class LedgerCheckpoint:
    """Marker into the ledger's history, produced by AssetLedger.checkpoint()."""
    log_length: int
    allowance_journal_length: int


class AssetLedger:
    """
    Double-entry balance ledger with full validation and audit trail.

    Design Principles:
        - Always validates: every transaction is checked against asset
          registration, timestamps and non-negative balances.
        - Always logs: every applied transaction is recorded, which is what
          makes checkpoint()/revert_to() possible.

    Wallets are created implicitly on first credit. SYSTEM_WALLET is exempt
    from balance validation; its balance is minus the circulating supply.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own ledger.

    Example:
        ledger = AssetLedger("chain")
        ledger.register_asset(Asset("WETH", "Wrapped Ether"))
        ledger.execute(build_transaction(ledger, [
            Move(10**18, "WETH", SYSTEM_WALLET, "alice", "faucet")
        ]))
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = False,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print one line per applied or rejected transaction
        """
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.assets: Dict[str, Asset] = {}
        self.allowances: Dict[AllowanceKey, int] = {}
        self.transaction_log: List[Transaction] = []
        self._allowance_journal: List[Tuple[AllowanceKey, Optional[int]]] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._next_sequence: int = 0
        # Inverted index asset -> {wallet -> quantity} for position lookups
        self._positions_by_asset: Dict[str, Dict[str, int]] = defaultdict(dict)

    # ========================================================================
    # AssetView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, asset_symbol: str) -> int:
        """
        Get the balance of an asset in a wallet.

        Returns 0 for wallets that never held the asset.

        Raises:
            AssetNotRegistered: If the asset is not registered
        """
        if asset_symbol not in self.assets:
            raise AssetNotRegistered(f"Asset {asset_symbol} not registered")
        wallet = self.balances.get(wallet_id)
        if wallet is None:
            return 0
        return wallet.get(asset_symbol, 0)

    def get_positions(self, asset_symbol: str) -> Positions:
        """Get all non-zero positions for an asset across wallets."""
        return dict(self._positions_by_asset.get(asset_symbol, {}))

    def list_wallets(self) -> Set[str]:
        """All wallets that ever held a balance."""
        return set(self.balances.keys())

    def list_assets(self) -> List[str]:
        """All registered asset symbols, sorted."""
        return sorted(self.assets.keys())

    def get_asset(self, symbol: str) -> Asset:
        if symbol not in self.assets:
            raise AssetNotRegistered(f"Asset {symbol} not registered")
        return self.assets[symbol]

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        wallet = self.balances.get(wallet_id)
        return {k: v for k, v in wallet.items() if v} if wallet else {}

    def total_supply(self, asset_symbol: str) -> int:
        """
        Circulating supply of an asset: the sum over every wallet except
        SYSTEM_WALLET. Wallets are summed in sorted order.

        Raises:
            AssetNotRegistered: If the asset is not registered
        """
        if asset_symbol not in self.assets:
            raise AssetNotRegistered(f"Asset {asset_symbol} not registered")
        return sum(
            self.balances[w].get(asset_symbol, 0)
            for w in sorted(self.balances)
            if w != SYSTEM_WALLET
        )

    def verify_conservation(
        self,
        expected_supplies: Optional[Dict[str, int]] = None,
    ) -> Dict[str, Any]:
        """
        Verify that double entry holds for every asset.

        For every asset the system wallet's balance must be exactly minus the
        circulating supply. Optionally, circulating supplies are also compared
        against expected values.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, int] - circulating supply per asset
            - 'discrepancies': List[Dict] - details of any violation

        Example:
            result = ledger.verify_conservation({"DSC": 100 * 10**18})
            assert result['valid'], result['discrepancies']
        """
        supplies = {}
        discrepancies = []

        for symbol in self.assets:
            circulating = self.total_supply(symbol)
            supplies[symbol] = circulating
            system = self.balances[SYSTEM_WALLET].get(symbol, 0) if SYSTEM_WALLET in self.balances else 0
            if circulating + system != 0:
                discrepancies.append({
                    'asset': symbol,
                    'circulating': circulating,
                    'system': system,
                    'error': 'double entry violated',
                })
            if expected_supplies and symbol in expected_supplies:
                if circulating != expected_supplies[symbol]:
                    discrepancies.append({
                        'asset': symbol,
                        'expected': expected_supplies[symbol],
                        'actual': circulating,
                        'difference': circulating - expected_supplies[symbol],
                    })

        if expected_supplies:
            for symbol, expected in expected_supplies.items():
                if symbol not in supplies:
                    discrepancies.append({
                        'asset': symbol,
                        'expected': expected,
                        'actual': 0,
                        'error': 'asset not registered',
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_asset(self, asset: Asset) -> None:
        """
        Register a new asset.

        Raises:
            ValueError: If the symbol is already registered
        """
        if asset.symbol in self.assets:
            raise ValueError(f"Asset {asset.symbol} already registered")
        self.assets[asset.symbol] = asset
        if self.verbose:
            print(f"📝 Registered: {asset.symbol} ({asset.name}) [{asset.decimals} decimals]")

    # ========================================================================
    # ALLOWANCES (Mutating, journaled)
    # ========================================================================

    def allowance(self, owner: str, spender: str, asset_symbol: str) -> int:
        return self.allowances.get((owner, spender, asset_symbol), 0)

    def set_allowance(self, owner: str, spender: str, asset_symbol: str, amount: int) -> None:
        """
        Set how much `spender` may move out of `owner`'s wallet.

        Raises:
            AssetNotRegistered: If the asset is not registered
            ValueError: If amount is outside [0, MAX_UINT256]
        """
        if asset_symbol not in self.assets:
            raise AssetNotRegistered(f"Asset {asset_symbol} not registered")
        if amount < 0 or amount > MAX_UINT256:
            raise ValueError(f"allowance out of range: {amount}")
        key = (owner, spender, asset_symbol)
        self._allowance_journal.append((key, self.allowances.get(key)))
        self.allowances[key] = amount

    def spend_allowance(self, owner: str, spender: str, asset_symbol: str, amount: int) -> None:
        """
        Consume allowance. MAX_UINT256 is treated as unlimited.

        Raises:
            InsufficientAllowance: If the allowance is smaller than amount
        """
        current = self.allowance(owner, spender, asset_symbol)
        if current == MAX_UINT256:
            return
        if current < amount:
            raise InsufficientAllowance(owner, spender, asset_symbol, current, amount)
        self.set_allowance(owner, spender, asset_symbol, current - amount)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{ledger_name}:{sequence:012d}"""
        return f"exec:{self.name}:{sequence:012d}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves succeed together or all fail together.

        Args:
            pending: PendingTransaction to execute

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.REJECTED if validation failed (nothing changed)
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        valid, reason = self.validate(pending)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1

        tx = Transaction(
            moves=pending.moves,
            origin=pending.origin,
            timestamp=pending.timestamp,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
        )

        self._execute_moves(tx.moves)

        # Log transaction (always - the log is what revert_to() unwinds)
        self.transaction_log.append(tx)

        if self.verbose:
            print(f"✓ APPLIED: {tx!r}")
        return ExecuteResult.APPLIED

    def validate(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate a pending transaction against all constraints.

        Checks performed:
        1. Timestamp (transaction must not be from the future)
        2. Asset registration
        3. Non-negative resulting balances (SYSTEM_WALLET exempt)

        Returns:
            Tuple of (success, reason); reason is empty on success
        """
        if pending.timestamp > self._current_time:
            return False, "future timestamp"

        for move in pending.moves:
            if move.asset not in self.assets:
                return False, f"asset not registered: {move.asset}"

        # Net balance changes per (wallet, asset)
        net: Dict[Tuple[str, str], int] = {}
        for move in pending.moves:
            key_src = (move.source, move.asset)
            key_dst = (move.dest, move.asset)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        for (wallet, asset_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            proposed = self.get_balance(wallet, asset_sym) + delta
            if proposed < 0:
                return False, f"{wallet} {asset_sym}: {proposed} < 0"
            if proposed > MAX_UINT256:
                return False, f"{wallet} {asset_sym}: {proposed} > max"

        return True, ""

    def _update_position_index(self, wallet_id: str, asset_symbol: str, quantity: int) -> None:
        """Keep the inverted position index in sync; zero balances are dropped."""
        if quantity != 0:
            self._positions_by_asset[asset_symbol][wallet_id] = quantity
        else:
            self._positions_by_asset[asset_symbol].pop(wallet_id, None)

    def _apply(self, wallet: str, asset_symbol: str, delta: int) -> None:
        new_balance = self.balances[wallet][asset_symbol] + delta
        self.balances[wallet][asset_symbol] = new_balance
        self._update_position_index(wallet, asset_symbol, new_balance)

    def _execute_moves(self, moves) -> None:
        """Apply moves to wallet balances and update the position index."""
        for move in moves:
            self._apply(move.source, move.asset, -move.quantity)
            self._apply(move.dest, move.asset, move.quantity)

    # ========================================================================
    # CHECKPOINT / REVERT
    # ========================================================================

    def checkpoint(self) -> LedgerCheckpoint:
        """Capture a marker of the current history."""
        return LedgerCheckpoint(
            log_length=len(self.transaction_log),
            allowance_journal_length=len(self._allowance_journal),
        )

    def revert_to(self, checkpoint: LedgerCheckpoint) -> None:
        """
        Undo everything recorded after `checkpoint`.

        Walks backward through transactions executed after the marker,
        reversing each move, then restores allowances from the journal.
        Reverting to a marker that is already current is a no-op.

        Raises:
            LedgerError: If the marker is ahead of the current history
        """
        if checkpoint.log_length > len(self.transaction_log):
            raise LedgerError(
                f"Cannot revert {self.name} forward to log length {checkpoint.log_length}"
            )

        for tx in reversed(self.transaction_log[checkpoint.log_length:]):
            for move in reversed(tx.moves):
                self._apply(move.source, move.asset, move.quantity)
                self._apply(move.dest, move.asset, -move.quantity)
        del self.transaction_log[checkpoint.log_length:]
        self._next_sequence = (
            self.transaction_log[-1].sequence_number + 1 if self.transaction_log else 0
        )

        for key, previous in reversed(self._allowance_journal[checkpoint.allowance_journal_length:]):
            if previous is None:
                self.allowances.pop(key, None)
            else:
                self.allowances[key] = previous
        del self._allowance_journal[checkpoint.allowance_journal_length:]

        if self.verbose:
            print(f"↺ REVERTED {self.name} to log length {checkpoint.log_length}")

    def commit(self) -> None:
        """
        Forget the allowance undo history.

        The transaction log is kept as the audit trail. Checkpoints taken
        before a commit can no longer restore allowances, so only commit
        when none is outstanding.
        """
        self._allowance_journal.clear()

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> AssetLedger:
        """
        Create a deep copy of this ledger.

        All state is fully independent: modifications to the clone do not
        affect the original, and vice versa.
        """
        cloned = AssetLedger.__new__(AssetLedger)
        cloned.name = self.name
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned.assets = dict(self.assets)
        cloned.allowances = dict(self.allowances)
        cloned.transaction_log = list(self.transaction_log)
        cloned._allowance_journal = list(self._allowance_journal)
        cloned._next_sequence = self._next_sequence

        cloned.balances = defaultdict(lambda: defaultdict(int))
        for wallet, bals in self.balances.items():
            cloned.balances[wallet] = defaultdict(int, bals)

        cloned._positions_by_asset = defaultdict(dict)
        for symbol, positions in self._positions_by_asset.items():
            cloned._positions_by_asset[symbol] = copy.copy(positions)

        return cloned
