"""
engine.py - DSCEngine facade

DSCEngine wires the collateral registry, the CollateralLedger, valuation,
position operations and liquidation into the single public surface of the
system.

Example:
    engine = DSCEngine([weth, wbtc], [eth_usd, btc_usd], dsc)
    dsc.transfer_ownership(dsc.owner, engine.address)

    weth.approve("alice", engine.address, 10 * 10**18)
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10 * 10**18, 5_000 * 10**18)
    engine.get_health_factor("alice")       # 2 * 10**18 at $2000

    result = engine.simulate("mint_dsc", "alice", 10_000 * 10**18)
    result.status                           # ExecuteResult.REJECTED
    type(result.error)                      # BreaksHealthFactor
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .collateral_ledger import CollateralLedger, UserAccount
from .core import (
    DEFAULT_CONFIG, ENGINE_WALLET,
    AccountInformation, CollateralToken, EngineConfig, EngineError, EngineEvent,
    ExecuteResult, OperationResult, PriceFeed, PriceSample, StableUnitToken,
)
from .health import health_factor, max_mintable
from .liquidation import LiquidationEngine, LiquidationQuote
from .positions import PositionOperations, Subscriber
from .registry import CollateralRegistry
from .valuation import ValuationService


class DSCEngine:
    """
    Overcollateralized stable-unit issuance engine.

    Args:
        collateral_tokens: Supported collateral tokens (symbol is the asset id)
        price_feeds: USD price feed per token, same order
        dsc: Stable-unit token; the engine's address must own it before minting
        address: Wallet id the engine uses for custody and as token spender
        config: Risk parameters and staleness policy
        clock: Source of the current time for staleness checks
        verbose: Print one line per applied or rejected operation

    Raises:
        LengthMismatch: If tokens and feeds differ in length
    """

    ENTRY_POINTS = (
        "deposit_collateral",
        "mint_dsc",
        "deposit_collateral_and_mint_dsc",
        "redeem_collateral",
        "burn_dsc",
        "redeem_collateral_for_dsc",
        "liquidate",
    )

    def __init__(
        self,
        collateral_tokens: Sequence[CollateralToken],
        price_feeds: Sequence[PriceFeed],
        dsc: StableUnitToken,
        address: str = ENGINE_WALLET,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        verbose: bool = False,
    ):
        self.address = address
        self.config = config or DEFAULT_CONFIG
        self.registry = CollateralRegistry(
            collateral_tokens, price_feeds, staleness=self.config.staleness, clock=clock,
        )
        self.collateral_ledger = CollateralLedger()
        self.valuation = ValuationService(self.registry, self.collateral_ledger, self.config)
        self.positions = PositionOperations(
            address, self.registry, self.collateral_ledger, self.valuation,
            dsc, self.config, verbose=verbose,
        )
        self.liquidations = LiquidationEngine(self.positions)
        self._dsc = dsc

    @property
    def verbose(self) -> bool:
        return self.positions.verbose

    @verbose.setter
    def verbose(self, value: bool) -> None:
        self.positions.verbose = value

    # ========================================================================
    # ENTRY POINTS
    # ========================================================================

    def deposit_collateral(self, user: str, asset_id: str, amount: int) -> None:
        self.positions.deposit_collateral(user, asset_id, amount)

    def mint_dsc(self, user: str, amount: int) -> None:
        self.positions.mint_dsc(user, amount)

    def deposit_collateral_and_mint_dsc(
        self, user: str, asset_id: str, amount_collateral: int, amount_dsc_to_mint: int,
    ) -> None:
        self.positions.deposit_collateral_and_mint_dsc(
            user, asset_id, amount_collateral, amount_dsc_to_mint,
        )

    def redeem_collateral(self, user: str, asset_id: str, amount: int) -> None:
        self.positions.redeem_collateral(user, asset_id, amount)

    def burn_dsc(self, user: str, amount: int) -> None:
        self.positions.burn_dsc(user, amount)

    def redeem_collateral_for_dsc(
        self, user: str, asset_id: str, amount_collateral: int, amount_dsc_to_burn: int,
    ) -> None:
        self.positions.redeem_collateral_for_dsc(
            user, asset_id, amount_collateral, amount_dsc_to_burn,
        )

    def liquidate(
        self, liquidator: str, user: str, asset_id: str, debt_to_cover: int,
    ) -> LiquidationQuote:
        return self.liquidations.liquidate(liquidator, user, asset_id, debt_to_cover)

    def simulate(self, operation: str, *args: Any, **kwargs: Any) -> OperationResult:
        """
        Dry-run an entry point and report whether it would apply.

        Every effect is reverted afterwards, including on success, and no
        notification is delivered. Errors other than EngineError propagate.
        """
        if operation not in self.ENTRY_POINTS:
            raise ValueError(f"unknown operation {operation!r}; expected one of {self.ENTRY_POINTS}")
        with self.positions.dry_run():
            try:
                getattr(self, operation)(*args, **kwargs)
            except EngineError as e:
                return OperationResult(ExecuteResult.REJECTED, e)
        return OperationResult(ExecuteResult.APPLIED)

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    def subscribe(self, callback: Subscriber) -> None:
        self.positions.subscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self.positions.unsubscribe(callback)

    @property
    def event_log(self) -> List[EngineEvent]:
        return self.positions.event_log

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_usd_value(self, asset_id: str, amount: int) -> int:
        return self.valuation.usd_value(asset_id, amount)

    def get_token_amount_from_usd(self, asset_id: str, usd_amount_in_wei: int) -> int:
        return self.valuation.amount_from_usd(asset_id, usd_amount_in_wei)

    def get_price(self, asset_id: str) -> PriceSample:
        return self.valuation.price(asset_id)

    def get_account_information(self, user: str) -> AccountInformation:
        return self.valuation.account_information(user)

    def get_account_collateral_value(self, user: str) -> int:
        return self.valuation.total_collateral_value(user)

    def get_health_factor(self, user: str) -> int:
        return self.positions.health_factor(user)

    def calculate_health_factor(self, total_dsc_minted: int, collateral_value_usd: int) -> int:
        return health_factor(collateral_value_usd, total_dsc_minted, self.config)

    def get_max_mintable(self, user: str) -> int:
        """Stable units `user` could still mint without breaking the health factor."""
        info = self.get_account_information(user)
        return max_mintable(info.collateral_value_usd, info.total_dsc_minted, self.config)

    def get_dsc_value(self, user: str) -> int:
        """USD value (wad) of the stable units minted by `user`, at the 1:1 peg."""
        return self.collateral_ledger.minted_debt(user)

    def get_collateral_balance_of_user(self, user: str, asset_id: str) -> int:
        return self.collateral_ledger.collateral_of(user, asset_id)

    def get_account(self, user: str) -> UserAccount:
        return self.collateral_ledger.account(user)

    def get_collateral_tokens(self) -> Tuple[str, ...]:
        return self.registry.asset_ids

    def get_collateral_token(self, asset_id: str) -> CollateralToken:
        return self.registry.token_for(asset_id)

    def get_collateral_token_price_feed(self, asset_id: str) -> PriceFeed:
        return self.registry.feed_for(asset_id)

    def get_dsc(self) -> StableUnitToken:
        return self._dsc

    def get_liquidation_quote(self, asset_id: str, debt_to_cover: int) -> LiquidationQuote:
        return self.liquidations.quote(asset_id, debt_to_cover)

    # Risk parameters

    def get_precision(self) -> int:
        return self.config.precision

    def get_additional_feed_precision(self, asset_id: str) -> int:
        return self.registry.get(asset_id).additional_precision

    def get_liquidation_threshold(self) -> int:
        return self.config.liquidation_threshold

    def get_liquidation_bonus(self) -> int:
        return self.config.liquidation_bonus

    def get_liquidation_precision(self) -> int:
        return self.config.liquidation_precision

    def get_min_health_factor(self) -> int:
        return self.config.min_health_factor

    def __repr__(self):
        return (
            f"DSCEngine(address={self.address!r}, collateral={list(self.registry.asset_ids)}, "
            f"debt={self.collateral_ledger.total_debt()})"
        )
