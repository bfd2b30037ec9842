"""
valuation.py - USD valuation of collateral

ValuationService holds no state of its own. Every call reads the live
deposit from the CollateralLedger and a fresh, validated price through the
registry's oracle adapters.

Key Formulas:
    usd_value       = price * additional_precision * amount // PRECISION
    amount_from_usd = usd * PRECISION // (price * additional_precision)

Both truncate. In amount_from_usd the truncation rounds seized collateral
down, in the protocol's favor.
"""

from __future__ import annotations
from typing import Dict, Optional

from .collateral_ledger import CollateralLedger
from .core import (
    DEFAULT_CONFIG, AccountInformation, EngineConfig, PriceSample,
)
from .fixed_point import add, mul, mul_div
from .registry import CollateralRegistry


class ValuationService:
    """Converts between collateral amounts and USD using live oracle prices."""

    def __init__(
        self,
        registry: CollateralRegistry,
        collateral_ledger: CollateralLedger,
        config: Optional[EngineConfig] = None,
    ):
        self.registry = registry
        self.collateral_ledger = collateral_ledger
        self.config = config or DEFAULT_CONFIG

    def price(self, asset_id: str) -> PriceSample:
        """
        Validated price sample for a collateral asset.

        Raises:
            UnsupportedAsset: If asset_id is not registered
            OracleError: If the feed is failing, non-positive or stale
        """
        return self.registry.oracle_for(asset_id).price()

    def _normalized_price(self, asset_id: str) -> int:
        oracle = self.registry.oracle_for(asset_id)
        return mul(oracle.price().price, oracle.additional_precision)

    def usd_value(self, asset_id: str, amount: int) -> int:
        """
        USD value (wad) of `amount` units of a collateral asset.

        Example:
            # 15 WETH at $2000
            usd_value("WETH", 15 * 10**18) == 30_000 * 10**18
        """
        return mul_div(self._normalized_price(asset_id), amount, self.config.precision)

    def amount_from_usd(self, asset_id: str, usd_amount: int) -> int:
        """
        Collateral units worth `usd_amount`, rounded down.

        Example:
            # $100 of WETH at $2000
            amount_from_usd("WETH", 100 * 10**18) == 5 * 10**16
        """
        return mul_div(usd_amount, self.config.precision, self._normalized_price(asset_id))

    def collateral_values(self, owner: str) -> Dict[str, int]:
        """USD value of each non-zero deposit, in registry order."""
        values = {}
        for asset_id in self.registry.asset_ids:
            amount = self.collateral_ledger.collateral_of(owner, asset_id)
            if amount:
                values[asset_id] = self.usd_value(asset_id, amount)
        return values

    def total_collateral_value(self, owner: str) -> int:
        """Sum of usd_value over every registered asset the account holds."""
        total = 0
        for value in self.collateral_values(owner).values():
            total = add(total, value)
        return total

    def account_information(self, owner: str) -> AccountInformation:
        return AccountInformation(
            total_dsc_minted=self.collateral_ledger.minted_debt(owner),
            collateral_value_usd=self.total_collateral_value(owner),
        )
