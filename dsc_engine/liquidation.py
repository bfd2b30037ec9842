"""
liquidation.py - Liquidation of undercollateralized accounts

A third party (the liquidator) repays part of an unhealthy account's debt
with its own stable units and receives the equivalent collateral plus a
bonus.

Key Formulas:
    token_amount_from_debt_covered = amount_from_usd(asset, debt_to_cover)
    bonus_collateral               = token_amount * liquidation_bonus // liquidation_precision
    total_collateral_to_seize      = token_amount + bonus_collateral

A liquidation commits only if:
    - the account starts below the minimum health factor
    - the account's health factor strictly improves
    - the liquidator's own health factor stays at or above the minimum
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .core import (
    DEFAULT_CONFIG, EngineConfig, EngineEvent, EventKind,
    HealthFactorOk, HealthFactorNotImproved,
)
from .fixed_point import add, mul_div
from .health import is_healthy
from .positions import PositionOperations


@dataclass(frozen=True, slots=True)
class LiquidationQuote:
    """
    Collateral owed to a liquidator for covering `debt_to_cover`.

    Attributes:
        asset_id: Collateral asset being seized
        debt_to_cover: Stable units the liquidator repays
        token_amount_from_debt_covered: Collateral worth debt_to_cover at the current price
        bonus_collateral: Extra collateral paid as incentive
    """
    asset_id: str
    debt_to_cover: int
    token_amount_from_debt_covered: int
    bonus_collateral: int

    @property
    def total_collateral_to_seize(self) -> int:
        return add(self.token_amount_from_debt_covered, self.bonus_collateral)


def calculate_liquidation(
    asset_id: str,
    debt_to_cover: int,
    token_amount_from_debt_covered: int,
    config: Optional[EngineConfig] = None,
) -> LiquidationQuote:
    """
    Pure quote calculation given the debt-equivalent collateral amount.

    Example:
        # Covering $5000 of debt with WETH at $1800
        q = calculate_liquidation("WETH", 5000 * 10**18, 2777777777777777777)
        q.bonus_collateral == 277777777777777777
        q.total_collateral_to_seize == 3055555555555555554
    """
    config = config or DEFAULT_CONFIG
    bonus = mul_div(token_amount_from_debt_covered, config.liquidation_bonus, config.liquidation_precision)
    return LiquidationQuote(
        asset_id=asset_id,
        debt_to_cover=debt_to_cover,
        token_amount_from_debt_covered=token_amount_from_debt_covered,
        bonus_collateral=bonus,
    )


class LiquidationEngine:
    """Executes liquidations through the position primitives."""

    def __init__(self, positions: PositionOperations):
        self.positions = positions
        self.config = positions.config

    def quote(self, asset_id: str, debt_to_cover: int) -> LiquidationQuote:
        """Collateral a liquidator would receive at the current price."""
        token_amount = self.positions.valuation.amount_from_usd(asset_id, debt_to_cover)
        return calculate_liquidation(asset_id, debt_to_cover, token_amount, self.config)

    def liquidate(
        self,
        liquidator: str,
        user: str,
        asset_id: str,
        debt_to_cover: int,
    ) -> LiquidationQuote:
        """
        Repay `debt_to_cover` of `user`'s debt from `liquidator`'s stable
        units and move the seized collateral to `liquidator`.

        Returns:
            The quote that was executed

        Raises:
            NeedsMoreThanZero: If debt_to_cover is zero
            NotAllowedToken: If asset_id is not registered collateral
            HealthFactorOk: If the user is not liquidatable
            TransferFailed: If the user lacks the seized collateral, the
                cover exceeds the debt, or a token call fails
            HealthFactorNotImproved: If the user's health factor did not rise
            BreaksHealthFactor: If the liquidator ends up unhealthy
            ReentrantCall: If either account is mid-operation
        """
        ops = self.positions
        ops.require_more_than_zero(debt_to_cover)
        ops.require_allowed_token(asset_id)

        with ops.atomic("liquidate", user, liquidator):
            starting = ops.health_factor(user)
            if is_healthy(starting, self.config):
                raise HealthFactorOk(user, starting)

            quote = self.quote(asset_id, debt_to_cover)
            ops.apply_redeem(asset_id, quote.total_collateral_to_seize, source=user, dest=liquidator)
            ops.apply_burn(debt_to_cover, on_behalf_of=user, dsc_from=liquidator)

            ending = ops.health_factor(user)
            if ending <= starting:
                raise HealthFactorNotImproved(user, starting, ending)
            ops.check_health_factor(liquidator)

            ops.emit(EngineEvent(
                EventKind.LIQUIDATED, user, asset_id,
                quote.total_collateral_to_seize, counterparty=liquidator,
            ))
        return quote
