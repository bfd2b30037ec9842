"""
health.py - Health factor

Pure functions, all inputs explicit:

    adjusted   = collateral_value_usd * liquidation_threshold // liquidation_precision
    health     = adjusted * precision // total_dsc_minted
    healthy   <=> health >= min_health_factor

An account without debt is infinitely healthy (MAX_UINT256).
"""

from __future__ import annotations
from typing import Optional

from .core import DEFAULT_CONFIG, MAX_UINT256, EngineConfig
from .fixed_point import mul_div


def collateral_adjusted_for_threshold(
    collateral_value_usd: int,
    config: Optional[EngineConfig] = None,
) -> int:
    """Share of the collateral value that counts toward solvency."""
    config = config or DEFAULT_CONFIG
    return mul_div(collateral_value_usd, config.liquidation_threshold, config.liquidation_precision)


def health_factor(
    collateral_value_usd: int,
    total_dsc_minted: int,
    config: Optional[EngineConfig] = None,
) -> int:
    """
    Solvency ratio scaled by precision.

    Example:
        # $20,000 of collateral backing 10,000 DSC sits exactly on the boundary
        health_factor(20_000 * 10**18, 10_000 * 10**18) == 10**18
    """
    config = config or DEFAULT_CONFIG
    if total_dsc_minted == 0:
        return MAX_UINT256
    adjusted = collateral_adjusted_for_threshold(collateral_value_usd, config)
    return mul_div(adjusted, config.precision, total_dsc_minted)


def is_healthy(health: int, config: Optional[EngineConfig] = None) -> bool:
    """Inclusive at the boundary: exactly min_health_factor is healthy."""
    config = config or DEFAULT_CONFIG
    return health >= config.min_health_factor


def max_mintable(
    collateral_value_usd: int,
    total_dsc_minted: int,
    config: Optional[EngineConfig] = None,
) -> int:
    """Additional stable units that can be minted without breaking the health factor."""
    config = config or DEFAULT_CONFIG
    adjusted = collateral_adjusted_for_threshold(collateral_value_usd, config)
    ceiling = mul_div(adjusted, config.precision, config.min_health_factor)
    return max(0, ceiling - total_dsc_minted)
