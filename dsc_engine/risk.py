"""
risk.py - Indicative risk analytics for engine positions

Float-valued, read-only views over an EngineView. Nothing here is used for
enforcement; the integer health factor in health.py is authoritative.

Provides:
- Health factors under a grid of uniform price shocks (vectorized)
- Health factors under shocks to a single collateral asset
- Liquidation price of one collateral asset, others held constant
- Probability of reaching that price under a zero-drift lognormal model

Shocks are relative moves: -0.2 means every price falls 20%.
"""

import math
import numpy as np
from typing import Dict, Optional, Sequence
from scipy.special import erf as scipy_erf

from .core import EngineView, PRECISION
from .fixed_point import wad_to_float


# Crypto collateral trades every day of the year.
DAYS_PER_YEAR = 365.0
SQRT_2 = math.sqrt(2.0)


def _threshold_ratio(view: EngineView) -> float:
    return view.get_liquidation_threshold() / view.get_liquidation_precision()


def _collateral_values(view: EngineView, user: str) -> Dict[str, float]:
    """USD value per held asset as floats."""
    values = {}
    for asset_id in view.get_collateral_tokens():
        amount = view.get_collateral_balance_of_user(user, asset_id)
        if amount:
            values[asset_id] = wad_to_float(view.get_usd_value(asset_id, amount))
    return values


def _health_from_values(collateral: np.ndarray, debt: float, ratio: float) -> np.ndarray:
    if debt == 0:
        return np.full(collateral.shape, np.inf)
    return collateral * ratio / debt


def shocked_health_factors(view: EngineView, user: str, shocks: Sequence[float]) -> np.ndarray:
    """
    Health factor (1.0 = boundary) after each uniform price shock.

    Example:
        # 10 WETH at $2000 backing 5000 DSC
        shocked_health_factors(engine, "alice", [0.0, -0.5])  # array([2.0, 1.0])
    """
    shock_arr = np.asarray(shocks, dtype=float)
    if np.any(shock_arr <= -1.0):
        raise ValueError("shocks must be greater than -1")
    info = view.get_account_information(user)
    collateral = wad_to_float(info.collateral_value_usd) * (1.0 + shock_arr)
    return _health_from_values(collateral, wad_to_float(info.total_dsc_minted), _threshold_ratio(view))


def asset_shock_grid(
    view: EngineView,
    user: str,
    asset_id: str,
    shocks: Sequence[float],
) -> np.ndarray:
    """Health factor after shocking only `asset_id`, all other prices unchanged."""
    shock_arr = np.asarray(shocks, dtype=float)
    if np.any(shock_arr <= -1.0):
        raise ValueError("shocks must be greater than -1")
    values = _collateral_values(view, user)
    shocked = values.get(asset_id, 0.0)
    others = sum(v for k, v in values.items() if k != asset_id)
    collateral = others + shocked * (1.0 + shock_arr)
    debt = wad_to_float(view.get_account_information(user).total_dsc_minted)
    return _health_from_values(collateral, debt, _threshold_ratio(view))


def liquidation_price(view: EngineView, user: str, asset_id: str) -> Optional[float]:
    """
    USD price of one whole unit of `asset_id` at which the account's
    health factor reaches the boundary, other prices unchanged.

    Returns None when the account has no debt or holds none of the asset;
    0.0 when the other collateral alone keeps the account healthy.
    """
    amount = view.get_collateral_balance_of_user(user, asset_id)
    debt = wad_to_float(view.get_account_information(user).total_dsc_minted)
    if debt == 0 or amount == 0:
        return None
    values = _collateral_values(view, user)
    others = sum(v for k, v in values.items() if k != asset_id)
    required = debt / _threshold_ratio(view) - others
    if required <= 0:
        return 0.0
    return required / (amount / PRECISION)


def current_price(view: EngineView, asset_id: str) -> float:
    """USD price of one whole unit (1e18 base units) of the asset."""
    return wad_to_float(view.get_usd_value(asset_id, PRECISION))


def liquidation_probability(
    view: EngineView,
    user: str,
    asset_id: str,
    volatility: float,
    t_in_days: float,
) -> float:
    """
    Probability that `asset_id` ends below its liquidation price after
    `t_in_days`, assuming a zero-drift lognormal price with annualized
    `volatility`. Other collateral prices are held constant.

    P = N((ln(L/S) + 0.5*σ²*t) / (σ*√t))
    """
    if not math.isfinite(volatility) or volatility <= 0:
        raise ValueError("volatility must be positive and finite")
    if not math.isfinite(t_in_days) or t_in_days <= 0:
        raise ValueError("t_in_days must be positive and finite")

    threshold = liquidation_price(view, user, asset_id)
    if threshold is None or threshold == 0.0:
        return 0.0
    spot = current_price(view, asset_id)
    if threshold >= spot:
        return 1.0

    t = t_in_days / DAYS_PER_YEAR
    z = (np.log(threshold / spot) + 0.5 * volatility * volatility * t) / (volatility * np.sqrt(t))
    return float(0.5 * (1.0 + scipy_erf(z / SQRT_2)))
