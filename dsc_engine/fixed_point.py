"""
fixed_point.py - Integer fixed-point arithmetic

Every engine quantity is a plain Python int. USD values and stable-unit
amounts are wads (18 fractional digits); feed answers keep their native
precision until normalized.

All helpers are pure and explicit about rounding: division uses ``//``
(floor), which for the non-negative operands used here truncates toward
zero. Every product and quotient is range-checked against MAX_UINT256 so
that results agree with an unsigned 256-bit implementation.

Decimal appears only at the human-facing edge (to_wad / from_wad).
"""

from __future__ import annotations
from decimal import Decimal, localcontext
from typing import Union

from .core import (
    MAX_UINT256, PRECISION, PRECISION_DECIMALS,
    FixedPointOverflow, Wad,
)


Number = Union[int, str, Decimal]


def checked(value: int) -> int:
    """Return value unchanged, or raise FixedPointOverflow outside [0, MAX_UINT256]."""
    if value < 0 or value > MAX_UINT256:
        raise FixedPointOverflow(value)
    return value


def mul(a: int, b: int) -> int:
    """Overflow-checked product."""
    return checked(checked(a) * checked(b))


def div(a: int, b: int) -> int:
    """Floor quotient. Division by zero raises ZeroDivisionError."""
    if b == 0:
        raise ZeroDivisionError("fixed-point division by zero")
    return checked(a) // checked(b)


def add(a: int, b: int) -> int:
    return checked(checked(a) + checked(b))


def sub(a: int, b: int) -> int:
    """Checked difference; going below zero is an overflow."""
    return checked(checked(a) - checked(b))


def mul_div(a: int, b: int, denominator: int) -> int:
    """(a * b) // denominator with the product range-checked first."""
    return div(mul(a, b), denominator)


def additional_precision_for(decimals: int) -> int:
    """
    Factor that lifts a value with `decimals` fractional digits to PRECISION.

    An 8-digit feed gives 1e10.

    Raises:
        ValueError: If decimals is negative or exceeds 18
    """
    if decimals < 0 or decimals > PRECISION_DECIMALS:
        raise ValueError(
            f"feed decimals must be between 0 and {PRECISION_DECIMALS}, got {decimals}"
        )
    return 10 ** (PRECISION_DECIMALS - decimals)


def to_wad(value: Number, decimals: int = PRECISION_DECIMALS) -> Wad:
    """
    Convert a human-readable number to a scaled integer.

    Args:
        value: e.g. "15", Decimal("0.05"), 2000
        decimals: Fractional digits of the target scale (default 18)

    Returns:
        Integer amount, e.g. to_wad("0.05") == 5 * 10**16

    Raises:
        ValueError: If value is negative, a float, or has more fractional
                    digits than the scale can represent
    """
    if isinstance(value, float):
        raise ValueError("floats are not accepted; pass a str or Decimal")
    if Decimal(value) < 0:
        raise ValueError(f"amount cannot be negative, got {value}")
    if isinstance(value, int):
        return checked(value * 10 ** decimals)
    with localcontext() as ctx:
        ctx.prec = 100
        scaled = Decimal(value) * (Decimal(10) ** decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"{value} has more than {decimals} fractional digits")
    return checked(int(scaled))


def from_wad(value: int, decimals: int = PRECISION_DECIMALS) -> Decimal:
    """Convert a scaled integer back to an exact Decimal."""
    with localcontext() as ctx:
        ctx.prec = 100
        return Decimal(value) / (Decimal(10) ** decimals)


def wad_to_float(value: int) -> float:
    """Lossy conversion for display and analytics only."""
    return value / PRECISION
