"""
test_fixed_point.py - Unit tests for integer fixed-point helpers

Tests:
- Overflow checks against MAX_UINT256
- Floor division and division by zero
- Feed precision normalization
- to_wad / from_wad conversion at the human-facing edge
"""

import pytest
from decimal import Decimal

from dsc_engine import MAX_UINT256, PRECISION, FixedPointOverflow, EngineError
from dsc_engine.fixed_point import (
    checked, mul, div, add, sub, mul_div,
    additional_precision_for, to_wad, from_wad, wad_to_float,
)


class TestCheckedArithmetic:

    def test_mul_in_range(self):
        assert mul(2000 * 10**8, 10**10) == 2000 * PRECISION

    def test_mul_overflow_raises(self):
        with pytest.raises(FixedPointOverflow) as exc:
            mul(MAX_UINT256, 2)
        assert exc.value.value == MAX_UINT256 * 2

    def test_overflow_is_engine_and_arithmetic_error(self):
        with pytest.raises(EngineError):
            mul(MAX_UINT256, MAX_UINT256)
        with pytest.raises(ArithmeticError):
            add(MAX_UINT256, 1)

    def test_sub_below_zero_raises(self):
        with pytest.raises(FixedPointOverflow):
            sub(1, 2)

    def test_checked_rejects_negative(self):
        with pytest.raises(FixedPointOverflow):
            checked(-1)

    def test_max_value_is_allowed(self):
        assert checked(MAX_UINT256) == MAX_UINT256


class TestDivision:

    def test_div_floors(self):
        assert div(7, 2) == 3
        assert div(1, 3) == 0

    def test_div_by_zero(self):
        with pytest.raises(ZeroDivisionError):
            div(1, 0)

    def test_mul_div_checks_intermediate_product(self):
        with pytest.raises(FixedPointOverflow):
            mul_div(MAX_UINT256, 10, 10)

    def test_mul_div_truncates(self):
        # $100 of an asset priced at $2000 (normalized)
        assert mul_div(100 * PRECISION, PRECISION, 2000 * PRECISION) == 5 * 10**16
        # $5000 at $1800 rounds down
        assert mul_div(5000 * PRECISION, PRECISION, 1800 * PRECISION) == 2777777777777777777


class TestFeedPrecision:

    @pytest.mark.parametrize("decimals,expected", [(8, 10**10), (18, 1), (6, 10**12), (0, 10**18)])
    def test_additional_precision(self, decimals, expected):
        assert additional_precision_for(decimals) == expected

    @pytest.mark.parametrize("decimals", [-1, 19, 24])
    def test_out_of_range_decimals(self, decimals):
        with pytest.raises(ValueError, match="decimals"):
            additional_precision_for(decimals)


class TestWadConversion:

    def test_to_wad_int(self):
        assert to_wad(15) == 15 * PRECISION

    def test_to_wad_string_fraction(self):
        assert to_wad("0.05") == 5 * 10**16

    def test_to_wad_decimal_custom_scale(self):
        assert to_wad(Decimal("2000.5"), decimals=8) == 200050000000

    def test_to_wad_rejects_float(self):
        with pytest.raises(ValueError, match="float"):
            to_wad(0.1)

    def test_to_wad_rejects_excess_digits(self):
        with pytest.raises(ValueError, match="fractional digits"):
            to_wad("0.123", decimals=2)

    def test_to_wad_rejects_negative(self):
        with pytest.raises(ValueError, match="negative"):
            to_wad(-1)

    def test_from_wad_is_exact(self):
        assert from_wad(3055555555555555554) == Decimal("3.055555555555555554")

    def test_wad_to_float(self):
        assert wad_to_float(15 * 10**17) == pytest.approx(1.5)
