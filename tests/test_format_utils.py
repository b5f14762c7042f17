from decimal import Decimal

import pytest

from chainsync.core.utils.format_utils import format_units, parse_units


class TestParseUnits:

    def test_scales_by_asset_decimals(self):
        assert parse_units("0.001", 6) == 1000
        assert parse_units("0.001", 18) == 1000000000000000

    def test_accepts_decimal_and_int(self):
        assert parse_units(Decimal("1.5"), 6) == 1500000
        assert parse_units(2, 18) == 2 * 10 ** 18

    def test_large_amount_keeps_precision(self):
        assert parse_units("123456789012345678.123456789012345678", 18) == 123456789012345678123456789012345678

    def test_zero_decimals(self):
        assert parse_units("42", 0) == 42

    def test_rejects_excess_precision(self):
        with pytest.raises(ValueError):
            parse_units("0.0000001", 6)

    @pytest.mark.parametrize("bad", ["-1", "abc", "NaN", "Infinity", 0.1])
    def test_rejects_invalid_amounts(self, bad):
        with pytest.raises(ValueError):
            parse_units(bad, 18)


class TestFormatUnits:

    def test_strips_trailing_zeros(self):
        assert format_units(1500000, 6) == "1.5"
        assert format_units(1000, 6) == "0.001"

    def test_whole_numbers(self):
        assert format_units(42 * 10 ** 18, 18) == "42"
        assert format_units(0, 6) == "0"

    def test_uint256_max_is_exact(self):
        raw = 2 ** 256 - 1
        assert format_units(raw, 0) == str(raw)
        assert format_units(raw, 18).replace(".", "") == str(raw)
