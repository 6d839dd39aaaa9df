"""Quantity parsing from free-form labels."""

import math

import pytest

from services.quantity import parse_quantity


class TestParseQuantity:

    @pytest.mark.parametrize(
        "label, expected",
        [
            ("50 meals", 50),
            ("12.5 kg", 12.5),
            ("about 3 boxes of 20", 3),
            ("  7", 7),
            ("1.2.3", 1.2),
        ],
    )
    def test_first_numeral_wins(self, label, expected):
        assert parse_quantity(label) == expected

    @pytest.mark.parametrize("label", ["meals", "", "a few", None])
    def test_no_numeral_is_zero(self, label):
        assert parse_quantity(label) == 0

    def test_numbers_pass_through(self):
        assert parse_quantity(12.5) == 12.5
        assert parse_quantity(40) == 40

    @pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
    def test_non_finite_numbers_are_zero(self, value):
        assert parse_quantity(value) == 0

    def test_reparsing_the_result_is_stable(self):
        first = parse_quantity("15 kg rice")
        assert parse_quantity(str(first)) == first
