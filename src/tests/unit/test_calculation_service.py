"""Tests for calculation_service."""

from decimal import Decimal

import pytest

from rocafe.services.calculation_service import (
    calculate_profit_margin,
    calculate_simplified_dre,
)


class TestProfitMargin:
    def test_margin(self):
        assert calculate_profit_margin(Decimal("10.00"), Decimal("4.00")) == Decimal("0.6")

    def test_accepts_floats_without_drift(self):
        assert calculate_profit_margin(5.0, 1.45) == Decimal("0.71")

    @pytest.mark.parametrize(
        "sale_price, cost",
        [
            (Decimal("4.00"), Decimal("10.00")),  # loss
            (Decimal("4.00"), Decimal("4.00")),  # break-even
            (Decimal("0"), Decimal("1.00")),
            (Decimal("5.00"), Decimal("0")),
            (None, Decimal("1.00")),
            (Decimal("5.00"), None),
        ],
    )
    def test_undefined_margin(self, sale_price, cost):
        assert calculate_profit_margin(sale_price, cost) is None


class TestSimplifiedDre:
    def test_profit(self):
        assert calculate_simplified_dre(Decimal("1500.00"), Decimal("900.50")) == Decimal("599.50")

    def test_loss_is_negative(self):
        assert calculate_simplified_dre("100", "250.25") == Decimal("-150.25")
