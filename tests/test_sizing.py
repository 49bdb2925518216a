"""Tests for order sizing."""

from __future__ import annotations

from decimal import Decimal

import pytest

from lighter_service.execution.sizing import calculate_notional_usd, calculate_quantity, side_for
from lighter_service.models import Action


class TestNotional:
    def test_scaled_by_confidence(self):
        assert calculate_notional_usd(0.9, 100) == Decimal("90.0")

    def test_override_capped(self):
        assert calculate_notional_usd(0.9, 100, override=250) == Decimal("100")

    def test_override_below_cap(self):
        assert calculate_notional_usd(0.9, 100, override=40) == Decimal("40")

    def test_capped_by_balance(self):
        assert calculate_notional_usd(0.9, 100, available_balance=Decimal("30")) == Decimal("30")

    def test_negative_balance_gives_zero(self):
        assert calculate_notional_usd(0.9, 100, available_balance=Decimal("-5")) == Decimal("0")


class TestQuantity:
    def test_eth_example(self):
        assert calculate_quantity(Decimal("90"), Decimal("2000")) == Decimal("0.045")

    def test_rounds_down(self):
        assert calculate_quantity(Decimal("100"), Decimal("3")) == Decimal("33.33333333")

    def test_zero_price(self):
        assert calculate_quantity(Decimal("100"), Decimal("0")) == Decimal("0")


class TestSide:
    def test_sides(self):
        assert side_for(Action.BUY) == "buy"
        assert side_for(Action.SELL) == "sell"

    def test_hold_has_no_side(self):
        with pytest.raises(ValueError):
            side_for(Action.HOLD)
