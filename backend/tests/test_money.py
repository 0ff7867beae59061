"""
Order pricing tests.

Verifies:
- The 8.875% reference order rounds to 30.49 only at the end
- Totals never go negative
- Discount, adjustment and input validation
"""

from decimal import Decimal

import pytest

from laundromat.money import LineItem, compute, money_json, quantize_cents
from laundromat.validation import ValidationError


def item(price, qty, desc="Wash & Fold"):
    return LineItem(service_id=None, description=desc, unit_price=Decimal(price), quantity=Decimal(qty))


class TestCompute:

    def test_reference_order_rounds_once(self):
        result = compute([item("1.40", "20")], Decimal("0"), Decimal("0"), Decimal("8.875"))

        assert result.subtotal == Decimal("28.00")
        assert result.tax == Decimal("2.485")
        assert result.total == Decimal("30.485")

        rounded = result.rounded()
        assert rounded.tax == Decimal("2.49")
        assert rounded.total == Decimal("30.49")

    def test_is_deterministic(self):
        args = ([item("12.99", "3"), item("1.40", "7.5")], Decimal("15"), Decimal("-2"), Decimal("8.875"))
        assert compute(*args) == compute(*args)

    def test_negative_adjustment_clamps_total_at_zero(self):
        result = compute([item("10", "1")], Decimal("0"), Decimal("-100"), Decimal("8.875"))
        assert result.total == Decimal("0")

    def test_discount_applies_before_adjustment_and_tax(self):
        # 100 * 0.9 = 90; + 10 rush = 100; tax 10% = 10
        result = compute([item("50", "2")], Decimal("10"), Decimal("10"), Decimal("10"))
        assert result.subtotal == Decimal("100")
        assert result.tax == Decimal("10")
        assert result.total == Decimal("110")

    def test_full_discount_leaves_only_adjustment(self):
        result = compute([item("20", "1")], Decimal("100"), Decimal("5"), Decimal("0"))
        assert result.total == Decimal("5")

    def test_empty_order_is_zero(self):
        result = compute([], Decimal("0"), Decimal("0"), Decimal("8.875"))
        assert result.total == Decimal("0")

    @pytest.mark.parametrize("discount", ["-1", "100.01"])
    def test_rejects_discount_out_of_range(self, discount):
        with pytest.raises(ValidationError):
            compute([item("1", "1")], Decimal(discount), Decimal("0"), Decimal("0"))

    def test_rejects_negative_quantity(self):
        with pytest.raises(ValidationError, match="quantity"):
            compute([item("1", "-1")], Decimal("0"), Decimal("0"), Decimal("0"))

    def test_rejects_negative_tax_rate(self):
        with pytest.raises(ValidationError):
            compute([item("1", "1")], Decimal("0"), Decimal("0"), Decimal("-1"))


class TestRounding:

    def test_half_up(self):
        assert quantize_cents(Decimal("0.005")) == Decimal("0.01")
        assert quantize_cents(Decimal("2.485")) == Decimal("2.49")
        assert quantize_cents(Decimal("-5.505")) == Decimal("-5.51")

    def test_money_json(self):
        assert money_json(Decimal("30.485")) == 30.49
        assert money_json(None) is None

    def test_line_item_json_keeps_precision(self):
        original = item("1.40", "12.25")
        assert LineItem.from_json(original.to_json()) == original
