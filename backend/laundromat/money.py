# Overview: Money/tax calculator for order pricing. Pure functions, no I/O.

"""
Order pricing.

    subtotal      = sum(unit_price * quantity)
    discounted    = subtotal * (1 - discount_percent / 100)
    taxable_base  = discounted + adjustment
    tax           = taxable_base * tax_rate_percent / 100
    total         = max(0, taxable_base + tax)

All arithmetic is Decimal. compute() returns exact (unrounded) values;
rounding to cents happens once, via MoneyBreakdown.rounded(), when the
result is persisted or displayed. Rounding the unrounded total (30.485 ->
30.49) is not the same as adding rounded parts, so callers must not
re-derive total from a rounded tax.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from .validation import ValidationError


CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LineItem:
    """One priced line on an order. quantity is pounds for per-lb services."""
    service_id: int | None
    description: str
    unit_price: Decimal
    quantity: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_json(self) -> dict:
        # Stored as strings so JSON round trips keep Decimal precision
        return {
            "service_id": self.service_id,
            "description": self.description,
            "unit_price": str(self.unit_price),
            "quantity": str(self.quantity),
        }

    @classmethod
    def from_json(cls, data: dict) -> "LineItem":
        return cls(
            service_id=data.get("service_id"),
            description=data.get("description") or "",
            unit_price=Decimal(str(data["unit_price"])),
            quantity=Decimal(str(data["quantity"])),
        )


@dataclass(frozen=True)
class MoneyBreakdown:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def rounded(self) -> "MoneyBreakdown":
        return MoneyBreakdown(
            subtotal=quantize_cents(self.subtotal),
            tax=quantize_cents(self.tax),
            total=quantize_cents(self.total),
        )


def quantize_cents(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def money_json(amount: Decimal | None) -> float | None:
    """Currency value for JSON output: 2 decimal places, as a number."""
    if amount is None:
        return None
    return float(quantize_cents(amount))


def compute(
    items: Iterable[LineItem],
    discount_percent: Decimal,
    adjustment: Decimal,
    tax_rate_percent: Decimal,
) -> MoneyBreakdown:
    """
    Price a list of line items.

    Raises ValidationError for a negative quantity or unit price, a discount
    outside [0, 100], or a negative tax rate. Adjustment may be negative
    (markdown) or positive (rush fee); the total is clamped at zero.
    """
    discount_percent = Decimal(discount_percent)
    adjustment = Decimal(adjustment)
    tax_rate_percent = Decimal(tax_rate_percent)

    if discount_percent < 0 or discount_percent > HUNDRED:
        raise ValidationError("discount must be between 0 and 100")
    if tax_rate_percent < 0:
        raise ValidationError("tax rate must be >= 0")

    subtotal = ZERO
    for item in items:
        if item.quantity < 0:
            raise ValidationError(f"quantity cannot be negative ({item.description or 'item'})")
        if item.unit_price < 0:
            raise ValidationError(f"unit price cannot be negative ({item.description or 'item'})")
        subtotal += item.line_total

    discounted = subtotal * (1 - discount_percent / HUNDRED)
    taxable_base = discounted + adjustment
    tax = taxable_base * tax_rate_percent / HUNDRED
    total = max(ZERO, taxable_base + tax)

    return MoneyBreakdown(subtotal=subtotal, tax=tax, total=total)
