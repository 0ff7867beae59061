# Overview: Cash drawer counts, expenses and daily expected-vs-actual reconciliation.

"""
Cash Drawer Service

WHY: At close of day the counted cash must match what the drawer should
hold. A difference points at a miscount, an unrecorded expense or theft.

    expected_cash = opening.total + cash_sales - expense_total
    actual_cash   = closing.total            (None until the closing count)
    mismatch      = actual_cash - expected_cash
    has_mismatch  = |mismatch| > 0.01

cash_sales counts orders created on the business date with
payment_method=cash and payment_status=paid.

IMMUTABLE: Drawer events are append-only. One opening and one closing per
business date; any number of expenses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CashDrawerEvent, Order, User
from ..models.cash_drawer import (
    DENOMINATIONS,
    EVENT_OPENING,
    EVENT_CLOSING,
    EVENT_EXPENSE,
    VALID_EVENT_TYPES,
)
from ..models.orders import PAYMENT_METHOD_CASH, PAYMENT_PAID
from ..money import money_json, quantize_cents
from ..validation import ValidationError, ConflictError, parse_money
from .concurrency import serialize_writes, run_with_retry
from laundromat.time_utils import business_day_bounds, business_today


MISMATCH_TOLERANCE = Decimal("0.01")


class DrawerError(ValidationError):
    """Raised for invalid drawer events."""
    pass


class DuplicateDrawerEventError(ConflictError):
    """An opening (or closing) count already exists for the business date."""
    pass


@dataclass
class DrawerStatus:
    business_date: date
    opening: CashDrawerEvent | None
    closing: CashDrawerEvent | None
    expenses: list[CashDrawerEvent] = field(default_factory=list)
    cash_sales: Decimal = Decimal("0")
    expense_total: Decimal = Decimal("0")
    expected_cash: Decimal = Decimal("0")
    actual_cash: Decimal | None = None
    mismatch: Decimal | None = None
    has_mismatch: bool = False

    def to_dict(self) -> dict:
        return {
            "date": self.business_date.isoformat(),
            "opening": self.opening.to_dict() if self.opening else None,
            "closing": self.closing.to_dict() if self.closing else None,
            "cash_sales": money_json(self.cash_sales),
            "expenses": [e.to_dict() for e in self.expenses],
            "expense_total": money_json(self.expense_total),
            "expected_cash": money_json(self.expected_cash),
            "actual_cash": money_json(self.actual_cash),
            "mismatch": money_json(self.mismatch),
            "has_mismatch": self.has_mismatch,
        }


def cash_sales_for(business_date: date) -> Decimal:
    start, end = business_day_bounds(business_date)
    total = (
        db.session.query(func.coalesce(func.sum(Order.total), 0))
        .filter(
            Order.created_at >= start,
            Order.created_at < end,
            Order.payment_method == PAYMENT_METHOD_CASH,
            Order.payment_status == PAYMENT_PAID,
        )
        .scalar()
    )
    return quantize_cents(Decimal(str(total or 0)))


def get_status(business_date: date | None = None) -> DrawerStatus:
    business_date = business_date or business_today()

    events = (
        db.session.query(CashDrawerEvent)
        .filter(CashDrawerEvent.business_date == business_date)
        .order_by(CashDrawerEvent.occurred_at.asc(), CashDrawerEvent.id.asc())
        .all()
    )
    opening = next((e for e in events if e.event_type == EVENT_OPENING), None)
    closing = next((e for e in events if e.event_type == EVENT_CLOSING), None)
    expenses = [e for e in events if e.event_type == EVENT_EXPENSE]

    expense_total = sum((Decimal(e.total) for e in expenses), Decimal("0"))
    cash_sales = cash_sales_for(business_date)
    opening_total = Decimal(opening.total) if opening else Decimal("0")

    expected = opening_total + cash_sales - expense_total
    actual = Decimal(closing.total) if closing else None
    mismatch = actual - expected if actual is not None else None

    return DrawerStatus(
        business_date=business_date,
        opening=opening,
        closing=closing,
        expenses=expenses,
        cash_sales=cash_sales,
        expense_total=expense_total,
        expected_cash=expected,
        actual_cash=actual,
        mismatch=mismatch,
        has_mismatch=mismatch is not None and abs(mismatch) > MISMATCH_TOLERANCE,
    )


def _parse_count(value, name: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise DrawerError(f"{name} must be a whole number")
    if isinstance(value, float) and not value.is_integer():
        raise DrawerError(f"{name} must be a whole number")
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise DrawerError(f"{name} must be a whole number")
    if count < 0:
        raise DrawerError(f"{name} cannot be negative")
    return count


def count_total(counts: dict[str, int], change_float: Decimal) -> Decimal:
    total = sum(counts[name] * face for name, face in DENOMINATIONS)
    return Decimal(total) + change_float


def record_drawer_event(
    event_type: str,
    data: dict,
    *,
    user: User,
    business_date: date | None = None,
) -> CashDrawerEvent:
    """
    Append an opening/closing count or an expense.

    Counts: data holds the DENOMINATIONS counts plus "change" (coins and
    loose bills, as an amount). Expenses: data holds "amount" and
    "description".

    Raises:
        DrawerError: bad type or values
        DuplicateDrawerEventError: opening/closing already recorded for the date
    """
    if event_type not in VALID_EVENT_TYPES:
        raise DrawerError(f"type must be one of {', '.join(VALID_EVENT_TYPES)}")
    data = data or {}
    business_date = business_date or business_today()
    notes = (data.get("notes") or "").strip() or None

    event = CashDrawerEvent(
        event_type=event_type,
        business_date=business_date,
        notes=notes,
        user_id=user.id,
        user_name=user.name,
    )

    if event_type == EVENT_EXPENSE:
        if data.get("amount") is None:
            raise DrawerError("amount is required for an expense")
        amount = parse_money(data.get("amount"), "amount")
        if amount <= 0:
            raise DrawerError("amount must be greater than 0")
        event.total = amount
        event.description = (data.get("description") or "").strip() or None
    else:
        counts = {name: _parse_count(data.get(name), name) for name, _ in DENOMINATIONS}
        raw_change = data.get("change", data.get("change_float"))
        change_float = parse_money(raw_change, "change") if raw_change not in (None, "") else Decimal("0")
        for name, value in counts.items():
            setattr(event, name, value)
        event.change_float = change_float
        event.total = count_total(counts, change_float)

    def _op() -> CashDrawerEvent:
        serialize_writes()
        if event_type != EVENT_EXPENSE:
            existing = (
                db.session.query(CashDrawerEvent.id)
                .filter_by(event_type=event_type, business_date=business_date)
                .first()
            )
            if existing:
                raise DuplicateDrawerEventError(
                    f"{event_type.capitalize()} count already recorded for {business_date.isoformat()}"
                )
        db.session.add(event)
        db.session.flush()
        db.session.commit()
        return event

    try:
        return run_with_retry(_op)
    except IntegrityError:
        raise DuplicateDrawerEventError(
            f"{event_type.capitalize()} count already recorded for {business_date.isoformat()}"
        )
