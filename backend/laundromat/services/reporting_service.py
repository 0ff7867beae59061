# Overview: Read-only reporting rollups over orders and time entries.

"""
Reporting Service

Windows are inclusive business dates [start, end], converted to a
half-open UTC range for created_at comparisons. Cancelled orders are left
out of revenue, order and weight totals.

Named periods:
- today:      the current business date
- this_week:  the trailing 7 days, today included
- (default):  the trailing 30 days, today included

Comparison windows:
- previous:   the same number of days immediately before start
- prior_year: the same calendar dates one year earlier
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Order, TimeEntry
from ..models.orders import STATUS_CANCELLED, PAYMENT_METHOD_CASH, PAYMENT_PAID
from ..money import money_json
from ..validation import ValidationError
from laundromat.time_utils import business_day_start, business_today, parse_iso_date


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""
    pass


PERIOD_TODAY = "today"
PERIOD_THIS_WEEK = "this_week"
PERIOD_TRAILING_30 = "trailing_30_days"
VALID_PERIODS = (PERIOD_TODAY, PERIOD_THIS_WEEK, PERIOD_TRAILING_30)

COMPARE_PREVIOUS = "previous"
COMPARE_PRIOR_YEAR = "prior_year"
VALID_COMPARISONS = (COMPARE_PREVIOUS, COMPARE_PRIOR_YEAR)

TOP_CUSTOMER_LIMIT = 10
STAFF_SUMMARY_DAYS = 7

# stage -> Order column pair counted for staff productivity
_STAGE_COLUMNS = (
    ("received", Order.received_by, Order.received_at),
    ("pickup", Order.pickup_by, Order.pickup_at),
    ("cleaned", Order.cleaned_by, Order.cleaned_at),
    ("ready", Order.ready_by, Order.ready_at),
    ("delivered", Order.delivered_by, Order.delivered_at),
)


def _to_decimal(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def _parse_date(value, field: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ReportError(f"{field} must be a date (YYYY-MM-DD)")


def resolve_window(
    period: str | None = None,
    start=None,
    end=None,
    *,
    default_days: int = 30,
) -> tuple[date, date]:
    """Explicit start/end win over a named period."""
    start = _parse_date(start, "start")
    end = _parse_date(end, "end")
    today = business_today()

    if start or end:
        end = end or today
        start = start or end - timedelta(days=default_days - 1)
    elif period in (None, "", PERIOD_TRAILING_30):
        end = today
        start = today - timedelta(days=default_days - 1)
    elif period == PERIOD_TODAY:
        start = end = today
    elif period == PERIOD_THIS_WEEK:
        end = today
        start = today - timedelta(days=6)
    else:
        raise ReportError(f"period must be one of {', '.join(VALID_PERIODS)}")

    if start > end:
        raise ReportError("start must be on or before end")
    return start, end


def _shift_year(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # Feb 29 -> Feb 28
        return day.replace(year=day.year + years, day=28)


def comparison_window(start: date, end: date, compare: str) -> tuple[date, date]:
    if compare == COMPARE_PREVIOUS:
        length = (end - start).days + 1
        return start - timedelta(days=length), start - timedelta(days=1)
    if compare == COMPARE_PRIOR_YEAR:
        return _shift_year(start, -1), _shift_year(end, -1)
    raise ReportError(f"compare must be one of {', '.join(VALID_COMPARISONS)}")


def _utc_range(start: date, end: date):
    return business_day_start(start), business_day_start(end + timedelta(days=1))


def _counted_orders(start: date, end: date):
    start_dt, end_dt = _utc_range(start, end)
    return (
        Order.created_at >= start_dt,
        Order.created_at < end_dt,
        Order.status != STATUS_CANCELLED,
    )


def period_totals(start: date, end: date) -> dict:
    row = (
        db.session.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0),
            func.coalesce(func.sum(Order.weight), 0),
        )
        .filter(*_counted_orders(start, end))
        .one()
    )
    return {
        "orders": int(row[0] or 0),
        "revenue": _to_decimal(row[1]),
        "weight": _to_decimal(row[2]),
    }


def top_customers(start: date, end: date, limit: int = TOP_CUSTOMER_LIMIT) -> list[dict]:
    """Ranked by total descending, ties by customer name ascending."""
    total_expr = func.coalesce(func.sum(Order.total), 0)
    rows = (
        db.session.query(
            Order.customer_name,
            func.count(Order.id),
            total_expr,
        )
        .filter(*_counted_orders(start, end), Order.customer_name.isnot(None))
        .group_by(Order.customer_name)
        .all()
    )
    ranked = sorted(
        ((name, int(count), _to_decimal(total)) for name, count, total in rows),
        key=lambda r: (-r[2], r[0]),
    )
    return [
        {"name": name, "orders": count, "total": money_json(total)}
        for name, count, total in ranked[:limit]
    ]


def _pct_change(current: Decimal, previous: Decimal) -> float | None:
    if previous == 0:
        return None
    return round(float((current - previous) / previous * 100), 1)


def _totals_json(totals: dict) -> dict:
    return {
        "total_orders": totals["orders"],
        "total_revenue": money_json(totals["revenue"]),
        "total_weight": float(totals["weight"]),
    }


def summary(
    *,
    period: str | None = None,
    start=None,
    end=None,
    compare: str | None = None,
) -> dict:
    start, end = resolve_window(period, start, end)
    totals = period_totals(start, end)

    result = {
        "start": start.isoformat(),
        "end": end.isoformat(),
        **_totals_json(totals),
        "top_customers": top_customers(start, end),
    }

    if compare:
        prev_start, prev_end = comparison_window(start, end, compare)
        prev = period_totals(prev_start, prev_end)
        result["comparison"] = {
            "mode": compare,
            "start": prev_start.isoformat(),
            "end": prev_end.isoformat(),
            **_totals_json(prev),
            "change": {
                "orders": totals["orders"] - prev["orders"],
                "revenue": money_json(totals["revenue"] - prev["revenue"]),
                "weight": float(totals["weight"] - prev["weight"]),
                "orders_pct": _pct_change(Decimal(totals["orders"]), Decimal(prev["orders"])),
                "revenue_pct": _pct_change(totals["revenue"], prev["revenue"]),
            },
        }

    return result


def _hours_by_name(start: date, end: date) -> dict[str, Decimal]:
    rows = (
        db.session.query(TimeEntry.user_name, func.coalesce(func.sum(TimeEntry.hours_worked), 0))
        .filter(TimeEntry.business_date >= start, TimeEntry.business_date <= end)
        .group_by(TimeEntry.user_name)
        .all()
    )
    return {name: _to_decimal(hours) for name, hours in rows if name}


def staff_productivity(*, period: str | None = None, start=None, end=None) -> dict:
    """
    Per staff name: orders stamped at each stage inside the window, cash
    collected on orders they created, and hours worked.
    """
    start, end = resolve_window(period, start, end)
    start_dt, end_dt = _utc_range(start, end)

    staff: dict[str, dict] = {}

    def _row(name: str) -> dict:
        if name not in staff:
            staff[name] = {
                "name": name,
                "stages": {stage: 0 for stage, _, _ in _STAGE_COLUMNS},
                "cash_collected": Decimal("0"),
                "hours_worked": Decimal("0"),
            }
        return staff[name]

    for stage, by_col, at_col in _STAGE_COLUMNS:
        rows = (
            db.session.query(by_col, func.count(Order.id))
            .filter(by_col.isnot(None), at_col >= start_dt, at_col < end_dt)
            .group_by(by_col)
            .all()
        )
        for name, count in rows:
            _row(name)["stages"][stage] = int(count)

    cash_rows = (
        db.session.query(Order.created_by_name, func.coalesce(func.sum(Order.total), 0))
        .filter(
            *_counted_orders(start, end),
            Order.created_by_name.isnot(None),
            Order.payment_method == PAYMENT_METHOD_CASH,
            Order.payment_status == PAYMENT_PAID,
        )
        .group_by(Order.created_by_name)
        .all()
    )
    for name, total in cash_rows:
        _row(name)["cash_collected"] = _to_decimal(total)

    for name, hours in _hours_by_name(start, end).items():
        _row(name)["hours_worked"] = hours

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "staff": [
            {
                **row,
                "cash_collected": money_json(row["cash_collected"]),
                "hours_worked": round(float(row["hours_worked"]), 2),
                "orders_touched": sum(row["stages"].values()),
            }
            for _, row in sorted(staff.items())
        ],
    }


def staff_summary(*, start=None, end=None) -> dict:
    """Hours, orders created, sales and weight per staff name; default trailing 7 days."""
    start, end = resolve_window(None, start, end, default_days=STAFF_SUMMARY_DAYS)

    staff: dict[str, dict] = {}
    for name, hours in _hours_by_name(start, end).items():
        staff[name] = {
            "name": name,
            "hours_worked": hours,
            "orders_processed": 0,
            "sales": Decimal("0"),
            "weight": Decimal("0"),
        }

    rows = (
        db.session.query(
            Order.created_by_name,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0),
            func.coalesce(func.sum(Order.weight), 0),
        )
        .filter(*_counted_orders(start, end), Order.created_by_name.isnot(None))
        .group_by(Order.created_by_name)
        .all()
    )
    for name, count, sales, weight in rows:
        row = staff.setdefault(name, {
            "name": name,
            "hours_worked": Decimal("0"),
            "orders_processed": 0,
            "sales": Decimal("0"),
            "weight": Decimal("0"),
        })
        row["orders_processed"] = int(count)
        row["sales"] = _to_decimal(sales)
        row["weight"] = _to_decimal(weight)

    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "staff": [
            {
                "name": row["name"],
                "hours_worked": round(float(row["hours_worked"]), 2),
                "orders_processed": row["orders_processed"],
                "sales": money_json(row["sales"]),
                "weight": float(row["weight"]),
            }
            for _, row in sorted(staff.items())
        ],
    }
