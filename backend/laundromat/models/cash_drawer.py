from __future__ import annotations

from ..extensions import db
from ..money import money_json
from laundromat.time_utils import to_utc_z


EVENT_OPENING = "opening"
EVENT_CLOSING = "closing"
EVENT_EXPENSE = "expense"
VALID_EVENT_TYPES = (EVENT_OPENING, EVENT_CLOSING, EVENT_EXPENSE)

# Column name -> face value, in the order a drawer count is entered
DENOMINATIONS = (
    ("hundreds", 100),
    ("fifties", 50),
    ("twenties", 20),
    ("tens", 10),
    ("fives", 5),
    ("ones", 1),
)

_DAILY_COUNT_WHERE = db.text("event_type IN ('opening', 'closing')")


class CashDrawerEvent(db.Model):
    """
    Cash drawer count or expense for a business date.

    EVENT TYPES:
    - opening: denomination count at start of day
    - closing: denomination count at end of day
    - expense: cash paid out of the drawer (amount + description)

    IMMUTABLE: Append-only. At most one opening and one closing per
    business date (partial unique index); any number of expenses.
    """
    __tablename__ = "cash_drawer_events"
    __table_args__ = (
        db.Index("ix_cash_drawer_events_date_type", "business_date", "event_type"),
        db.Index(
            "uq_cash_drawer_daily_count",
            "event_type",
            "business_date",
            unique=True,
            sqlite_where=_DAILY_COUNT_WHERE,
            postgresql_where=_DAILY_COUNT_WHERE,
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(16), nullable=False)
    business_date = db.Column(db.Date, nullable=False)

    # Denomination counts (opening/closing only)
    hundreds = db.Column(db.Integer, nullable=False, default=0)
    fifties = db.Column(db.Integer, nullable=False, default=0)
    twenties = db.Column(db.Integer, nullable=False, default=0)
    tens = db.Column(db.Integer, nullable=False, default=0)
    fives = db.Column(db.Integer, nullable=False, default=0)
    ones = db.Column(db.Integer, nullable=False, default=0)
    # Coins and loose change, entered as an amount
    change_float = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    # Counted total for opening/closing; the paid-out amount for expenses
    total = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    description = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    user_name = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "event_type": self.event_type,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "total": money_json(self.total),
            "description": self.description,
            "notes": self.notes,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "occurred_at": to_utc_z(self.occurred_at),
        }
        if self.event_type != EVENT_EXPENSE:
            data["denominations"] = {name: getattr(self, name) for name, _ in DENOMINATIONS}
            data["change_float"] = money_json(self.change_float)
        return data
