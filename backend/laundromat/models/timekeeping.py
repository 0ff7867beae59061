from __future__ import annotations

from ..extensions import db
from laundromat.time_utils import to_utc_z


ENTRY_OPEN = "OPEN"
ENTRY_CLOSED = "CLOSED"

_OPEN_WHERE = db.text("status = 'OPEN'")


class TimeEntry(db.Model):
    """
    Time clock entry for shift-based timekeeping.

    LIFECYCLE:
    - OPEN: Clock-in happened, shift in progress (clock_out_at is NULL)
    - CLOSED: Clock-out happened, hours_worked computed

    INVARIANTS:
    - At most one OPEN entry per user (partial unique index)
    - At most one OPEN entry across all "staff"-role users; checked by
      timekeeping_service under a write lock. admin/driver are exempt.
    """
    __tablename__ = "time_entries"
    __table_args__ = (
        db.Index("ix_time_entries_user_status", "user_id", "status"),
        db.Index("ix_time_entries_date", "business_date"),
        db.Index("uq_time_entries_user_open", "user_id", unique=True,
                 sqlite_where=_OPEN_WHERE, postgresql_where=_OPEN_WHERE),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_name = db.Column(db.String(255), nullable=True)
    # Role at clock-in; the coverage rule looks at this, not the live role
    user_role = db.Column(db.String(16), nullable=False)

    clock_in_at = db.Column(db.DateTime(timezone=True), nullable=False)
    clock_out_at = db.Column(db.DateTime(timezone=True), nullable=True)
    business_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ENTRY_OPEN)

    # Fractional hours, calculated on clock-out
    hours_worked = db.Column(db.Numeric(10, 4), nullable=True)

    # Washer/dryer counter readings at shift start and end
    machine_counter_start = db.Column(db.Integer, nullable=True)
    machine_counter_end = db.Column(db.Integer, nullable=True)

    shift_notes = db.Column(db.Text, nullable=True)

    # Set when an admin closes someone else's shift
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("time_entries", lazy=True, passive_deletes=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "user_role": self.user_role,
            "clock_in_at": to_utc_z(self.clock_in_at),
            "clock_out_at": to_utc_z(self.clock_out_at) if self.clock_out_at else None,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "status": self.status,
            "hours_worked": round(float(self.hours_worked), 2) if self.hours_worked is not None else None,
            "machine_counter_start": self.machine_counter_start,
            "machine_counter_end": self.machine_counter_end,
            "shift_notes": self.shift_notes,
            "closed_by_user_id": self.closed_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
