# Overview: Service-layer operations for timekeeping; clock in/out and shift coverage.

"""
Timekeeping Service (Shift-Based)

WHY: Staff clock in/out to open/close a shift. The shop runs one counter
shift at a time, so only one "staff"-role user may be clocked in at once.
admin and driver are exempt in both directions: their open entries do
not block staff, and staff do not block them.

Each check-then-insert runs in one transaction that holds the write lock
(BEGIN IMMEDIATE on SQLite, row locks on staff users elsewhere), so two
simultaneous clock-ins cannot both pass the check.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import TimeEntry, User
from ..models.auth import ROLE_STAFF
from ..models.timekeeping import ENTRY_OPEN, ENTRY_CLOSED
from ..validation import ValidationError, NotFoundError
from .concurrency import lock_for_update, serialize_writes, run_with_retry
from laundromat.time_utils import utcnow, business_date_of


class TimekeepingError(ValueError):
    """Raised for invalid timekeeping operations."""
    pass


class AlreadyClockedInError(TimekeepingError):
    pass


class NotClockedInError(TimekeepingError):
    pass


class AnotherStaffActiveError(TimekeepingError):
    """Another staff user holds the shift; blocking_user says who."""

    def __init__(self, blocking_user: User | None, blocking_name: str | None = None):
        self.blocking_user = blocking_user
        self.blocking_name = blocking_name or (blocking_user.name if blocking_user else "another staff member")
        super().__init__(f"{self.blocking_name} is already clocked in. They must clock out first.")


HOURS_QUANTUM = Decimal("0.0001")


def _parse_counter(value, field: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number")
    try:
        counter = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number")
    if counter < 0:
        raise ValidationError(f"{field} cannot be negative")
    return counter


def _get_open_entry(user_id: int, *, for_update: bool = False) -> TimeEntry | None:
    query = db.session.query(TimeEntry).filter_by(user_id=user_id, status=ENTRY_OPEN)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def _open_staff_entry(exclude_user_id: int) -> TimeEntry | None:
    return (
        db.session.query(TimeEntry)
        .filter(
            TimeEntry.status == ENTRY_OPEN,
            TimeEntry.user_role == ROLE_STAFF,
            TimeEntry.user_id != exclude_user_id,
        )
        .order_by(TimeEntry.clock_in_at.asc())
        .first()
    )


def hours_between(start, end) -> Decimal:
    seconds = Decimal(str((end - start).total_seconds()))
    return (seconds / Decimal(3600)).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def clock_in(*, user_id: int, machine_counter_start=None) -> TimeEntry:
    """
    Raises:
        AlreadyClockedInError: user already has an open entry
        AnotherStaffActiveError: user is staff and another staff user is on shift
    """
    counter = _parse_counter(machine_counter_start, "machine_counter_start")

    def _op() -> TimeEntry:
        serialize_writes()
        user = db.session.get(User, user_id)
        if not user or not user.is_active:
            raise NotFoundError("User not found")

        if user.role == ROLE_STAFF:
            # Serialize staff clock-ins on row-locking databases
            lock_for_update(db.session.query(User.id).filter(User.role == ROLE_STAFF)).all()

        if _get_open_entry(user_id):
            raise AlreadyClockedInError("Already clocked in")

        if user.role == ROLE_STAFF:
            blocking = _open_staff_entry(user_id)
            if blocking:
                raise AnotherStaffActiveError(blocking.user, blocking.user_name)

        now = utcnow()
        entry = TimeEntry(
            user_id=user.id,
            user_name=user.name,
            user_role=user.role,
            clock_in_at=now,
            business_date=business_date_of(now),
            status=ENTRY_OPEN,
            machine_counter_start=counter,
        )
        db.session.add(entry)
        db.session.flush()
        db.session.commit()
        return entry

    try:
        return run_with_retry(_op)
    except IntegrityError:
        # Lost the race on uq_time_entries_user_open
        raise AlreadyClockedInError("Already clocked in")


def _close(entry: TimeEntry, *, machine_counter_end: int | None, shift_notes: str | None,
           closed_by_user_id: int | None) -> None:
    now = utcnow()
    entry.clock_out_at = now
    entry.status = ENTRY_CLOSED
    entry.hours_worked = hours_between(entry.clock_in_at, now)
    if machine_counter_end is not None:
        entry.machine_counter_end = machine_counter_end
    if shift_notes is not None:
        entry.shift_notes = shift_notes.strip() or None
    entry.closed_by_user_id = closed_by_user_id


def clock_out(*, user_id: int, machine_counter_end=None, shift_notes: str | None = None) -> TimeEntry:
    counter = _parse_counter(machine_counter_end, "machine_counter_end")

    def _op() -> TimeEntry:
        serialize_writes()
        entry = _get_open_entry(user_id, for_update=True)
        if not entry:
            raise NotClockedInError("Not clocked in")
        _close(entry, machine_counter_end=counter, shift_notes=shift_notes, closed_by_user_id=user_id)
        db.session.commit()
        return entry

    return run_with_retry(_op)


def force_clock_out(*, target_user_id: int, admin_user_id: int, machine_counter_end=None) -> TimeEntry:
    """Admin override: close another user's open shift."""
    counter = _parse_counter(machine_counter_end, "machine_counter_end")

    def _op() -> TimeEntry:
        serialize_writes()
        entry = _get_open_entry(target_user_id, for_update=True)
        if not entry:
            raise NotClockedInError("User is not clocked in")
        _close(entry, machine_counter_end=counter, shift_notes=None, closed_by_user_id=admin_user_id)
        db.session.commit()
        return entry

    return run_with_retry(_op)


def get_current_status(user_id: int) -> dict:
    entry = _get_open_entry(user_id)
    if not entry:
        return {"clocked_in": False, "entry": None}
    return {
        "clocked_in": True,
        "entry": entry.to_dict(),
        "elapsed_hours": float(hours_between(entry.clock_in_at, utcnow())),
    }


def list_entries(
    *,
    user_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    open_only: bool = False,
) -> list[TimeEntry]:
    query = db.session.query(TimeEntry)
    if user_id is not None:
        query = query.filter(TimeEntry.user_id == user_id)
    if start is not None:
        query = query.filter(TimeEntry.business_date >= start)
    if end is not None:
        query = query.filter(TimeEntry.business_date <= end)
    if open_only:
        query = query.filter(TimeEntry.status == ENTRY_OPEN)
    return query.order_by(TimeEntry.clock_in_at.desc(), TimeEntry.id.desc()).all()
