# Overview: Locks out staff and customer logins after repeated failures.

"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the identifier is temporarily locked.

- Tracks failed attempts per identifier in login_attempts
- Lockout after MAX_FAILED_ATTEMPTS failures within LOCKOUT_WINDOW
- Lockout lasts LOCKOUT_DURATION from the most recent failure
- A successful login restarts the count
"""

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import LoginAttempt
from laundromat.time_utils import utcnow


MAX_FAILED_ATTEMPTS = 10
LOCKOUT_WINDOW = timedelta(minutes=15)
LOCKOUT_DURATION = timedelta(minutes=15)

# Attempts older than this are no longer needed for any lockout decision
RETENTION = timedelta(days=1)


def customer_identifier(identity: str) -> str:
    """Key customer logins apart from staff usernames."""
    return f"customer:{identity}"


def _last_success_at(identifier: str):
    return (
        db.session.query(db.func.max(LoginAttempt.occurred_at))
        .filter(LoginAttempt.identifier == identifier, LoginAttempt.succeeded.is_(True))
        .scalar()
    )


def _recent_failures(identifier: str):
    cutoff = utcnow() - LOCKOUT_WINDOW
    last_success = _last_success_at(identifier)
    if last_success is not None and last_success > cutoff:
        cutoff = last_success

    return db.session.query(LoginAttempt).filter(
        LoginAttempt.identifier == identifier,
        LoginAttempt.succeeded.is_(False),
        LoginAttempt.occurred_at > cutoff,
    )


def get_recent_failed_attempts(identifier: str) -> int:
    return _recent_failures(identifier).count()


def is_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    failures = _recent_failures(identifier)
    if failures.count() < MAX_FAILED_ATTEMPTS:
        return False, None

    most_recent = failures.order_by(LoginAttempt.occurred_at.desc()).first()
    lockout_end = most_recent.occurred_at + LOCKOUT_DURATION
    now = utcnow()
    if now < lockout_end:
        return True, int((lockout_end - now).total_seconds())
    return False, None


def _record(identifier: str, *, succeeded: bool, reason: str | None,
            ip_address: str | None, user_agent: str | None) -> None:
    db.session.add(LoginAttempt(
        identifier=identifier,
        succeeded=succeeded,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        occurred_at=utcnow(),
    ))
    db.session.commit()


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials",
) -> int:
    """Record a failure. Returns the number of recent failures including this one."""
    _record(identifier, succeeded=False, reason=reason, ip_address=ip_address, user_agent=user_agent)
    return get_recent_failed_attempts(identifier)


def record_successful_login(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    _record(identifier, succeeded=True, reason=None, ip_address=ip_address, user_agent=user_agent)


def purge_old_attempts() -> int:
    deleted = db.session.query(LoginAttempt).filter(
        LoginAttempt.occurred_at < utcnow() - RETENTION
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
