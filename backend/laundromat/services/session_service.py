# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

One table serves both audiences: staff tokens carry user_id, customer
tokens carry customer_id. Staff routes refuse customer tokens and vice
versa (see decorators.py).

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout: 24h for staff, 30 days for customers
- Idle timeout for staff sessions
- Revocable on logout
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta
from ..extensions import db
from ..models import SessionToken, User, Customer
from laundromat.time_utils import utcnow


# Configuration constants
STAFF_SESSION_TIMEOUT = timedelta(hours=24)
STAFF_IDLE_TIMEOUT = timedelta(hours=2)
CUSTOMER_SESSION_TIMEOUT = timedelta(days=30)


@dataclass
class SessionContext:
    """Result of validate_session: exactly one of user/customer is set."""
    session: SessionToken
    user: User | None = None
    customer: Customer | None = None


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _create(*, user_id=None, customer_id=None, lifetime: timedelta,
            user_agent: str | None, ip_address: str | None) -> tuple[SessionToken, str]:
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        customer_id=customer_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + lifetime,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create a staff session. Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    return _create(user_id=user_id, lifetime=STAFF_SESSION_TIMEOUT,
                   user_agent=user_agent, ip_address=ip_address)


def create_customer_session(
    customer_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    return _create(customer_id=customer_id, lifetime=CUSTOMER_SESSION_TIMEOUT,
                   user_agent=user_agent, ip_address=ip_address)


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - Staff session idle for longer than STAFF_IDLE_TIMEOUT
    - Staff account is deactivated

    Updates last_used_at on successful validation (activity tracking).
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if session.user_id is not None:
        if now - session.last_used_at > STAFF_IDLE_TIMEOUT:
            _revoke(session, "Idle timeout")
            return None

        user = session.user
        if not user or not user.is_active:
            _revoke(session, "User account deactivated")
            return None

        session.last_used_at = now
        db.session.commit()
        return SessionContext(session=session, user=user)

    customer = session.customer
    if not customer:
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(session=session, customer=customer)


def revoke_session(token: str, reason: str = "Logout") -> bool:
    """Returns True if session was revoked, False if not found."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_customer_sessions(customer_id: int, reason: str) -> int:
    """Used after a password reset so old devices must log in again."""
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(
        customer_id=customer_id,
        is_revoked=False
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions() -> int:
    """Delete sessions that expired or were revoked more than 30 days ago."""
    cutoff = utcnow() - timedelta(days=30)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
