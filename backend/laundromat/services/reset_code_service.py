# Overview: One-time password reset codes with expiry, backed by the reset_codes table.

"""
Reset Code Service

    issue_reset_code(identity)        -> code
    consume_reset_code(identity, code) -> "ok" | "expired" | "mismatch"

Codes are 6 digits, single use, valid for RESET_CODE_TTL_MINUTES, and
stored as an HMAC keyed with SECRET_KEY. Issuing a new code retires any
earlier unused code for the same identity. MAX_CODE_ATTEMPTS wrong
guesses burn the code; the customer must request a new one.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import ResetCode
from ..validation import ValidationError, canonical_phone
from .concurrency import serialize_writes
from laundromat.time_utils import utcnow


RESULT_OK = "ok"
RESULT_EXPIRED = "expired"
RESULT_MISMATCH = "mismatch"

# Wrong guesses allowed before a code is burned
MAX_CODE_ATTEMPTS = 5


def normalize_identity(identity: str | None) -> str:
    """Lower-cased email, or canonical phone."""
    raw = (identity or "").strip()
    if "@" in raw:
        return raw.lower()
    phone = canonical_phone(raw)
    if not phone:
        raise ValidationError("Phone number or email is required")
    return phone


def _hash_code(identity: str, code: str) -> str:
    key = current_app.config["SECRET_KEY"].encode("utf-8")
    return hmac.new(key, f"{identity}:{code}".encode("utf-8"), hashlib.sha256).hexdigest()


def issue_reset_code(identity: str) -> str:
    identity = normalize_identity(identity)
    now = utcnow()
    ttl = int(current_app.config.get("RESET_CODE_TTL_MINUTES", 15))
    code = f"{secrets.randbelow(10 ** 6):06d}"

    serialize_writes()
    db.session.query(ResetCode).filter(
        ResetCode.identity == identity,
        ResetCode.consumed_at.is_(None),
    ).update({ResetCode.consumed_at: now}, synchronize_session=False)

    db.session.add(ResetCode(
        identity=identity,
        code_hash=_hash_code(identity, code),
        created_at=now,
        expires_at=now + timedelta(minutes=ttl),
    ))
    db.session.commit()
    return code


def consume_reset_code(identity: str, code: str) -> str:
    identity = normalize_identity(identity)
    code = (code or "").strip()

    serialize_writes()
    row = (
        db.session.query(ResetCode)
        .filter(ResetCode.identity == identity, ResetCode.consumed_at.is_(None))
        .order_by(ResetCode.created_at.desc(), ResetCode.id.desc())
        .first()
    )
    if not row or not code:
        db.session.rollback()
        return RESULT_MISMATCH

    now = utcnow()
    if row.expires_at <= now:
        db.session.rollback()
        return RESULT_EXPIRED

    if not hmac.compare_digest(row.code_hash, _hash_code(identity, code)):
        row.failed_attempts = (row.failed_attempts or 0) + 1
        if row.failed_attempts >= MAX_CODE_ATTEMPTS:
            row.consumed_at = now
        db.session.commit()
        return RESULT_MISMATCH

    row.consumed_at = now
    db.session.commit()
    return RESULT_OK


def purge_expired() -> int:
    """Delete codes that expired or were used. Returns rows deleted."""
    deleted = db.session.query(ResetCode).filter(
        db.or_(ResetCode.expires_at < utcnow(), ResetCode.consumed_at.isnot(None))
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
