from __future__ import annotations

from ..extensions import db
from laundromat.time_utils import to_utc_z


ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"
ROLE_DRIVER = "driver"
VALID_ROLES = (ROLE_ADMIN, ROLE_STAFF, ROLE_DRIVER)


class User(db.Model):
    """
    Staff accounts (in-store staff, admin, delivery driver).

    WHY: Every order stage, drawer count and shift is attributed to a user.
    The display name is what gets stamped onto orders, so renaming a user
    does not rewrite history.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)

    # admin | staff | driver
    role = db.Column(db.String(16), nullable=False, default=ROLE_STAFF)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Opaque bearer tokens for staff and customers.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute and idle timeouts (see session_service)
    - Revocable on logout
    - A token carries exactly one subject: a staff user or a customer
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        db.Index("ix_session_tokens_customer_active", "customer_id", "is_revoked"),
        db.CheckConstraint(
            "(user_id IS NULL) <> (customer_id IS NULL)",
            name="ck_session_tokens_one_subject",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"), nullable=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True, passive_deletes=True))
    customer = db.relationship("Customer", backref=db.backref("sessions", lazy=True, passive_deletes=True))

    @property
    def subject_type(self) -> str:
        return "user" if self.user_id is not None else "customer"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subject_type": self.subject_type,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }


class ResetCode(db.Model):
    """
    One-time password reset codes, keyed by the identity they were issued to.

    This table is the expiring key-value store behind issue/consume: rows are
    only valid until expires_at, are single-use (consumed_at), and are purged
    by `flask maintenance purge-expired`. Codes are stored hashed.
    """
    __tablename__ = "reset_codes"
    __table_args__ = (
        db.Index("ix_reset_codes_identity_active", "identity", "consumed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Canonical phone or lower-cased email
    identity = db.Column(db.String(255), nullable=False)
    code_hash = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    consumed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # Wrong guesses against this code; the code is burned at MAX_CODE_ATTEMPTS
    failed_attempts = db.Column(db.Integer, nullable=False, default=0)


class LoginAttempt(db.Model):
    """
    Staff and customer login outcomes, used to lock out brute-force guessing.

    identifier is the staff username, or "customer:<canonical phone or email>".
    """
    __tablename__ = "login_attempts"
    __table_args__ = (
        db.Index("ix_login_attempts_identifier_time", "identifier", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    identifier = db.Column(db.String(255), nullable=False)
    succeeded = db.Column(db.Boolean, nullable=False, default=False)
    reason = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
