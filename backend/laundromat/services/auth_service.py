# Overview: Service-layer operations for auth; password hashing and staff account management.

"""
Authentication Service

WHY: Every order stage, drawer count and shift is attributed to a staff
user. Passwords (staff and customer) are stored as salted bcrypt hashes,
never in clear text.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Staff passwords must meet strength rules; customer passwords only a minimum length
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import User
from ..models.auth import VALID_ROLES
from ..validation import ValidationError, ConflictError, NotFoundError
from laundromat.time_utils import utcnow


MIN_CUSTOMER_PASSWORD_LENGTH = 6


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate a staff password.

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def validate_customer_password(password: str) -> None:
    if not password or len(password) < MIN_CUSTOMER_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_CUSTOMER_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str) -> str:
    """Hash a password with bcrypt. Strength rules are the caller's job."""
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def _validate_role(role: str) -> str:
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of {', '.join(VALID_ROLES)}")
    return role


def create_user(username: str, name: str, password: str, role: str = "staff") -> User:
    """
    Create a staff account.

    Raises:
        ValidationError: missing fields, bad role, weak password
        ConflictError: username already taken (case-insensitive)
    """
    username = (username or "").strip()
    name = (name or "").strip()
    if not username or not name:
        raise ValidationError("username and name are required")
    _validate_role(role)
    validate_password_strength(password)

    existing = db.session.query(User).filter(func.lower(User.username) == username.lower()).first()
    if existing:
        raise ConflictError("Username already exists")

    user = User(
        username=username,
        name=name,
        role=role,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    db.session.commit()
    return user


def update_user(
    user_id: int,
    *,
    username: str | None = None,
    name: str | None = None,
    role: str | None = None,
    password: str | None = None,
    is_active: bool | None = None,
) -> User:
    """Partial update; None leaves a field unchanged."""
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    if username is not None:
        username = username.strip()
        if not username:
            raise ValidationError("username cannot be blank")
        clash = db.session.query(User).filter(
            func.lower(User.username) == username.lower(),
            User.id != user_id,
        ).first()
        if clash:
            raise ConflictError("Username already exists")
        user.username = username
    if name is not None:
        if not name.strip():
            raise ValidationError("name cannot be blank")
        user.name = name.strip()
    if role is not None:
        user.role = _validate_role(role)
    if password:
        validate_password_strength(password)
        user.password_hash = hash_password(password)
    if is_active is not None:
        user.is_active = bool(is_active)

    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate a staff user by username (case-insensitive) and password.

    Returns the User and stamps last_login_at, or None.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        func.lower(User.username) == username.strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
