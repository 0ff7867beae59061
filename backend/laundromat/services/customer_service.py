# Overview: Customer records, self-service login/registration, profile and feedback.

"""
Customer Service

WHY: Customers are identified by phone at the counter and in the web
portal. Matching uses the canonical phone (trailing 10 digits) so any
formatting the customer types still finds their record. Email is an
alternate login key.

SELF-SERVICE LOGIN:
- Phone (or email) not on file: a new customer is registered; name and
  password are required.
- On file with a password: the password must match.
- On file without a password (created at the counter): the first login
  sets it.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Feedback, Order, SessionToken
from ..models.customers import VALID_NOTIFICATION_PREFERENCES
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    NotFoundError,
    canonical_phone,
    validate_payload,
)
from . import notification_service
from . import reset_code_service
from .auth_service import hash_password, verify_password, validate_customer_password
from .order_service import customer_owns
from .session_service import revoke_all_customer_sessions
from laundromat.time_utils import utcnow


class CustomerAuthError(Exception):
    """Customer login failed (401)."""
    pass


STAFF_CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "phone",
        "email",
        "address",
        "discount_percent",
        "subscription_plan",
        "notification_preference",
        "sms_consent",
    },
    required_on_create={"name"},
)

# What a customer may change about themselves from the portal
SELF_SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "email",
        "address",
        "notification_preference",
        "sms_consent",
    },
)

MAX_FEEDBACK_LENGTH = 4000


# =============================================================================
# LOOKUP
# =============================================================================

def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def find_by_phone(phone: str | None) -> Customer | None:
    canonical = canonical_phone(phone)
    if not canonical:
        return None
    return (
        db.session.query(Customer)
        .filter(Customer.phone_canonical == canonical)
        .order_by(Customer.id.asc())
        .first()
    )


def find_by_email(email: str | None) -> Customer | None:
    email = (email or "").strip().lower()
    if not email:
        return None
    return (
        db.session.query(Customer)
        .filter(func.lower(Customer.email) == email)
        .order_by(Customer.id.asc())
        .first()
    )


def find_by_identity(identity: str | None) -> Customer | None:
    raw = (identity or "").strip()
    return find_by_email(raw) if "@" in raw else find_by_phone(raw)


def login_identity(phone: str | None, email: str | None) -> str | None:
    """
    One lockout key per customer: the canonical phone, also when the
    customer logs in by email. Falls back to the lower-cased email.
    """
    phone_key = canonical_phone(phone)
    if phone_key:
        return phone_key
    email = (email or "").strip().lower()
    if not email:
        return None
    customer = find_by_email(email)
    if customer is not None and customer.phone_canonical:
        return customer.phone_canonical
    return email


def list_customers(search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        term = search.strip()
        digits = canonical_phone(term)
        clauses = [Customer.name.ilike(f"%{term}%"), Customer.email.ilike(f"%{term}%")]
        if digits:
            clauses.append(Customer.phone_canonical.like(f"%{digits}%"))
        query = query.filter(db.or_(*clauses))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


# =============================================================================
# VALIDATION
# =============================================================================

def _check_fields(patch: dict, *, exclude_id: int | None = None) -> dict:
    if "name" in patch and not patch["name"]:
        raise ValidationError("name cannot be blank")

    if "phone" in patch:
        phone = patch["phone"] or None
        patch["phone"] = phone
        patch["phone_canonical"] = canonical_phone(phone)
        if phone and not patch["phone_canonical"]:
            raise ValidationError("phone must contain digits")

    if "email" in patch:
        email = (patch["email"] or "").strip() or None
        if email and "@" not in email:
            raise ValidationError("email is invalid")
        if email:
            clash = find_by_email(email)
            if clash and clash.id != exclude_id:
                raise ConflictError("Email is already registered to another customer")
        patch["email"] = email

    if "discount_percent" in patch:
        pct = patch["discount_percent"] if patch["discount_percent"] is not None else Decimal("0")
        if pct < 0 or pct > 100:
            raise ValidationError("discount_percent must be between 0 and 100")
        patch["discount_percent"] = pct

    if "notification_preference" in patch:
        if patch["notification_preference"] not in VALID_NOTIFICATION_PREFERENCES:
            raise ValidationError(
                f"notification_preference must be one of {', '.join(VALID_NOTIFICATION_PREFERENCES)}"
            )

    return patch


# =============================================================================
# STAFF CRUD
# =============================================================================

def create_customer(payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=STAFF_CUSTOMER_POLICY, partial=False)
    patch = _check_fields(patch)
    customer = Customer(**patch)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: int, payload: dict) -> Customer:
    """COALESCE-style update: only keys present in payload change."""
    customer = get_customer(customer_id)
    patch = validate_payload(model=Customer, payload=payload, policy=STAFF_CUSTOMER_POLICY, partial=True)
    patch = _check_fields(patch, exclude_id=customer.id)
    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()
    return customer


def delete_customer(customer_id: int) -> None:
    """
    Admin delete. Orders and feedback are detached (customer_id -> NULL),
    never deleted; the orders keep their snapshot name/phone.
    """
    customer = get_customer(customer_id)
    db.session.query(Order).filter(Order.customer_id == customer.id).update(
        {Order.customer_id: None}, synchronize_session=False
    )
    db.session.query(Feedback).filter(Feedback.customer_id == customer.id).update(
        {Feedback.customer_id: None}, synchronize_session=False
    )
    db.session.query(SessionToken).filter(SessionToken.customer_id == customer.id).delete(
        synchronize_session=False
    )
    db.session.delete(customer)
    db.session.commit()


# =============================================================================
# SELF-SERVICE
# =============================================================================

def login_or_register(
    *,
    phone: str | None = None,
    email: str | None = None,
    password: str | None = None,
    name: str | None = None,
    address: str | None = None,
    sms_consent: bool = False,
) -> tuple[Customer, bool]:
    """
    Returns (customer, is_new).

    Raises:
        ValidationError: missing phone/email, name or password
        CustomerAuthError: wrong password, or email not on file
    """
    if not canonical_phone(phone) and not (email or "").strip():
        raise ValidationError("Phone number required")

    customer = find_by_phone(phone) if canonical_phone(phone) else find_by_email(email)

    if customer is None:
        if not canonical_phone(phone):
            raise CustomerAuthError("No account found for that email")
        if not (name or "").strip():
            raise ValidationError("Name required for new customers. Please use the Register page.")
        if not password:
            raise ValidationError("Password required")
        validate_customer_password(password)

        patch = _check_fields({"name": name.strip(), "phone": phone.strip(), "email": email})
        customer = Customer(
            **patch,
            address=(address or "").strip() or None,
            sms_consent=bool(sms_consent),
            password_hash=hash_password(password),
        )
        db.session.add(customer)
        db.session.commit()
        return customer, True

    if not password:
        raise ValidationError("Password required")

    if customer.password_hash:
        if not verify_password(password, customer.password_hash):
            raise CustomerAuthError("Invalid password")
    else:
        validate_customer_password(password)
        customer.password_hash = hash_password(password)
        db.session.commit()

    return customer, False


def update_profile(customer: Customer, payload: dict) -> Customer:
    """
    Portal profile edit. A password change needs current_password (unless
    the account has none yet) and new_password.
    """
    payload = dict(payload or {})
    current_password = payload.pop("current_password", None)
    new_password = payload.pop("new_password", None)

    patch = validate_payload(model=Customer, payload=payload, policy=SELF_SERVICE_POLICY, partial=True)
    patch = _check_fields(patch, exclude_id=customer.id)

    if new_password:
        if customer.password_hash and not verify_password(current_password or "", customer.password_hash):
            raise CustomerAuthError("Current password is incorrect")
        validate_customer_password(new_password)
        customer.password_hash = hash_password(new_password)

    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()
    return customer


def submit_feedback(customer: Customer, *, message: str, rating=None, order_id: int | None = None) -> Feedback:
    message = (message or "").strip()
    if not message:
        raise ValidationError("message is required")
    if len(message) > MAX_FEEDBACK_LENGTH:
        raise ValidationError(f"message exceeds max length {MAX_FEEDBACK_LENGTH}")

    if rating is not None:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("rating must be a whole number from 1 to 5")

    if order_id is not None:
        order = db.session.get(Order, order_id)
        if not order or not customer_owns(order, customer):
            raise NotFoundError("Order not found")

    feedback = Feedback(
        customer_id=customer.id,
        order_id=order_id,
        rating=rating,
        message=message,
        created_at=utcnow(),
    )
    db.session.add(feedback)
    db.session.commit()
    return feedback


def list_feedback(limit: int = 100) -> list[Feedback]:
    return (
        db.session.query(Feedback)
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        .limit(limit)
        .all()
    )


# =============================================================================
# PASSWORD RESET
# =============================================================================

def request_password_reset(identity: str) -> bool:
    """
    Issue a reset code and send it to the customer. Returns False when no
    customer matches; callers should not reveal which.
    """
    customer = find_by_identity(identity)
    if not customer:
        return False
    code = reset_code_service.issue_reset_code(identity)
    ttl = int(current_app.config.get("RESET_CODE_TTL_MINUTES", 15))
    notification_service.send_reset_code(customer, code, ttl)
    return True


def reset_password(identity: str, code: str, new_password: str) -> str:
    """
    Returns the consume result ("ok" | "expired" | "mismatch"). On "ok" the
    password is replaced and every existing session is revoked.
    """
    validate_customer_password(new_password)
    customer = find_by_identity(identity)
    if not customer:
        return reset_code_service.RESULT_MISMATCH

    result = reset_code_service.consume_reset_code(identity, code)
    if result != reset_code_service.RESULT_OK:
        return result

    customer.password_hash = hash_password(new_password)
    db.session.commit()
    revoke_all_customer_sessions(customer.id, "Password reset")
    return result
