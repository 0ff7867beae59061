# Overview: Maps service exceptions onto JSON error responses shared by all blueprints.

from flask import jsonify, current_app

from ..extensions import db
from ..validation import ValidationError, ConflictError, ForbiddenError, NotFoundError
from ..services.concurrency import is_storage_timeout
from ..services.customer_service import CustomerAuthError
from ..services.order_state import InvalidTransitionError
from ..services.payment_gateway import PaymentGatewayError, PaymentGatewayTimeout
from ..services.timekeeping_service import TimekeepingError, AnotherStaffActiveError


# Exceptions a route reports to the caller as-is
DOMAIN_ERRORS = (
    ValidationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    InvalidTransitionError,
    TimekeepingError,
    CustomerAuthError,
    PaymentGatewayError,
)


def error_response(e: Exception):
    if isinstance(e, NotFoundError):
        return jsonify({"error": str(e) or "Not found"}), 404
    if isinstance(e, ForbiddenError):
        return jsonify({"error": str(e) or "Forbidden"}), 403
    if isinstance(e, CustomerAuthError):
        return jsonify({"error": str(e)}), 401
    if isinstance(e, AnotherStaffActiveError):
        return jsonify({
            "error": str(e),
            "blocking_user": {
                "id": e.blocking_user.id if e.blocking_user else None,
                "name": e.blocking_name,
            },
        }), 409
    if isinstance(e, (ConflictError, InvalidTransitionError, TimekeepingError)):
        return jsonify({"error": str(e)}), 409
    if isinstance(e, PaymentGatewayTimeout):
        return jsonify({"error": str(e)}), 504
    if isinstance(e, PaymentGatewayError):
        return jsonify({"error": str(e)}), 502
    return jsonify({"error": str(e)}), 400


def server_error(action: str, exc: Exception):
    """
    Log an unexpected failure and roll back. Call from inside an except block.

    Storage timeouts become 503 so clients know a retry may succeed.
    """
    current_app.logger.exception("Failed to %s", action)
    db.session.rollback()
    if is_storage_timeout(exc):
        return jsonify({"error": "Storage timeout, please retry"}), 503
    return jsonify({"error": "Internal server error"}), 500


def locked_response(seconds_remaining: int | None):
    """429 for a login identifier locked out by repeated failures."""
    minutes = (seconds_remaining // 60) + 1 if seconds_remaining else 15
    return jsonify({
        "error": "Too many failed login attempts, try again later",
        "locked": True,
        "retry_after_seconds": seconds_remaining,
        "retry_after_minutes": minutes,
    }), 429
