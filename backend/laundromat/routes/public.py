# Overview: Flask API routes for the customer self-service portal.

"""
Customer Portal Routes

SECURITY:
- Customer tokens are separate from staff tokens (require_customer rejects staff sessions).
- Customers only ever see orders matched to them by id or canonical phone.
- Order edits are limited to customer-editable fields while the order is still received.
- Password reset never reveals whether an account exists.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_customer, _bearer_token
from ..models.orders import ORDER_TYPE_PICKUP_DELIVERY
from ..services import customer_service, login_throttle_service, order_service, session_service
from ..services.customer_service import CustomerAuthError
from ..services.order_service import OrderUpdate
from ..services.reset_code_service import RESULT_OK, RESULT_EXPIRED
from .errors import DOMAIN_ERRORS, error_response, locked_response, server_error


public_bp = Blueprint("public", __name__, url_prefix="/api/public")


# =============================================================================
# ACCOUNT
# =============================================================================

@public_bp.post("/customer-login")
def customer_login_route():
    """
    Phone-based login; a new phone number registers a new customer.

    Body: {"phone", "password", "name"? (new customers), "email"?, "address"?, "sms_consent"?}
    Email alone logs in an existing customer. Repeated wrong passwords lock
    the phone or email out for a while (429).
    """
    data = request.get_json(silent=True) or {}
    user_agent = request.headers.get("User-Agent")
    identity = customer_service.login_identity(data.get("phone"), data.get("email"))
    throttle_key = login_throttle_service.customer_identifier(identity) if identity else None

    try:
        if throttle_key:
            locked, seconds_remaining = login_throttle_service.is_locked(throttle_key)
            if locked:
                return locked_response(seconds_remaining)

        try:
            customer, is_new = customer_service.login_or_register(
                phone=data.get("phone"),
                email=data.get("email"),
                password=data.get("password"),
                name=data.get("name"),
                address=data.get("address"),
                sms_consent=bool(data.get("sms_consent")),
            )
        except CustomerAuthError as e:
            if throttle_key:
                failed = login_throttle_service.record_failed_attempt(
                    throttle_key, ip_address=request.remote_addr, user_agent=user_agent, reason=str(e)
                )
                if failed >= login_throttle_service.MAX_FAILED_ATTEMPTS:
                    return locked_response(int(login_throttle_service.LOCKOUT_DURATION.total_seconds()))
            return error_response(e)

        if throttle_key:
            login_throttle_service.record_successful_login(
                throttle_key, ip_address=request.remote_addr, user_agent=user_agent
            )
        _, token = session_service.create_customer_session(
            customer.id,
            user_agent=user_agent,
            ip_address=request.remote_addr,
        )
        return jsonify({
            "customer": customer.to_dict(),
            "token": token,
            "is_new": is_new,
        }), 201 if is_new else 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("log in customer", e)


@public_bp.post("/logout")
@require_customer
def customer_logout_route():
    session_service.revoke_session(_bearer_token(), reason="Logout")
    return jsonify({"message": "Logged out"})


@public_bp.get("/customer-info")
@require_customer
def customer_info_route():
    return jsonify({"customer": g.current_customer.to_dict()})


@public_bp.put("/profile")
@require_customer
def update_profile_route():
    data = request.get_json(silent=True) or {}

    try:
        customer = customer_service.update_profile(g.current_customer, data)
        return jsonify({"customer": customer.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("update customer profile", e)


# =============================================================================
# ORDERS
# =============================================================================

@public_bp.get("/my-orders")
@require_customer
def my_orders_route():
    orders = order_service.list_customer_orders(g.current_customer)
    return jsonify({"orders": [o.to_dict() for o in orders]})


@public_bp.post("/orders")
@require_customer
def create_customer_order_route():
    """
    Body: {"items": [{"service_id", "quantity"}], "notes"?, "customer_address"?,
           "payment_method"?, "order_type"? (default pickup_delivery)}

    Prices always come from the catalog.
    """
    data = request.get_json(silent=True) or {}
    customer = g.current_customer

    try:
        order = order_service.create_order(
            items=data.get("items") or [],
            actor_name=f"{customer.name} (online)",
            customer_id=customer.id,
            customer_address=data.get("customer_address") or customer.address,
            order_type=data.get("order_type") or ORDER_TYPE_PICKUP_DELIVERY,
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
            catalog_prices_only=True,
        )
        return jsonify({"order": order.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("create customer order", e)


@public_bp.get("/orders/<int:order_id>")
@require_customer
def get_customer_order_route(order_id: int):
    try:
        order = order_service.get_customer_order(order_id, g.current_customer)
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)


@public_bp.put("/orders/<int:order_id>")
@require_customer
def update_customer_order_route(order_id: int):
    data = request.get_json(silent=True) or {}

    try:
        changes = OrderUpdate.from_payload(data)
        order = order_service.update_customer_order(order_id, g.current_customer, changes)
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("update customer order", e)


@public_bp.post("/orders/<int:order_id>/cancel")
@require_customer
def cancel_customer_order_route(order_id: int):
    try:
        order = order_service.cancel_customer_order(order_id, g.current_customer)
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("cancel customer order", e)


@public_bp.post("/feedback")
@require_customer
def submit_feedback_route():
    """Body: {"message", "rating"? (1-5), "order_id"?}"""
    data = request.get_json(silent=True) or {}

    try:
        feedback = customer_service.submit_feedback(
            g.current_customer,
            message=data.get("message"),
            rating=data.get("rating"),
            order_id=data.get("order_id"),
        )
        return jsonify({"feedback": feedback.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("submit feedback", e)


# =============================================================================
# PASSWORD RESET
# =============================================================================

@public_bp.post("/password-reset/request")
def password_reset_request_route():
    """Body: {"identity": "<phone or email>"}. Always 200 for a well-formed identity."""
    data = request.get_json(silent=True) or {}

    try:
        customer_service.request_password_reset(data.get("identity"))
        return jsonify({"message": "If an account exists, a reset code has been sent"})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("request password reset", e)


@public_bp.post("/password-reset/confirm")
def password_reset_confirm_route():
    """Body: {"identity", "code", "new_password"}"""
    data = request.get_json(silent=True) or {}
    if not all([data.get("identity"), data.get("code"), data.get("new_password")]):
        return jsonify({"error": "identity, code and new_password required"}), 400

    try:
        result = customer_service.reset_password(
            data["identity"], str(data["code"]), data["new_password"]
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("reset password", e)

    if result == RESULT_OK:
        return jsonify({"message": "Password updated"})
    if result == RESULT_EXPIRED:
        return jsonify({"error": "Reset code expired", "result": result}), 400
    return jsonify({"error": "Invalid reset code", "result": result}), 400
