# Overview: Flask API routes for staff order operations; parses input and returns JSON responses.

"""
Order Routes (staff POS)

SECURITY:
- Reading orders requires any staff session.
- Creating, editing, status changes and payments require admin or staff.
- Deleting orders is admin-only.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import order_service
from ..services.order_service import OrderUpdate
from ..services.payment_gateway import CardDetails
from laundromat.time_utils import parse_iso_date
from .errors import DOMAIN_ERRORS, error_response, server_error


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

_CREATE_FIELDS = (
    "customer_id",
    "customer_name",
    "customer_phone",
    "customer_email",
    "customer_address",
    "order_type",
    "payment_method",
    "weight",
    "adjustment",
    "discount_percent",
    "notes",
)


@orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        business_date = parse_iso_date(request.args.get("date"))
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    try:
        orders = order_service.list_orders(
            status=request.args.get("status") or None,
            business_date=business_date,
            customer_id=request.args.get("customer_id", type=int),
        )
        return jsonify({"orders": [o.to_dict() for o in orders]})
    except DOMAIN_ERRORS as e:
        return error_response(e)


@orders_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_order_route():
    data = request.get_json(silent=True) or {}
    kwargs = {key: data[key] for key in _CREATE_FIELDS if key in data}

    try:
        order = order_service.create_order(
            items=data.get("items") or [],
            actor_name=g.current_user.name,
            created_by_user_id=g.current_user.id,
            **kwargs,
        )
        return jsonify({"order": order.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("create order", e)


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)


@orders_bp.route("/<int:order_id>", methods=["PUT", "PATCH"])
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_order_route(order_id: int):
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({"error": "No fields to update"}), 400

    try:
        order = order_service.update_order(order_id, OrderUpdate.from_payload(data))
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("update order", e)


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def set_status_route(order_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return jsonify({"error": "status is required"}), 400

    try:
        order = order_service.set_status(order_id, status, g.current_user.name)
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("update order status", e)


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def cancel_order_route(order_id: int):
    try:
        order = order_service.cancel_order(order_id, g.current_user.name)
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("cancel order", e)


@orders_bp.put("/<int:order_id>/payment")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def set_payment_route(order_id: int):
    data = request.get_json(silent=True) or {}
    payment_status = data.get("payment_status")
    if not payment_status:
        return jsonify({"error": "payment_status is required"}), 400

    try:
        order = order_service.set_payment(order_id, payment_status, data.get("payment_method"))
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("update payment", e)


@orders_bp.post("/<int:order_id>/charge")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def charge_card_route(order_id: int):
    """
    Charge a card for the order.

    Body: {"card": {"number", "expiry", "cvv"}, "amount"?}
    Declines return 402 with the gateway's reason and leave the order unchanged.
    """
    data = request.get_json(silent=True) or {}

    try:
        card = CardDetails.parse(data.get("card") or data)
        order, result = order_service.charge_card(order_id, card, data.get("amount"))
        if not result.approved:
            return jsonify({
                "error": "Card declined",
                "reason": result.decline_reason,
                "charge": result.to_dict(),
                "order": order.to_dict(),
            }), 402
        return jsonify({"order": order.to_dict(), "charge": result.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("charge card", e)


@orders_bp.post("/<int:order_id>/deliver")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def deliver_route(order_id: int):
    data = request.get_json(silent=True) or {}

    try:
        order = order_service.deliver(order_id, data.get("photo"), g.current_user.name)
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("deliver order", e)


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(order_id)
        return jsonify({"success": True})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("delete order", e)


@orders_bp.delete("")
@require_auth
@require_role(ROLE_ADMIN)
def delete_all_orders_route():
    if request.args.get("confirm") != "true":
        return jsonify({"error": "Pass confirm=true to delete every order"}), 400

    try:
        deleted = order_service.delete_all_orders()
        return jsonify({"success": True, "deleted": deleted})
    except Exception as e:
        return server_error("delete all orders", e)
