# Overview: Flask API routes for the delivery driver; queue, pickup and delivery.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_DRIVER
from ..money import money_json
from ..services import order_service
from laundromat.time_utils import to_utc_z
from .errors import DOMAIN_ERRORS, error_response, server_error


driver_bp = Blueprint("driver", __name__, url_prefix="/api/driver")


def _queue_item(order) -> dict:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "customer_address": order.customer_address,
        "status": order.status,
        "order_type": order.order_type,
        "notes": order.notes,
        "total": money_json(order.total),
        "payment_status": order.payment_status,
        "pickup_at": to_utc_z(order.pickup_at),
    }


@driver_bp.get("/orders")
@require_auth
@require_role(ROLE_DRIVER, ROLE_ADMIN)
def driver_queue_route():
    orders = order_service.driver_queue()
    return jsonify({"orders": [_queue_item(o) for o in orders]})


@driver_bp.post("/orders/<int:order_id>/pickup")
@require_auth
@require_role(ROLE_DRIVER, ROLE_ADMIN)
def pickup_route(order_id: int):
    try:
        order = order_service.record_pickup(order_id, g.current_user.name)
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("record pickup", e)


@driver_bp.post("/orders/<int:order_id>/deliver")
@require_auth
@require_role(ROLE_DRIVER, ROLE_ADMIN)
def driver_deliver_route(order_id: int):
    """Body: {"photo": "<url or data reference>"}"""
    data = request.get_json(silent=True) or {}

    try:
        order = order_service.deliver(order_id, data.get("photo"), g.current_user.name)
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("deliver order", e)
