# Overview: Flask API routes for staff-side customer records and feedback.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import customer_service, order_service
from .errors import DOMAIN_ERRORS, error_response, server_error


customers_bp = Blueprint("customers", __name__, url_prefix="/api")


@customers_bp.get("/customers")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_customers_route():
    """?search= matches name, email or phone digits."""
    customers = customer_service.list_customers(request.args.get("search"))
    return jsonify({"customers": [c.to_dict() for c in customers]})


@customers_bp.get("/customers/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
        orders = order_service.list_orders(customer_id=customer_id)
        return jsonify({
            "customer": customer.to_dict(),
            "orders": [o.to_dict() for o in orders],
        })
    except DOMAIN_ERRORS as e:
        return error_response(e)


@customers_bp.post("/customers")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_customer_route():
    data = request.get_json(silent=True) or {}

    try:
        customer = customer_service.create_customer(data)
        return jsonify({"customer": customer.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("create customer", e)


@customers_bp.put("/customers/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_customer_route(customer_id: int):
    data = request.get_json(silent=True) or {}

    try:
        customer = customer_service.update_customer(customer_id, data)
        return jsonify({"customer": customer.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("update customer", e)


@customers_bp.delete("/customers/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id)
        return jsonify({"success": True})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("delete customer", e)


@customers_bp.get("/feedback")
@require_auth
@require_role(ROLE_ADMIN)
def list_feedback_route():
    limit = request.args.get("limit", default=100, type=int)
    feedback = customer_service.list_feedback(limit=max(1, min(limit, 500)))
    return jsonify({"feedback": [f.to_dict() for f in feedback]})
