# Overview: Flask API routes for the service catalog (price list).

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import catalog_service
from .errors import DOMAIN_ERRORS, error_response, server_error


services_bp = Blueprint("services", __name__, url_prefix="/api/services")


@services_bp.get("")
def list_services_route():
    """Public price list. ?all=true includes inactive services."""
    services = catalog_service.list_services(active_only=request.args.get("all") != "true")
    return jsonify({"services": [s.to_dict() for s in services]})


@services_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_service_route():
    data = request.get_json(silent=True) or {}

    try:
        service = catalog_service.create_service(
            name=data.get("name"),
            unit_price=data.get("price", data.get("unit_price")),
            unit=data.get("unit") or "item",
            category=data.get("category"),
            description=data.get("description"),
            sort_order=data.get("sort_order", 99),
        )
        return jsonify({"service": service.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("create service", e)


@services_bp.put("/<int:service_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_service_route(service_id: int):
    """Body: {"price"?: 12.50, "active"?: false}"""
    data = request.get_json(silent=True) or {}

    try:
        service = catalog_service.update_service(
            service_id,
            unit_price=data.get("price", data.get("unit_price")),
            is_active=data.get("active", data.get("is_active")),
        )
        return jsonify({"service": service.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("update service", e)
