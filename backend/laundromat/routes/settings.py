# Overview: Flask API routes for business settings (tax rate, store info).

from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import settings_service
from .errors import DOMAIN_ERRORS, error_response, server_error


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
def get_settings_route():
    """Public: the storefront needs the tax rate and business hours."""
    return jsonify({"settings": settings_service.get_all_settings()})


@settings_bp.put("")
@require_auth
@require_role(ROLE_ADMIN)
def update_settings_route():
    """Body: {"tax_rate": "8.875", "business_name": "..."} (any subset of keys)"""
    data = request.get_json(silent=True) or {}

    try:
        settings = settings_service.update_settings(data, user_id=g.current_user.id)
        return jsonify({"settings": settings})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("update settings", e)
