# Overview: Flask API routes for staff account administration (admin only).

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..extensions import db
from ..models import User
from ..models.auth import ROLE_ADMIN
from ..services import auth_service
from .errors import DOMAIN_ERRORS, error_response, server_error


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    query = db.session.query(User)
    if request.args.get("include_inactive") != "true":
        query = query.filter(User.is_active.is_(True))
    users = query.order_by(User.name, User.id).all()
    return jsonify({"users": [u.to_dict() for u in users]})


@users_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """
    Request body:
    - username: str (required)
    - name: str (required)
    - password: str (required)
    - role: admin | staff | driver (default staff)
    """
    data = request.get_json(silent=True) or {}

    try:
        user = auth_service.create_user(
            data.get("username"),
            data.get("name"),
            data.get("password"),
            data.get("role") or "staff",
        )
        return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("create user", e)


@users_bp.put("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}

    if user_id == g.current_user.id and (
        data.get("is_active") is False or data.get("role", ROLE_ADMIN) != ROLE_ADMIN
    ):
        return jsonify({"error": "You cannot deactivate or demote your own account"}), 400

    try:
        user = auth_service.update_user(
            user_id,
            username=data.get("username"),
            name=data.get("name"),
            role=data.get("role"),
            password=data.get("password"),
            is_active=data.get("is_active"),
        )
        return jsonify({"user": user.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("update user", e)
