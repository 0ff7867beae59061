# Overview: Flask API routes for staff auth operations; parses input and returns JSON responses.

"""
Staff Authentication API routes

SECURITY FEATURES:
- bcrypt password verification
- Session management with token-based auth (only the token hash is stored)
- Idle and absolute session timeouts enforced on every request
- Lockout after repeated failed logins (login_throttle_service)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import login_throttle_service
from ..services import session_service
from ..decorators import require_auth, _bearer_token
from .errors import locked_response


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration is disabled for security.

    Staff accounts are created by administrators via:
    - POST /api/users
    - CLI: flask users create
    """
    return jsonify({
        "error": "Self-registration is disabled. Contact an administrator to create an account."
    }), 403


@auth_bp.post("/login")
def login_route():
    """
    Authenticate a staff user and create a session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        locked, seconds_remaining = login_throttle_service.is_locked(username)
        if locked:
            return locked_response(seconds_remaining)

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.info("Failed staff login for %r from %s", username, ip_address)
            failed = login_throttle_service.record_failed_attempt(
                username, ip_address=ip_address, user_agent=user_agent
            )
            if failed >= login_throttle_service.MAX_FAILED_ATTEMPTS:
                return locked_response(int(login_throttle_service.LOCKOUT_DURATION.total_seconds()))
            return jsonify({"error": "Invalid credentials"}), 401

        login_throttle_service.record_successful_login(username, ip_address=ip_address, user_agent=user_agent)
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(_bearer_token(), reason="Logout")
    return jsonify({"message": "Logged out"})


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()})
