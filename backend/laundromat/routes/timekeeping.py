# Overview: Flask API routes for timekeeping operations; parses input and returns JSON responses.

"""
Timekeeping Routes

SECURITY:
- Any staff session can clock itself in/out and read its own status.
- Force clock-out and listing everyone's entries are admin-only.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import timekeeping_service
from laundromat.time_utils import parse_iso_date
from .errors import DOMAIN_ERRORS, error_response, server_error


timekeeping_bp = Blueprint("timekeeping", __name__, url_prefix="/api/time-entries")


@timekeeping_bp.get("/status")
@require_auth
def status_route():
    return jsonify(timekeeping_service.get_current_status(g.current_user.id))


@timekeeping_bp.post("/clock-in")
@require_auth
def clock_in_route():
    data = request.get_json(silent=True) or {}

    try:
        entry = timekeeping_service.clock_in(
            user_id=g.current_user.id,
            machine_counter_start=data.get("machine_counter_start"),
        )
        return jsonify({"entry": entry.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("clock in", e)


@timekeeping_bp.post("/clock-out")
@require_auth
def clock_out_route():
    data = request.get_json(silent=True) or {}

    try:
        entry = timekeeping_service.clock_out(
            user_id=g.current_user.id,
            machine_counter_end=data.get("machine_counter_end"),
            shift_notes=data.get("shift_notes"),
        )
        return jsonify({"entry": entry.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("clock out", e)


@timekeeping_bp.post("/force-clock-out")
@require_auth
@require_role(ROLE_ADMIN)
def force_clock_out_route():
    data = request.get_json(silent=True) or {}
    target_user_id = data.get("user_id")
    if not isinstance(target_user_id, int) or isinstance(target_user_id, bool):
        return jsonify({"error": "user_id is required"}), 400

    try:
        entry = timekeeping_service.force_clock_out(
            target_user_id=target_user_id,
            admin_user_id=g.current_user.id,
            machine_counter_end=data.get("machine_counter_end"),
        )
        return jsonify({"entry": entry.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("force clock out", e)


@timekeeping_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_entries_route():
    try:
        start = parse_iso_date(request.args.get("start"))
        end = parse_iso_date(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start/end must be YYYY-MM-DD"}), 400

    entries = timekeeping_service.list_entries(
        user_id=request.args.get("user_id", type=int),
        start=start,
        end=end,
        open_only=request.args.get("open") == "true",
    )
    return jsonify({"entries": [e.to_dict() for e in entries]})
