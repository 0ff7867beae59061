# Overview: Flask API routes for cash drawer counts and daily reconciliation.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import cash_drawer_service
from laundromat.time_utils import parse_iso_date
from .errors import DOMAIN_ERRORS, error_response, server_error


cash_drawer_bp = Blueprint("cash_drawer", __name__, url_prefix="/api/cash-drawer")


def _date_arg(value):
    try:
        return parse_iso_date(value), None
    except ValueError:
        return None, (jsonify({"error": "date must be YYYY-MM-DD"}), 400)


@cash_drawer_bp.get("/status")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def drawer_status_route():
    """Expected vs counted cash for ?date= (default: today's business date)."""
    business_date, err = _date_arg(request.args.get("date"))
    if err:
        return err

    status = cash_drawer_service.get_status(business_date)
    return jsonify(status.to_dict())


@cash_drawer_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def record_drawer_event_route():
    """
    Record an opening/closing count or an expense.

    Body (count):   {"type": "opening", "hundreds": 1, ..., "ones": 0, "change": 3.25, "notes"?}
    Body (expense): {"type": "expense", "amount": 20.00, "description": "Detergent"}
    Only admins may back-date an event with "date".
    """
    data = request.get_json(silent=True) or {}
    event_type = data.get("type")
    if not event_type:
        return jsonify({"error": "type is required"}), 400

    business_date = None
    if data.get("date"):
        if g.current_user.role != ROLE_ADMIN:
            return jsonify({"error": "Only admins can record events for another date"}), 403
        business_date, err = _date_arg(data.get("date"))
        if err:
            return err

    try:
        event = cash_drawer_service.record_drawer_event(
            event_type,
            data,
            user=g.current_user,
            business_date=business_date,
        )
        return jsonify({"event": event.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception as e:
        return server_error("record drawer event", e)
