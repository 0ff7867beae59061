# Overview: Flask API routes for reports; read-only summaries over orders and shifts.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import reporting_service
from ..services.reporting_service import ReportError


reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/reports")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def summary_route():
    """
    Query params:
    - period: today | this_week | trailing_30_days (default)
    - start, end: explicit YYYY-MM-DD window (overrides period)
    - compare: previous | prior_year
    """
    try:
        report = reporting_service.summary(
            period=request.args.get("period"),
            start=request.args.get("start"),
            end=request.args.get("end"),
            compare=request.args.get("compare") or None,
        )
        return jsonify(report)
    except ReportError as e:
        return jsonify({"error": str(e)}), 400


@reports_bp.get("/reports/staff-productivity")
@require_auth
@require_role(ROLE_ADMIN)
def staff_productivity_route():
    try:
        report = reporting_service.staff_productivity(
            period=request.args.get("period"),
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report)
    except ReportError as e:
        return jsonify({"error": str(e)}), 400


@reports_bp.get("/staff-summary")
@require_auth
@require_role(ROLE_ADMIN)
def staff_summary_route():
    try:
        report = reporting_service.staff_summary(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report)
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
