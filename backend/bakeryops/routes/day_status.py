# Overview: Production day status, reopen and export counter endpoints.

from flask import Blueprint, current_app, g, jsonify

from ..decorators import require_auth, require_permission
from ..services import day_status_service, export_counter_service, permission_service
from ..validation import DomainError, coerce_date
from ..extensions import db


days_bp = Blueprint("days", __name__, url_prefix="/api/days")


@days_bp.get("/<day>")
@require_auth
@require_permission("VIEW_ORDERS")
def get_day_status_route(day: str):
    try:
        status = day_status_service.get_status(coerce_date(day, "date"))
        return jsonify({"day_status": status.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@days_bp.post("/<day>/reopen")
@require_auth
def reopen_day_route(day: str):
    """
    Unlock a closed day.

    Requires: the reopen capability (admin). Export counters and order
    export flags are left untouched.
    """
    if not permission_service.can_reopen_day(g.current_user):
        current_app.logger.warning("Day reopen denied: user=%s day=%s", g.current_user.username, day)
        return jsonify({
            "error": "Permission denied",
            "required_permission": "REOPEN_DAY",
            "message": "Only administrators can reopen a closed day",
        }), 403

    try:
        status = day_status_service.reopen_day(
            coerce_date(day, "date"),
            unlocked_by=g.current_user.display_name or g.current_user.username,
        )
        return jsonify({"day_status": status.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reopen day")
        return jsonify({"error": "Internal server error"}), 500


@days_bp.get("/<day>/export-counters")
@require_auth
@require_permission("VIEW_ORDERS")
def export_counters_route(day: str):
    try:
        export_date = coerce_date(day, "date")
        return jsonify({"date": export_date.isoformat(), "counters": export_counter_service.peek(export_date)})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
