# backend/bakeryops/routes/system.py
"""
System health endpoint.

Reports database reachability and the singleton state the export engine
depends on (LOT, invoice sequence).
"""

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from ..models import BillingSettings, CompanyConfig, User

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and the engine singletons.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        user_count = db.session.query(User).count()
        company = db.session.get(CompanyConfig, 1)
        billing = db.session.get(BillingSettings, 1)

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "company_configured": company is not None,
                "lot_number_current": company.lot_number_current if company else None,
                "invoice_next_number": billing.invoice_next_number if billing else None,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "ok" if healthy else "error",
        "checks": {"database": database},
    }), 200 if healthy else 503
