# Overview: Export endpoints producing invoice/receipt XML and the production CSV.

"""
Export Routes

POST /api/exports/<date>/invoices|receipts|production

Each call is one export batch and advances the matching per-date counter
once. The response carries the rendered file; `?download=1` answers with
the file itself as an attachment.
"""

from flask import Blueprint, Response, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import export_service
from ..validation import DomainError, coerce_date


exports_bp = Blueprint("exports", __name__, url_prefix="/api/exports")

_MIMETYPES = {
    "XML": "application/xml",
    "CSV": "text/csv",
}


def _respond(result: dict, extra: dict | None = None):
    if request.args.get("download", "").lower() in {"1", "true", "yes"}:
        extension = result["filename"].rsplit(".", 1)[-1]
        response = Response(result["content"], mimetype=_MIMETYPES.get(extension, "application/octet-stream"))
        response.headers["Content-Disposition"] = f'attachment; filename="{result["filename"]}"'
        response.headers["X-Export-Sequence"] = str(result["sequence"])
        return response

    body = {
        "filename": result["filename"],
        "content": result["content"],
        "sequence": result["sequence"],
        "order_ids": result["order_ids"],
    }
    body.update(extra or {})
    return jsonify(body), 200


@exports_bp.post("/<day>/invoices")
@require_auth
@require_permission("EXPORT_DOCUMENTS")
def export_invoices_route(day: str):
    try:
        result = export_service.export_invoices(coerce_date(day, "date"), actor=g.current_user)
        return _respond(result)

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export invoices")
        return jsonify({"error": "Internal server error"}), 500


@exports_bp.post("/<day>/receipts")
@require_auth
@require_permission("EXPORT_DOCUMENTS")
def export_receipts_route(day: str):
    try:
        result = export_service.export_receipts(coerce_date(day, "date"), actor=g.current_user)
        return _respond(result)

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export receipts")
        return jsonify({"error": "Internal server error"}), 500


@exports_bp.post("/<day>/production")
@require_auth
@require_permission("CLOSE_DAY")
def export_production_route(day: str):
    """
    Export the production sheet and close the day.

    Requires: CLOSE_DAY permission
    """
    try:
        result = export_service.export_production(coerce_date(day, "date"), actor=g.current_user)
        return _respond(result, {
            "lot_number": result["lot_number"],
            "already_closed": result["already_closed"],
            "day_status": result["day_status"],
        })

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export production")
        return jsonify({"error": "Internal server error"}), 500
