# Overview: Billing settings, company config and local invoice endpoints.

import os

from flask import Blueprint, current_app, g, jsonify, request, send_file

from ..decorators import require_auth, require_permission
from ..services import invoice_number_service, local_invoice_service, settings_service
from ..validation import DomainError, coerce_date


billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")


@billing_bp.get("/settings")
@require_auth
@require_permission("GENERATE_INVOICES")
def get_billing_settings_route():
    billing = settings_service.get_billing_settings()
    return jsonify({
        "settings": billing.to_dict(),
        "next_code": billing.format_code(billing.invoice_next_number),
    })


@billing_bp.put("/settings")
@require_auth
@require_permission("MANAGE_BILLING")
def update_billing_settings_route():
    """
    Administrative override of series / next number / padding.

    Requires: MANAGE_BILLING permission (admin). Issued invoices keep their codes.
    """
    try:
        billing = invoice_number_service.update_settings(
            request.get_json(silent=True),
            updated_by=g.current_user.username,
        )
        return jsonify({"settings": billing.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update billing settings")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.get("/company")
@require_auth
@require_permission("VIEW_CATALOG")
def get_company_route():
    return jsonify({"company": settings_service.get_company_config().to_dict()})


@billing_bp.put("/company")
@require_auth
@require_permission("MANAGE_BILLING")
def update_company_route():
    try:
        config = settings_service.update_company_config(request.get_json(silent=True))
        return jsonify({"company": config.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update company config")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.post("/orders/<int:order_id>/invoice")
@require_auth
@require_permission("GENERATE_INVOICES")
def generate_invoice_route(order_id: int):
    """
    Generate (or regenerate) the local invoice of a validated order.

    201 when a number was allocated, 200 when the existing one was reused.
    """
    try:
        existed = local_invoice_service.invoice_for_order(order_id) is not None
        invoice = local_invoice_service.generate_local_invoice(order_id, actor=g.current_user)
        return jsonify({"invoice": invoice.to_dict()}), 200 if existed else 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to generate local invoice")
        return jsonify({"error": "Internal server error"}), 500


@billing_bp.get("/invoices")
@require_auth
@require_permission("GENERATE_INVOICES")
def list_invoices_route():
    try:
        raw_date = request.args.get("date")
        document_date = coerce_date(raw_date, "date") if raw_date else None
        invoices = local_invoice_service.list_invoices(document_date=document_date)
        return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@billing_bp.get("/invoices/<int:invoice_id>")
@require_auth
@require_permission("GENERATE_INVOICES")
def get_invoice_route(invoice_id: int):
    try:
        invoice = local_invoice_service.get_invoice(invoice_id)
        return jsonify({"invoice": invoice.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@billing_bp.get("/invoices/<int:invoice_id>/pdf")
@require_auth
@require_permission("GENERATE_INVOICES")
def download_invoice_pdf_route(invoice_id: int):
    try:
        invoice = local_invoice_service.get_invoice(invoice_id)
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code

    if not invoice.pdf_path or not os.path.exists(invoice.pdf_path):
        return jsonify({
            "error": "PDF not available yet",
            "code": "pdf_not_ready",
            "details": {"invoice_id": invoice_id},
        }), 404

    return send_file(
        os.path.abspath(invoice.pdf_path),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"{invoice.invoice_code}.pdf",
    )
