# Overview: Global local-invoice number sequence (series + next number + padding).

"""
Invoice numbering.

BillingSettings holds one global sequence. A number is taken, formatted
and the sequence advanced in the same transaction that inserts the
LocalInvoice owning it, so two requests can never leave with the same
number. An order keeps its number forever: asking again returns the
stored number/code untouched.

Changing the settings is an administrative override; existing invoices
are never renumbered.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import LocalInvoice, Order, User
from ..validation import NotFoundError, StateConflictError, ValidationError, coerce_int
from . import settings_service
from .concurrency import begin_write, lock_for_update, run_with_retry


MAX_PADDING = 12
MAX_SERIES_LENGTH = 16


def _existing_for(order_id: int) -> LocalInvoice | None:
    return lock_for_update(db.session.query(LocalInvoice).filter_by(order_id=order_id)).first()


def allocate_in_transaction(order: Order, *, actor: User | None = None) -> tuple[LocalInvoice, bool]:
    """
    Reuse the order's invoice or take the next number for it.

    Caller must have called begin_write(); nothing is committed here.
    Returns (invoice, created).
    """
    existing = _existing_for(order.id)
    if existing is not None:
        return existing, False

    billing = settings_service.get_billing_settings(for_update=True)
    number = billing.invoice_next_number
    code = billing.format_code(number)

    invoice = LocalInvoice(
        order_id=order.id,
        invoice_number=number,
        invoice_code=code,
        document_date=order.order_date,
        total=order.total,
        total_vat=order.total_vat,
        total_with_vat=order.total_with_vat,
        status="ISSUED",
        created_by_user_id=actor.id if actor else None,
    )

    try:
        # Savepoint; a taken code leaves the caller's transaction and locks intact
        with db.session.begin_nested():
            db.session.add(invoice)
    except IntegrityError as exc:
        existing = db.session.query(LocalInvoice).filter_by(order_id=order.id).first()
        if existing is not None:
            return existing, False
        raise StateConflictError(
            f"Invoice code {code} is already used; correct the billing settings",
            code="invoice_number_taken",
            details={"invoice_code": code},
        ) from exc

    billing.invoice_next_number = number + 1
    db.session.flush()

    current_app.logger.info("Invoice number %s allocated to order %s", code, order.id)
    return invoice, True


def allocate_or_reuse(order_id: int, *, actor: User | None = None) -> dict:
    """
    Number and code of the order's local invoice, allocating on first use.

    Returns {"number", "code", "created"}.
    """
    def _op() -> dict:
        begin_write()
        order = db.session.get(Order, order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
        invoice, created = allocate_in_transaction(order, actor=actor)
        db.session.commit()
        return {"number": invoice.invoice_number, "code": invoice.invoice_code, "created": created}

    return run_with_retry(_op, attempts=5)


def update_settings(patch: dict, *, updated_by: str | None = None):
    """
    Administrative change of series, next number or padding.

    next_number >= 1, padding between 1 and MAX_PADDING. Unknown keys are
    rejected.
    """
    if not isinstance(patch, dict):
        raise ValidationError("Invalid settings object")

    allowed = {"invoice_series", "invoice_next_number", "invoice_number_padding"}
    unknown = sorted(set(patch) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}", details={"fields": unknown})

    series = patch.get("invoice_series")
    if series is not None:
        if not isinstance(series, str) or not series.strip():
            raise ValidationError("invoice_series must be a non-empty string", details={"field": "invoice_series"})
        series = series.strip()
        if len(series) > MAX_SERIES_LENGTH:
            raise ValidationError("invoice_series is too long", details={"field": "invoice_series"})

    next_number = None
    if patch.get("invoice_next_number") is not None:
        next_number = coerce_int(patch["invoice_next_number"], "invoice_next_number")
        if next_number < 1:
            raise ValidationError("invoice_next_number must be >= 1", details={"field": "invoice_next_number"})

    padding = None
    if patch.get("invoice_number_padding") is not None:
        padding = coerce_int(patch["invoice_number_padding"], "invoice_number_padding")
        if not 1 <= padding <= MAX_PADDING:
            raise ValidationError(
                f"invoice_number_padding must be between 1 and {MAX_PADDING}",
                details={"field": "invoice_number_padding"},
            )

    def _op():
        begin_write()
        billing = settings_service.get_billing_settings(for_update=True)
        if series is not None:
            billing.invoice_series = series
        if next_number is not None:
            billing.invoice_next_number = next_number
        if padding is not None:
            billing.invoice_number_padding = padding
        billing.updated_by = updated_by
        db.session.commit()
        return billing

    billing = run_with_retry(_op)
    current_app.logger.info(
        "Billing settings updated by %s: series=%s next=%s padding=%s",
        updated_by, billing.invoice_series, billing.invoice_next_number, billing.invoice_number_padding,
    )
    return billing
