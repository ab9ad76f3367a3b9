# Overview: Local invoice records generated from validated orders.

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import LocalInvoice, Order, User
from ..validation import NotFoundError, StateConflictError
from . import catalog_service, document_service, invoice_pdf_service, lot_service, product_group_service, settings_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .invoice_number_service import allocate_in_transaction


STATUS_ISSUED = "ISSUED"
STATUS_REGENERATED = "REGENERATED"


def _snapshot_for(order: Order, invoice_code: str) -> dict:
    groups = product_group_service.list_groups()
    product_ids = {line.product_id for line in order.lines}
    product_ids.update(g.master_product_id for g in groups)
    snapshot = catalog_service.snapshot(product_ids=product_ids, client_ids=[order.client_id])
    document = document_service.build_invoice(
        order,
        snapshot,
        groups,
        settings_service.get_company_config(),
        invoice_number=invoice_code,
        lot_number=lot_service.current_lot(),
    )
    return document_service.document_to_dict(document)


def generate_local_invoice(order_id: int, *, actor: User | None = None) -> LocalInvoice:
    """
    Issue (or regenerate) the local invoice of a validated order.

    The first call allocates the number; later calls refresh the snapshot
    and keep the number/code. PDF rendering is scheduled after commit and
    never affects the stored invoice.
    """
    def _op() -> tuple[LocalInvoice, bool]:
        begin_write()
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
        if not order.validated:
            raise StateConflictError(
                f"Order {order_id} must be validated before an invoice is generated",
                code="order_not_validated",
                details={"order_id": order_id},
            )

        invoice, created = allocate_in_transaction(order, actor=actor)
        snapshot = _snapshot_for(order, invoice.invoice_code)

        invoice.snapshot_json = json.dumps(snapshot, ensure_ascii=False)
        invoice.document_date = order.order_date
        invoice.total = Decimal(snapshot["total"])
        invoice.total_vat = Decimal(snapshot["total_vat"])
        invoice.total_with_vat = Decimal(snapshot["total_with_vat"])
        invoice.status = STATUS_ISSUED if created else STATUS_REGENERATED
        invoice.pdf_path = None
        db.session.commit()
        return invoice, created

    invoice, created = run_with_retry(_op, attempts=5)
    current_app.logger.info(
        "Local invoice %s %s for order %s",
        invoice.invoice_code, "issued" if created else "regenerated", order_id,
    )
    invoice_pdf_service.schedule_render(invoice.id)
    return invoice


def get_invoice(invoice_id: int) -> LocalInvoice:
    invoice = db.session.get(LocalInvoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id})
    return invoice


def list_invoices(*, document_date: date | None = None) -> list[LocalInvoice]:
    query = db.session.query(LocalInvoice)
    if document_date is not None:
        query = query.filter(LocalInvoice.document_date == document_date)
    return query.order_by(LocalInvoice.invoice_number).all()


def invoice_for_order(order_id: int) -> LocalInvoice | None:
    return db.session.query(LocalInvoice).filter_by(order_id=order_id).first()
