# Overview: Export batches: counter bump + document assembly + export flags, one transaction each.

"""
Export Service

Each export action is one unit of work:

    invoices:   advance(date, invoice)    -> assemble -> mark invoice flag
    receipts:   advance(date, receipt)    -> assemble -> mark receipt flag
    production: advance(date, production) -> assemble -> close the day

The counter moves once per batch, not once per order, and the returned
sequence number is embedded in the file name. If anything fails before
commit the counter bump is rolled back with the rest.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import LocalInvoice, Order, User
from ..models.orders import ExportState
from ..validation import StateConflictError
from . import (
    catalog_service,
    day_status_service,
    document_service,
    export_counter_service,
    export_render,
    lot_service,
    order_service,
    product_group_service,
    settings_service,
)
from .concurrency import run_with_retry


def _actor_name(actor: User | None) -> str:
    if actor is None:
        return "system"
    return actor.display_name or actor.username


def _orders_for(export_date: date, *, exclude_states=()) -> list[Order]:
    query = db.session.query(Order).filter(Order.order_date == export_date)
    if exclude_states:
        query = query.filter(Order.export_state.notin_([s.value for s in exclude_states]))
    return query.order_by(Order.id).all()


def _invoice_numbers(order_ids) -> dict[int, str]:
    if not order_ids:
        return {}
    rows = db.session.query(LocalInvoice.order_id, LocalInvoice.invoice_code).filter(
        LocalInvoice.order_id.in_(list(order_ids))
    )
    return {order_id: code for order_id, code in rows}


def _snapshot(orders, groups=()):
    product_ids = {line.product_id for order in orders for line in order.lines}
    product_ids.update(g.master_product_id for g in groups)
    client_ids = {order.client_id for order in orders}
    return catalog_service.snapshot(product_ids=product_ids, client_ids=client_ids)


def _nothing_to_export(export_date: date, kind: str):
    return StateConflictError(
        f"No orders left to export as {kind} for {export_date.isoformat()}",
        code="nothing_to_export",
        details={"date": export_date.isoformat(), "document": kind},
    )


def export_invoices(export_date: date, *, actor: User | None = None) -> dict:
    """Export every order of the date whose invoice was not exported yet."""
    def _op() -> dict:
        sequence = export_counter_service.advance_in_transaction(export_date, export_counter_service.DOC_INVOICE)
        orders = _orders_for(
            export_date,
            exclude_states=(ExportState.INVOICE_EXPORTED, ExportState.FULLY_EXPORTED),
        )
        if not orders:
            raise _nothing_to_export(export_date, "invoice")

        config = settings_service.get_company_config()
        groups = product_group_service.list_groups()
        documents = document_service.build_invoices(
            orders,
            _snapshot(orders, groups),
            groups,
            config,
            invoice_numbers=_invoice_numbers([o.id for o in orders]),
            lot_number=config.lot_number_current,
        )
        content = export_render.render_invoices_xml(documents)
        filename = export_render.invoice_filename(config.cif_digits, sequence, export_date)

        order_ids = [o.id for o in orders]
        order_service.mark_exported(order_ids, order_service.EXPORT_INVOICE, commit=False)
        db.session.commit()
        return {
            "filename": filename,
            "content": content,
            "sequence": sequence,
            "order_ids": order_ids,
        }

    result = run_with_retry(_op, attempts=5)
    current_app.logger.info(
        "Invoice export %s by %s: %s orders", result["filename"], _actor_name(actor), len(result["order_ids"])
    )
    return result


def export_receipts(export_date: date, *, actor: User | None = None) -> dict:
    """Export a receipt for every order of the date without one."""
    def _op() -> dict:
        sequence = export_counter_service.advance_in_transaction(export_date, export_counter_service.DOC_RECEIPT)
        orders = _orders_for(
            export_date,
            exclude_states=(ExportState.RECEIPT_EXPORTED, ExportState.FULLY_EXPORTED),
        )
        if not orders:
            raise _nothing_to_export(export_date, "receipt")

        config = settings_service.get_company_config()
        groups = product_group_service.list_groups()
        documents = document_service.build_receipts(
            orders,
            _snapshot(orders, groups),
            config,
            groups=groups,
            sequence=sequence,
            cash_account=str(current_app.config.get("CASH_ACCOUNT_CODE", "5311")),
            invoice_numbers=_invoice_numbers([o.id for o in orders]),
        )
        content = export_render.render_receipts_xml(documents)
        filename = export_render.receipt_filename(config.cif_digits, sequence, export_date)

        order_ids = [o.id for o in orders]
        order_service.mark_exported(order_ids, order_service.EXPORT_RECEIPT, commit=False)
        db.session.commit()
        return {
            "filename": filename,
            "content": content,
            "sequence": sequence,
            "order_ids": order_ids,
        }

    result = run_with_retry(_op, attempts=5)
    current_app.logger.info(
        "Receipt export %s by %s: %s orders", result["filename"], _actor_name(actor), len(result["order_ids"])
    )
    return result


def export_production(export_date: date, *, actor: User | None = None) -> dict:
    """
    Export the production sheet for every order of the date and close the day.

    Exporting an already closed day is allowed (re-export); the day stays
    closed and `already_closed` tells the caller to warn.
    """
    def _op() -> dict:
        sequence = export_counter_service.advance_in_transaction(export_date, export_counter_service.DOC_PRODUCTION)
        orders = _orders_for(export_date)
        if not orders:
            raise _nothing_to_export(export_date, "production")

        config = settings_service.get_company_config()
        lot_number = lot_service.current_lot()
        rows = document_service.build_production_rows(orders, _snapshot(orders), lot_number=lot_number)
        content = export_render.render_production_csv(rows)
        filename = export_render.production_filename(config.cif_digits, sequence, export_date)

        status, already_closed = day_status_service.close_day(
            export_date,
            exported_by=_actor_name(actor),
            lot_number=lot_number,
            commit=False,
        )
        db.session.commit()
        return {
            "filename": filename,
            "content": content,
            "sequence": sequence,
            "lot_number": lot_number,
            "already_closed": already_closed,
            "day_status": status.to_dict(),
            "order_ids": [o.id for o in orders],
        }

    result = run_with_retry(_op, attempts=5)
    current_app.logger.info(
        "Production export %s by %s (LOT %s)", result["filename"], _actor_name(actor), result["lot_number"]
    )
    return result
