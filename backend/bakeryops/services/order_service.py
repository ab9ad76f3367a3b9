# Overview: Order store; create/update/delete gated by day status and export state.

"""
Order Service

STATE MACHINE (per client+date):

    absent -> OPEN -> RECEIPT_EXPORTED -> FULLY_EXPORTED
              OPEN -> INVOICE_EXPORTED -> FULLY_EXPORTED

    OPEN, RECEIPT_EXPORTED:           editable, deletable
    INVOICE_EXPORTED, FULLY_EXPORTED: frozen (no save, no delete)

A closed production day blocks every save/delete unless the caller holds
the OVERRIDE_CLOSED_DAY capability. Export flags only move forward; marking
an already exported order again is a no-op.

Prices are resolved against the catalog by price_draft() and frozen into
the lines; save_order() never looks at catalog prices again and recomputes
totals from the lines it stores.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ExportState, LocalInvoice, Order, OrderLine, User
from ..models.orders import PAYMENT_CREDIT, PAYMENT_IMMEDIATE, PAYMENT_TYPES
from ..validation import (
    NotFoundError,
    StateConflictError,
    ValidationError,
    coerce_date,
    coerce_decimal,
    coerce_int,
    require_fields,
    round_price,
    round_qty,
)
from . import catalog_service, day_status_service, lot_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .money import line_amounts, totals


EXPORT_INVOICE = "invoice"
EXPORT_RECEIPT = "receipt"
EXPORT_FIELDS = {EXPORT_INVOICE, EXPORT_RECEIPT}

TRANSITIONS = {
    (ExportState.OPEN, EXPORT_INVOICE): ExportState.INVOICE_EXPORTED,
    (ExportState.OPEN, EXPORT_RECEIPT): ExportState.RECEIPT_EXPORTED,
    (ExportState.RECEIPT_EXPORTED, EXPORT_INVOICE): ExportState.FULLY_EXPORTED,
    (ExportState.RECEIPT_EXPORTED, EXPORT_RECEIPT): ExportState.RECEIPT_EXPORTED,
    (ExportState.INVOICE_EXPORTED, EXPORT_RECEIPT): ExportState.FULLY_EXPORTED,
    (ExportState.INVOICE_EXPORTED, EXPORT_INVOICE): ExportState.INVOICE_EXPORTED,
    (ExportState.FULLY_EXPORTED, EXPORT_INVOICE): ExportState.FULLY_EXPORTED,
    (ExportState.FULLY_EXPORTED, EXPORT_RECEIPT): ExportState.FULLY_EXPORTED,
}

EDITABLE_STATES = frozenset({ExportState.OPEN, ExportState.RECEIPT_EXPORTED})
DELETABLE_STATES = frozenset({ExportState.OPEN, ExportState.RECEIPT_EXPORTED})


@dataclass(frozen=True)
class LineDraft:
    product_id: int
    quantity: Decimal
    unit_price: Decimal | None = None
    vat_rate: Decimal | None = None


@dataclass(frozen=True)
class OrderDraft:
    """Canonical, validated order input."""
    order_date: date
    client_id: int
    items: tuple[LineDraft, ...]
    payment_type: str = PAYMENT_IMMEDIATE
    due_date: date | None = None
    agent_id: int | None = None
    order_id: int | None = None
    priced: bool = field(default=False, compare=False)


def next_state(state: ExportState, export_field: str) -> ExportState:
    if export_field not in EXPORT_FIELDS:
        raise ValidationError(
            f"Unknown export field '{export_field}'. Must be one of: {', '.join(sorted(EXPORT_FIELDS))}"
        )
    return TRANSITIONS[(state, export_field)]


def parse_order_draft(payload: dict, *, order_id: int | None = None) -> OrderDraft:
    """Validate a request body into an OrderDraft (no storage access)."""
    require_fields(payload, ["date", "client_id", "items"])

    order_date = coerce_date(payload["date"], "date")
    client_id = coerce_int(payload["client_id"], "client_id")
    agent_id = payload.get("agent_id")
    agent_id = coerce_int(agent_id, "agent_id") if agent_id not in (None, "") else None

    payment_type = payload.get("payment_type") or PAYMENT_IMMEDIATE
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(
            f"payment_type must be one of: {', '.join(sorted(PAYMENT_TYPES))}",
            details={"field": "payment_type"},
        )

    due_date = None
    if payment_type == PAYMENT_CREDIT:
        if not payload.get("due_date"):
            raise ValidationError("due_date is required for credit orders", code="missing_fields",
                                  details={"fields": ["due_date"]})
        due_date = coerce_date(payload["due_date"], "due_date")
        if due_date < order_date:
            raise ValidationError("due_date cannot be before the order date", details={"field": "due_date"})

    raw_items = payload["items"]
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list", details={"field": "items"})

    items: list[LineDraft] = []
    seen: set[int] = set()
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        require_fields(raw, ["product_id", "quantity"])
        product_id = coerce_int(raw["product_id"], f"items[{index}].product_id")
        if product_id in seen:
            raise ValidationError(
                f"Product {product_id} appears more than once",
                details={"product_id": product_id},
            )
        seen.add(product_id)
        quantity = round_qty(coerce_decimal(raw["quantity"], f"items[{index}].quantity"))
        if quantity <= 0:
            raise ValidationError(
                f"items[{index}].quantity must be > 0",
                details={"field": f"items[{index}].quantity"},
            )
        items.append(LineDraft(product_id=product_id, quantity=quantity))

    return OrderDraft(
        order_date=order_date,
        client_id=client_id,
        items=tuple(items),
        payment_type=payment_type,
        due_date=due_date,
        agent_id=agent_id,
        order_id=order_id,
    )


def _find_order(draft: OrderDraft, *, for_update: bool) -> Order | None:
    if draft.order_id is not None:
        query = db.session.query(Order).filter_by(id=draft.order_id)
    else:
        query = db.session.query(Order).filter_by(client_id=draft.client_id, order_date=draft.order_date)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def price_draft(draft: OrderDraft) -> OrderDraft:
    """
    Freeze unit price and VAT rate into every line.

    Products already on the stored order keep their stored price/VAT;
    new products take the catalog price of the client's zone.
    """
    client = catalog_service.get_client(draft.client_id)
    existing = _find_order(draft, for_update=False)
    frozen = {}
    if existing is not None:
        frozen = {line.product_id: line for line in existing.lines}

    priced: list[LineDraft] = []
    for item in draft.items:
        stored = frozen.get(item.product_id)
        if stored is not None:
            priced.append(replace(item, unit_price=Decimal(stored.unit_price), vat_rate=Decimal(stored.vat_rate)))
            continue
        product = catalog_service.get_product(item.product_id)
        if not product.is_active:
            raise ValidationError(f"Product {product.code} is not active", details={"product_id": product.id})
        price = catalog_service.price_for(product, client.price_zone)
        priced.append(replace(item, unit_price=round_price(price), vat_rate=Decimal(product.vat_rate)))

    return replace(draft, items=tuple(priced), priced=True)


def _build_lines(draft: OrderDraft) -> list[OrderLine]:
    lines = []
    for position, item in enumerate(draft.items, start=1):
        if item.unit_price is None or item.vat_rate is None:
            raise ValidationError(
                f"Line for product {item.product_id} has no frozen price",
                details={"product_id": item.product_id},
            )
        value, vat = line_amounts(item.quantity, item.unit_price, item.vat_rate)
        lines.append(OrderLine(
            position=position,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            vat_rate=item.vat_rate,
            line_value=value,
            line_vat=vat,
        ))
    return lines


def _apply_totals(order: Order, lines: Iterable[OrderLine]) -> None:
    order.total, order.total_vat, order.total_with_vat = totals(
        (line.line_value, line.line_vat) for line in lines
    )


def _ensure_day_open(order_date: date, can_override_closed_day: bool) -> None:
    if day_status_service.is_closed(order_date, for_update=True) and not can_override_closed_day:
        raise StateConflictError(
            f"Day {order_date.isoformat()} is closed; orders can no longer be changed",
            code="day_closed",
            details={"date": order_date.isoformat()},
        )


def _ensure_state(order: Order, allowed: frozenset, action: str) -> None:
    if order.state not in allowed:
        raise StateConflictError(
            f"Order {order.id} was already exported as invoice and cannot be {action}",
            code="already_exported",
            details={"order_id": order.id, "export_state": order.export_state},
        )


def save_order(
    draft: OrderDraft,
    *,
    actor: User | None = None,
    can_override_closed_day: bool = False,
) -> tuple[Order, bool]:
    """
    Create or update the order for draft's (client, date).

    Returns (order, created). The LOT check, the order insert and the line
    replacement all commit together.
    """
    if not draft.priced:
        raise ValidationError("Order lines must be priced before saving")

    def _op():
        begin_write()
        _ensure_day_open(draft.order_date, can_override_closed_day)

        order = _find_order(draft, for_update=True)
        created = order is None

        if order is not None:
            if draft.order_id is not None and (
                order.client_id != draft.client_id or order.order_date != draft.order_date
            ):
                raise ValidationError(
                    "client_id and date of an existing order cannot change",
                    details={"order_id": order.id},
                )
            _ensure_state(order, EDITABLE_STATES, "modified")
        elif draft.order_id is not None:
            raise NotFoundError(f"Order {draft.order_id} not found", details={"order_id": draft.order_id})
        else:
            lot_service.advance_for_new_order(draft.order_date)
            order = Order(
                order_date=draft.order_date,
                client_id=draft.client_id,
                export_state=ExportState.OPEN.value,
                created_by_user_id=actor.id if actor else None,
            )
            db.session.add(order)

        lines = _build_lines(draft)
        order.lines = lines
        order.payment_type = draft.payment_type
        order.due_date = draft.due_date
        order.agent_id = draft.agent_id if draft.agent_id is not None else (actor.agent_id if actor else None)
        # Any change needs a fresh validation before invoicing
        order.validated = False
        _apply_totals(order, lines)

        try:
            db.session.flush()
        except IntegrityError as exc:
            raise StateConflictError(
                f"An order already exists for client {draft.client_id} on {draft.order_date.isoformat()}",
                code="duplicate_order",
                details={"client_id": draft.client_id, "date": draft.order_date.isoformat()},
            ) from exc

        db.session.commit()
        return order, created

    order, created = run_with_retry(_op)
    current_app.logger.info(
        "Order %s %s for client %s on %s",
        order.id, "created" if created else "updated", order.client_id, order.order_date,
    )
    return order, created


def submit_order(
    payload: dict,
    *,
    actor: User | None = None,
    can_override_closed_day: bool = False,
    order_id: int | None = None,
) -> tuple[Order, bool]:
    """Parse, price and save a request body in one call."""
    draft = price_draft(parse_order_draft(payload, order_id=order_id))
    return save_order(draft, actor=actor, can_override_closed_day=can_override_closed_day)


def delete_order(order_id: int, *, can_override_closed_day: bool = False) -> None:
    """
    Delete an order that was never exported as invoice.

    Receipt-only exports do not block deletion; invoices are the binding
    fiscal document.
    """
    def _op():
        begin_write()
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})

        _ensure_day_open(order.order_date, can_override_closed_day)
        _ensure_state(order, DELETABLE_STATES, "deleted")

        if db.session.query(LocalInvoice.id).filter_by(order_id=order.id).first():
            raise StateConflictError(
                f"Order {order.id} has an issued invoice and cannot be deleted",
                code="invoice_issued",
                details={"order_id": order.id},
            )

        db.session.delete(order)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Order %s deleted", order_id)


def mark_exported(order_ids: Iterable[int], export_field: str, *, commit: bool = True) -> list[Order]:
    """
    Move the given orders forward for an export field.

    Idempotent: already exported orders keep their state. Unknown ids are
    a NotFoundError and nothing is changed.
    """
    ids = sorted(set(order_ids))
    if not ids:
        return []

    orders = lock_for_update(db.session.query(Order).filter(Order.id.in_(ids))).all()
    missing = sorted(set(ids) - {o.id for o in orders})
    if missing:
        raise NotFoundError(f"Orders not found: {missing}", details={"order_ids": missing})

    for order in orders:
        target = next_state(order.state, export_field)
        if target != order.state:
            order.export_state = target.value

    db.session.flush()
    if commit:
        db.session.commit()
    return orders


def validate_order(order_id: int) -> Order:
    """Mark an order as checked and ready for local invoice generation."""
    def _op():
        begin_write()
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
        if not order.lines:
            raise ValidationError(f"Order {order_id} has no lines", details={"order_id": order_id})
        order.validated = True
        db.session.commit()
        return order

    return run_with_retry(_op)


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def list_orders(order_date: date, *, client_id: int | None = None) -> list[Order]:
    query = db.session.query(Order).filter(Order.order_date == order_date)
    if client_id is not None:
        query = query.filter(Order.client_id == client_id)
    return query.order_by(Order.id).all()
