from __future__ import annotations

import enum

from ..extensions import db
from bakeryops.time_utils import to_utc_z, to_iso_date


class ExportState(str, enum.Enum):
    """
    Export lifecycle of an order.

    OPEN:             nothing exported, freely editable/deletable
    RECEIPT_EXPORTED: receipt exported, still editable/deletable
    INVOICE_EXPORTED: invoice exported, frozen
    FULLY_EXPORTED:   both exported, frozen
    """
    OPEN = "OPEN"
    RECEIPT_EXPORTED = "RECEIPT_EXPORTED"
    INVOICE_EXPORTED = "INVOICE_EXPORTED"
    FULLY_EXPORTED = "FULLY_EXPORTED"


PAYMENT_IMMEDIATE = "immediate"
PAYMENT_CREDIT = "credit"
PAYMENT_TYPES = {PAYMENT_IMMEDIATE, PAYMENT_CREDIT}


class Order(db.Model):
    """
    Daily sales order: at most one per (client, date).

    Totals are recomputed from lines on every save and never taken from the
    caller. `export_state` is the single source for both export flags.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("client_id", "order_date", name="uq_orders_client_date"),
        db.Index("ix_orders_date_state", "order_date", "export_state"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_date = db.Column(db.Date, nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    agent_id = db.Column(db.Integer, nullable=True, index=True)

    payment_type = db.Column(db.String(16), nullable=False, default=PAYMENT_IMMEDIATE)
    due_date = db.Column(db.Date, nullable=True)

    total = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_vat = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_with_vat = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    export_state = db.Column(db.String(24), nullable=False, default=ExportState.OPEN.value, index=True)
    validated = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client")
    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        order_by="OrderLine.position",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def state(self) -> ExportState:
        return ExportState(self.export_state or ExportState.OPEN.value)

    @property
    def invoice_exported(self) -> bool:
        return self.state in (ExportState.INVOICE_EXPORTED, ExportState.FULLY_EXPORTED)

    @property
    def receipt_exported(self) -> bool:
        return self.state in (ExportState.RECEIPT_EXPORTED, ExportState.FULLY_EXPORTED)

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "date": to_iso_date(self.order_date),
            "client_id": self.client_id,
            "agent_id": self.agent_id,
            "payment_type": self.payment_type,
            "due_date": to_iso_date(self.due_date),
            "total": str(self.total),
            "total_vat": str(self.total_vat),
            "total_with_vat": str(self.total_with_vat),
            "export_state": self.export_state,
            "invoice_exported": self.invoice_exported,
            "receipt_exported": self.receipt_exported,
            "validated": self.validated,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """
    Line item with price and VAT frozen at save time.

    Later catalog price changes never touch existing lines.
    """
    __tablename__ = "order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 4), nullable=False)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False)

    line_value = db.Column(db.Numeric(14, 2), nullable=False)
    line_vat = db.Column(db.Numeric(14, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "product_id": self.product_id,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "vat_rate": str(self.vat_rate),
            "line_value": str(self.line_value),
            "line_vat": str(self.line_vat),
        }
