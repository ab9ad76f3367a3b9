from __future__ import annotations

import json

from ..extensions import db
from bakeryops.time_utils import to_utc_z, to_iso_date


class CompanyConfig(db.Model):
    """
    Singleton (id=1): supplier identity printed on documents plus LOT state.

    lot_number_current moves by exactly one the first time an order is
    created for a day later than lot_date.
    """
    __tablename__ = "company_config"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, default="")
    cif = db.Column(db.String(32), nullable=False, default="")
    registration_number = db.Column(db.String(64), nullable=False, default="")
    county = db.Column(db.String(64), nullable=False, default="")
    locality = db.Column(db.String(128), nullable=False, default="")
    street = db.Column(db.String(255), nullable=False, default="")
    phone = db.Column(db.String(64), nullable=False, default="")
    email = db.Column(db.String(255), nullable=False, default="")
    bank = db.Column(db.String(128), nullable=False, default="")
    iban = db.Column(db.String(64), nullable=False, default="")

    receipt_series = db.Column(db.String(16), nullable=False, default="CN")

    lot_number_current = db.Column(db.Integer, nullable=False, default=1)
    lot_date = db.Column(db.Date, nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def cif_digits(self) -> str:
        """CIF without the RO prefix, as used in export file names."""
        return (self.cif or "").replace("RO", "").strip()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "cif": self.cif,
            "registration_number": self.registration_number,
            "county": self.county,
            "locality": self.locality,
            "street": self.street,
            "phone": self.phone,
            "email": self.email,
            "bank": self.bank,
            "iban": self.iban,
            "receipt_series": self.receipt_series,
            "lot_number_current": self.lot_number_current,
            "lot_date": to_iso_date(self.lot_date),
        }


class BillingSettings(db.Model):
    """
    Singleton (id=1) invoice numbering sequence.

    invoice_next_number is read and incremented inside the same transaction
    that inserts the LocalInvoice taking the number.
    """
    __tablename__ = "billing_settings"

    id = db.Column(db.Integer, primary_key=True)
    invoice_series = db.Column(db.String(16), nullable=False, default="FAC")
    invoice_next_number = db.Column(db.Integer, nullable=False, default=1)
    invoice_number_padding = db.Column(db.Integer, nullable=False, default=6)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    updated_by = db.Column(db.String(128), nullable=True)

    def format_code(self, number: int) -> str:
        return f"{self.invoice_series}-{number:0{self.invoice_number_padding}d}"

    def to_dict(self) -> dict:
        return {
            "invoice_series": self.invoice_series,
            "invoice_next_number": self.invoice_next_number,
            "invoice_number_padding": self.invoice_number_padding,
            "updated_at": to_utc_z(self.updated_at),
            "updated_by": self.updated_by,
        }


class LocalInvoice(db.Model):
    """
    Invoice record generated from a validated order.

    One per order; the number/code are permanent once allocated and are
    reused when the invoice is regenerated.
    """
    __tablename__ = "local_invoices"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_local_invoices_order"),
        db.UniqueConstraint("invoice_code", name="uq_local_invoices_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    invoice_number = db.Column(db.Integer, nullable=False)
    invoice_code = db.Column(db.String(64), nullable=False)
    document_date = db.Column(db.Date, nullable=False)

    total = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_vat = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_with_vat = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    # ISSUED on first generation, REGENERATED after a refresh of the snapshot
    status = db.Column(db.String(16), nullable=False, default="ISSUED")
    snapshot_json = db.Column(db.Text, nullable=True)
    pdf_path = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    order = db.relationship("Order", backref=db.backref("local_invoice", uselist=False, lazy=True))

    @property
    def snapshot(self) -> dict | None:
        return json.loads(self.snapshot_json) if self.snapshot_json else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "invoice_number": self.invoice_number,
            "invoice_code": self.invoice_code,
            "document_date": to_iso_date(self.document_date),
            "total": str(self.total),
            "total_vat": str(self.total_vat),
            "total_with_vat": str(self.total_with_vat),
            "status": self.status,
            "snapshot": self.snapshot,
            "pdf_available": bool(self.pdf_path),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
