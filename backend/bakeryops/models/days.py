from __future__ import annotations

from ..extensions import db
from bakeryops.time_utils import to_utc_z, to_iso_date


class DayStatus(db.Model):
    """
    Production day record, created lazily on the first production export.

    `production_exported` is the only "day closed" flag. Reopening clears it
    but keeps exported_* and lot_number as audit trail.
    """
    __tablename__ = "day_status"

    status_date = db.Column(db.Date, primary_key=True)
    production_exported = db.Column(db.Boolean, nullable=False, default=False)
    exported_at = db.Column(db.DateTime(timezone=True), nullable=True)
    exported_by = db.Column(db.String(128), nullable=True)
    lot_number = db.Column(db.Integer, nullable=True)
    unlocked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    unlocked_by = db.Column(db.String(128), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "date": to_iso_date(self.status_date),
            "production_exported": bool(self.production_exported),
            "exported_at": to_utc_z(self.exported_at),
            "exported_by": self.exported_by,
            "lot_number": self.lot_number,
            "unlocked_at": to_utc_z(self.unlocked_at),
            "unlocked_by": self.unlocked_by,
        }


class ExportCounter(db.Model):
    """
    Per-date export file sequences.

    One row per date, three independent counters. Only ever incremented
    through an atomic UPDATE (see export_counter_service.advance).
    """
    __tablename__ = "export_counters"

    export_date = db.Column(db.Date, primary_key=True)
    invoice_count = db.Column(db.Integer, nullable=False, default=0)
    receipt_count = db.Column(db.Integer, nullable=False, default=0)
    production_count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "date": to_iso_date(self.export_date),
            "invoice": self.invoice_count,
            "receipt": self.receipt_count,
            "production": self.production_count,
        }
