# Overview: Per-date export file sequences (invoice / receipt / production).

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ExportCounter
from ..validation import ValidationError
from .concurrency import begin_write, run_with_retry


DOC_INVOICE = "invoice"
DOC_RECEIPT = "receipt"
DOC_PRODUCTION = "production"

COUNTER_COLUMNS = {
    DOC_INVOICE: ExportCounter.invoice_count,
    DOC_RECEIPT: ExportCounter.receipt_count,
    DOC_PRODUCTION: ExportCounter.production_count,
}


def _column(doc_type: str):
    try:
        return COUNTER_COLUMNS[doc_type]
    except KeyError:
        raise ValidationError(
            f"Unknown document type '{doc_type}'. Must be one of: {', '.join(sorted(COUNTER_COLUMNS))}",
            details={"doc_type": doc_type},
        )


def peek(export_date: date) -> dict:
    """Current counts for a date; zero for every type when nothing was exported."""
    row = db.session.get(ExportCounter, export_date)
    if row is None:
        return {DOC_INVOICE: 0, DOC_RECEIPT: 0, DOC_PRODUCTION: 0}
    return {
        DOC_INVOICE: row.invoice_count,
        DOC_RECEIPT: row.receipt_count,
        DOC_PRODUCTION: row.production_count,
    }


def _increment(export_date: date, doc_type: str) -> int:
    """
    Single atomic increment-and-read inside the caller's transaction.

    The UPDATE takes the row (or, on SQLite, the database) write lock, so
    the value read back afterwards belongs to this transaction only.
    """
    column = _column(doc_type)
    stmt = (
        update(ExportCounter)
        .where(ExportCounter.export_date == export_date)
        .values({column.key: column + 1})
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        row = ExportCounter(
            export_date=export_date,
            invoice_count=0,
            receipt_count=0,
            production_count=0,
        )
        setattr(row, column.key, 1)
        try:
            # Savepoint; the outer transaction and its lock survive a lost race
            with db.session.begin_nested():
                db.session.add(row)
            return 1
        except IntegrityError:
            # Row created by a concurrent export first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    db.session.flush()
    return (
        db.session.query(column)
        .filter(ExportCounter.export_date == export_date)
        .scalar()
    )


def advance_in_transaction(export_date: date, doc_type: str) -> int:
    """
    Advance a counter as part of a larger unit of work (an export batch).

    Takes the write lock but does not commit; the caller commits the new
    sequence together with the export flags it stamps.
    """
    begin_write()
    return _increment(export_date, doc_type)


def advance(export_date: date, doc_type: str, *, commit: bool = True) -> int:
    """
    Atomically allocate the next sequence number for (date, type).

    Concurrent callers never observe the same value; N calls for one date
    return exactly 1..N.
    """
    _column(doc_type)

    def _op() -> int:
        value = advance_in_transaction(export_date, doc_type)
        if commit:
            db.session.commit()
        return value

    return run_with_retry(_op, attempts=5)
