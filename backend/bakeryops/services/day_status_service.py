# Overview: Production day registry; the "day closed" flag gating order changes.

"""
Day status.

    OPEN   (no row, or production_exported=False)
    CLOSED (production_exported=True)

OPEN -> CLOSED on production export (close_day), CLOSED -> OPEN on admin
unlock (reopen_day). Reopening keeps exported_at/exported_by/lot_number as
history and never touches export counters or order export flags.

This module does no authorization; callers check can_reopen_day first.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DayStatus
from ..validation import ConcurrencyError
from bakeryops.time_utils import utcnow
from .concurrency import lock_for_update


def _default_status(day: date) -> DayStatus:
    # Transient, never added to the session
    return DayStatus(
        status_date=day,
        production_exported=False,
        exported_at=None,
        exported_by=None,
        lot_number=None,
        unlocked_at=None,
        unlocked_by=None,
    )


def get_status(day: date) -> DayStatus:
    """Stored status, or a default open-state record when none exists."""
    row = db.session.get(DayStatus, day)
    return row if row is not None else _default_status(day)


def is_closed(day: date, *, for_update: bool = False) -> bool:
    query = db.session.query(DayStatus).filter_by(status_date=day)
    if for_update:
        query = lock_for_update(query)
    row = query.first()
    return bool(row and row.production_exported)


def close_day(
    day: date,
    *,
    exported_by: str,
    lot_number: int | None,
    now: datetime | None = None,
    commit: bool = True,
) -> tuple[DayStatus, bool]:
    """
    Upsert the day as closed, overwriting the export audit fields.

    Returns (status, was_already_closed); re-closing is not an error.
    """
    now = now or utcnow()
    row = db.session.get(DayStatus, day)
    was_closed = bool(row and row.production_exported)

    if row is None:
        row = DayStatus(status_date=day)
        db.session.add(row)

    row.production_exported = True
    row.exported_at = now
    row.exported_by = exported_by
    row.lot_number = lot_number

    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ConcurrencyError(
            f"Day {day.isoformat()} was closed concurrently, please retry",
            details={"date": day.isoformat()},
        ) from exc

    if was_closed:
        current_app.logger.warning("Day %s closed again by %s", day, exported_by)
    else:
        current_app.logger.info("Day %s closed by %s (LOT %s)", day, exported_by, lot_number)

    if commit:
        db.session.commit()
    return row, was_closed


def reopen_day(
    day: date,
    *,
    unlocked_by: str,
    now: datetime | None = None,
    commit: bool = True,
) -> DayStatus:
    """Clear the closed flag, stamping unlock provenance. No-op without a record."""
    row = db.session.get(DayStatus, day)
    if row is None:
        return _default_status(day)

    row.production_exported = False
    row.unlocked_at = now or utcnow()
    row.unlocked_by = unlocked_by
    db.session.flush()
    current_app.logger.info("Day %s reopened by %s", day, unlocked_by)

    if commit:
        db.session.commit()
    return row
