# Overview: Global production LOT counter, advanced once per new production day.

"""
LOT numbering.

The LOT is a single global counter on CompanyConfig. It moves forward by
exactly one when the first order of a production day later than
`lot_date` is created. lot_date itself is the per-day sentinel: it is read
and moved inside the order-creation transaction, after begin_write(), so
two racing first orders of the same day cannot both bump it.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from . import settings_service


def current_lot() -> int:
    return get_lot_state()[0]


def get_lot_state() -> tuple[int, date | None]:
    config = settings_service.get_company_config()
    return config.lot_number_current, config.lot_date


def advance_for_new_order(order_date: date) -> int | None:
    """
    Bump the LOT if order_date is newer than lot_date.

    Must be called inside the write transaction that inserts the order,
    before the order row is flushed. Returns the new LOT, or None when
    nothing changed. Does not commit.
    """
    config = settings_service.get_company_config(for_update=True)
    if config.lot_date is not None and order_date <= config.lot_date:
        return None

    config.lot_number_current += 1
    config.lot_date = order_date
    db.session.flush()

    current_app.logger.info(
        "LOT advanced to %s for production day %s", config.lot_number_current, order_date
    )
    return config.lot_number_current
