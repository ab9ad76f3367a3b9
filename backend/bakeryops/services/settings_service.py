# Overview: Company and billing singletons (created lazily with defaults).

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import BillingSettings, CompanyConfig
from ..validation import ConcurrencyError, ValidationError, coerce_date, coerce_int
from .concurrency import begin_write, lock_for_update, run_with_retry


SINGLETON_ID = 1

COMPANY_STRING_FIELDS = (
    "name", "cif", "registration_number", "county", "locality",
    "street", "phone", "email", "bank", "iban", "receipt_series",
)
MAX_STRING_LENGTH = 500


def _get_or_create(model, *, for_update: bool):
    query = db.session.query(model).filter_by(id=SINGLETON_ID)
    if for_update:
        query = lock_for_update(query)
    row = query.first()
    if row:
        return row

    row = model(id=SINGLETON_ID)
    db.session.add(row)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # Another request created it first; the caller's retry sees it
        raise ConcurrencyError(f"{model.__tablename__} initialised concurrently, please retry") from exc
    return row


def get_company_config(*, for_update: bool = False) -> CompanyConfig:
    return _get_or_create(CompanyConfig, for_update=for_update)


def get_billing_settings(*, for_update: bool = False) -> BillingSettings:
    return _get_or_create(BillingSettings, for_update=for_update)


def update_company_config(patch: dict) -> CompanyConfig:
    """
    Administrative update of supplier identity / LOT correction.

    Unknown keys are rejected; LOT fields are accepted as explicit
    corrections and otherwise only move through lot_service.
    """
    if not isinstance(patch, dict):
        raise ValidationError("Invalid settings object")

    allowed = set(COMPANY_STRING_FIELDS) | {"lot_number_current", "lot_date"}
    unknown = sorted(set(patch) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}", details={"fields": unknown})

    strings = {}
    for key in COMPANY_STRING_FIELDS:
        if key not in patch or patch[key] is None:
            continue
        value = patch[key]
        if not isinstance(value, str):
            raise ValidationError(f"Field {key} must be a string", details={"field": key})
        if len(value) > MAX_STRING_LENGTH:
            raise ValidationError(f"Field {key} exceeds maximum length", details={"field": key})
        strings[key] = value.strip()

    lot = None
    if "lot_number_current" in patch:
        lot = coerce_int(patch["lot_number_current"], "lot_number_current")
        if lot < 1:
            raise ValidationError("lot_number_current must be >= 1", details={"field": "lot_number_current"})
    lot_date = None
    if patch.get("lot_date"):
        lot_date = coerce_date(patch["lot_date"], "lot_date")

    def _op() -> CompanyConfig:
        begin_write()
        config = get_company_config(for_update=True)
        for key, value in strings.items():
            setattr(config, key, value)
        if lot is not None:
            config.lot_number_current = lot
        if "lot_date" in patch:
            config.lot_date = lot_date
        db.session.commit()
        return config

    return run_with_retry(_op)
