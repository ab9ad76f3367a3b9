from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from bakeryops.time_utils import parse_iso_date


QTY_PLACES = Decimal("0.001")
PRICE_PLACES = Decimal("0.0001")
MONEY_PLACES = Decimal("0.01")

# Upper bound for any single quantity or unit price accepted from a request
MAX_AMOUNT = Decimal("9999999")


class DomainError(ValueError):
    """
    Base for every business-rule rejection.

    `code` names the invariant that blocked the action so the UI can render
    an actionable message.
    """
    status_code = 400
    default_code = "invalid"

    def __init__(self, message: str, *, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(DomainError):
    """400-level input problem; safe to retry after correction."""
    status_code = 400
    default_code = "validation_failed"


class StateConflictError(DomainError):
    """409-level business rule conflict (day closed, already exported...)."""
    status_code = 409
    default_code = "state_conflict"


class NotFoundError(DomainError):
    status_code = 404
    default_code = "not_found"


class ConcurrencyError(DomainError):
    """Serialization failure after retries; the whole operation may be retried."""
    status_code = 503
    default_code = "concurrency_conflict"


class PermissionDeniedError(DomainError):
    status_code = 403
    default_code = "permission_denied"


def quantize(value: Decimal, places: Decimal) -> Decimal:
    return value.quantize(places, rounding=ROUND_HALF_UP)


def round_money(value: Decimal) -> Decimal:
    return quantize(value, MONEY_PLACES)


def round_qty(value: Decimal) -> Decimal:
    return quantize(value, QTY_PLACES)


def round_price(value: Decimal) -> Decimal:
    return quantize(value, PRICE_PLACES)


def coerce_decimal(value: Any, field: str) -> Decimal:
    """
    Strictly convert request input to Decimal.

    Floats go through str() so 2.5 becomes Decimal("2.5") rather than its
    binary expansion. Booleans, NaN and infinities are rejected.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={"field": field})
    try:
        if isinstance(value, Decimal):
            dec = value
        elif isinstance(value, (int, float)):
            dec = Decimal(str(value))
        elif isinstance(value, str) and value.strip():
            dec = Decimal(value.strip())
        else:
            raise InvalidOperation
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number", details={"field": field})
    if abs(dec) > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds {MAX_AMOUNT}", details={"field": field})
    return dec


def coerce_date(value: Any, field: str = "date") -> date:
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{field} must be an ISO-8601 date (YYYY-MM-DD)",
            code="malformed_date",
            details={"field": field, "value": value if isinstance(value, str) else None},
        )


def coerce_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={"field": field})
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        # Reject scientific notation and decimals ("1e3", "12.5")
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise ValidationError(f"{field} must be an integer", details={"field": field})


def require_fields(payload: dict, fields: list[str]) -> None:
    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            code="missing_fields",
            details={"fields": missing},
        )
