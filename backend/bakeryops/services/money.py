# Overview: Fiscal rounding rules shared by order totals and exported documents.

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from ..validation import round_money

HUNDRED = Decimal("100")


def line_amounts(quantity: Decimal, unit_price: Decimal, vat_rate: Decimal) -> tuple[Decimal, Decimal]:
    """
    (value, vat) of one line.

    value = quantity x unit price rounded to 2 dp; VAT is computed on the
    rounded value and rounded to 2 dp again, as the accounting import does.
    """
    value = round_money(Decimal(quantity) * Decimal(unit_price))
    vat = round_money(value * Decimal(vat_rate) / HUNDRED)
    return value, vat


def totals(amounts: Iterable[tuple[Decimal, Decimal]]) -> tuple[Decimal, Decimal, Decimal]:
    """(total, total_vat, total_with_vat) from per-line (value, vat) pairs."""
    total = Decimal("0.00")
    total_vat = Decimal("0.00")
    for value, vat in amounts:
        total += value
        total_vat += vat
    return round_money(total), round_money(total_vat), round_money(total + total_vat)
