# Overview: Field-level content of invoices, receipts and production sheets.

"""
Document assembly.

Pure functions: given the orders of one date, a catalog snapshot, the
product groups and the company config they return frozen value objects.
Nothing here reads or writes the database; export_render turns the
result into XML/CSV and export_service owns the transaction.

Precision is fixed for every document: quantities 3 dp, unit prices 4 dp,
money 2 dp, all ROUND_HALF_UP.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence

from ..validation import round_money, round_price, round_qty
from .catalog_service import CatalogSnapshot
from .product_group_service import aggregate_lines


CURRENCY = "RON"
WEIGHT_UNIT = "KG"
ZERO = Decimal("0")


@dataclass(frozen=True)
class Party:
    name: str
    cif: str
    registration_number: str
    county: str
    locality: str
    street: str
    bank: str = ""
    iban: str = ""


@dataclass(frozen=True)
class InvoiceLine:
    number: int
    description: str
    code: str
    unit: str
    quantity: Decimal
    unit_price: Decimal
    value: Decimal
    vat_rate: Decimal
    vat: Decimal
    lot_number: int | None = None
    is_weight_line: bool = False


@dataclass(frozen=True)
class InvoiceDocument:
    order_id: int
    number: str
    document_date: date
    due_date: date
    currency: str
    supplier: Party
    client: Party
    lines: tuple[InvoiceLine, ...]
    total: Decimal
    total_vat: Decimal
    total_with_vat: Decimal

    @property
    def vat_rate(self) -> Decimal | None:
        """Rate of the first line; printed in the invoice header."""
        return self.lines[0].vat_rate if self.lines else None


@dataclass(frozen=True)
class ReceiptDocument:
    order_id: int
    document_date: date
    code: str
    amount: Decimal
    cash_account: str
    client_account: str
    invoice_number: str


@dataclass(frozen=True)
class ProductionRow:
    number: int
    production_date: date
    warehouse_name: str
    product_code: str
    description: str
    lot_number: int
    unit: str
    quantity: Decimal
    unit_price: Decimal
    value: Decimal
    order_id: int


def supplier_party(config) -> Party:
    return Party(
        name=config.name or "",
        cif=config.cif or "",
        registration_number=config.registration_number or "",
        county=config.county or "",
        locality=config.locality or "",
        street=config.street or "",
        bank=config.bank or "",
        iban=config.iban or "",
    )


def client_party(client) -> Party:
    return Party(
        name=client.name or "",
        cif=client.cif or "",
        registration_number=client.registration_number or "",
        county=client.county or "",
        locality=client.locality or "",
        street=client.street or "",
    )


def build_invoice(
    order,
    snapshot: CatalogSnapshot,
    groups: Sequence,
    config,
    *,
    invoice_number: str = "",
    lot_number: int | None = None,
) -> InvoiceDocument:
    """
    Invoice field set for one order.

    A KG line (price 0, VAT 0) follows every line with nonzero weight when
    the client displays weight. Totals are the sums of the printed lines.
    """
    client = snapshot.client(order.client_id)
    lines: list[InvoiceLine] = []
    number = 1

    for agg in aggregate_lines(order, snapshot, groups):
        lines.append(InvoiceLine(
            number=number,
            description=agg.description,
            code=agg.code,
            unit=agg.unit,
            quantity=agg.quantity,
            unit_price=agg.unit_price,
            value=agg.value,
            vat_rate=agg.vat_rate,
            vat=agg.vat,
            lot_number=lot_number,
        ))
        number += 1

        if client.displays_weight and agg.weight_kg > 0:
            lines.append(InvoiceLine(
                number=number,
                description=agg.description,
                code=agg.code,
                unit=WEIGHT_UNIT,
                quantity=round_qty(agg.weight_kg),
                unit_price=round_price(ZERO),
                value=round_money(ZERO),
                vat_rate=ZERO,
                vat=round_money(ZERO),
                lot_number=lot_number,
                is_weight_line=True,
            ))
            number += 1

    total = round_money(sum((line.value for line in lines), ZERO))
    total_vat = round_money(sum((line.vat for line in lines), ZERO))

    return InvoiceDocument(
        order_id=order.id,
        number=invoice_number,
        document_date=order.order_date,
        due_date=order.due_date or order.order_date,
        currency=CURRENCY,
        supplier=supplier_party(config),
        client=client_party(client),
        lines=tuple(lines),
        total=total,
        total_vat=total_vat,
        total_with_vat=round_money(total + total_vat),
    )


def build_invoices(
    orders: Sequence,
    snapshot: CatalogSnapshot,
    groups: Sequence,
    config,
    *,
    invoice_numbers: Mapping[int, str] | None = None,
    lot_number: int | None = None,
) -> list[InvoiceDocument]:
    invoice_numbers = invoice_numbers or {}
    return [
        build_invoice(
            order, snapshot, groups, config,
            invoice_number=invoice_numbers.get(order.id, ""),
            lot_number=lot_number,
        )
        for order in orders
    ]


def receipt_code(series: str, sequence: int, position: int) -> str:
    """CN<batch>-<position:03d>: unique across the batches of one date."""
    return f"{series}{sequence}-{position:03d}"


def build_receipts(
    orders: Sequence,
    snapshot: CatalogSnapshot,
    config,
    *,
    sequence: int,
    cash_account: str,
    groups: Sequence = (),
    invoice_numbers: Mapping[int, str] | None = None,
) -> list[ReceiptDocument]:
    """Receipt amounts are the assembled invoice totals, grouping included."""
    invoice_numbers = invoice_numbers or {}
    receipts = []
    for position, order in enumerate(orders, start=1):
        client = snapshot.client(order.client_id)
        invoice = build_invoice(order, snapshot, groups, config)
        receipts.append(ReceiptDocument(
            order_id=order.id,
            document_date=order.order_date,
            code=receipt_code(config.receipt_series or "", sequence, position),
            amount=invoice.total_with_vat,
            cash_account=cash_account,
            client_account=client.accounting_code or "",
            invoice_number=invoice_numbers.get(order.id, ""),
        ))
    return receipts


def build_production_rows(
    orders: Sequence,
    snapshot: CatalogSnapshot,
    *,
    lot_number: int,
) -> list[ProductionRow]:
    """One row per order line, numbered across the whole day."""
    rows = []
    number = 1
    for order in orders:
        for line in order.lines:
            product = snapshot.product(line.product_id)
            rows.append(ProductionRow(
                number=number,
                production_date=order.order_date,
                warehouse_name=snapshot.warehouse_name(product),
                product_code=product.code,
                description=product.description,
                lot_number=lot_number,
                unit=product.unit,
                quantity=round_qty(Decimal(line.quantity)),
                unit_price=round_price(Decimal(line.unit_price)),
                value=round_money(Decimal(line.line_value)),
                order_id=order.id,
            ))
            number += 1
    return rows


def _plain(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def document_to_dict(document) -> dict:
    """JSON-safe dict of any document dataclass (Decimals and dates as strings)."""
    return _plain(asdict(document))
