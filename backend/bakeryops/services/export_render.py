# Overview: XML/CSV renderings of assembled documents for the accounting import.

from __future__ import annotations

import csv
import io
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal
from typing import Sequence

from bakeryops.time_utils import to_ro_date
from .document_service import InvoiceDocument, ProductionRow, ReceiptDocument


PRODUCTION_HEADER = [
    "nr", "data", "den_gest", "cod", "denumire", "lot", "um",
    "cantitate", "pret", "valoare", "consumuri", "comanda", "explicatie",
]


def export_filename(prefix: str, cif_digits: str, sequence: int, export_date: date, extension: str) -> str:
    """e.g. f_12345678_3_09-02-2026.XML"""
    return f"{prefix}_{cif_digits}_{sequence}_{export_date.strftime('%d-%m-%Y')}.{extension}"


def invoice_filename(cif_digits: str, sequence: int, export_date: date) -> str:
    return export_filename("f", cif_digits, sequence, export_date, "XML")


def receipt_filename(cif_digits: str, sequence: int, export_date: date) -> str:
    return export_filename("I", cif_digits, sequence, export_date, "XML")


def production_filename(cif_digits: str, sequence: int, export_date: date) -> str:
    return export_filename("p", cif_digits, sequence, export_date, "CSV")


def _fmt(value: Decimal) -> str:
    return format(value, "f")


def _rate(value: Decimal) -> str:
    # 11.00 -> 11, 5.50 -> 5.5
    return format(Decimal(value).normalize(), "f")


def _sub(parent: ET.Element, tag: str, text: str | None = "") -> ET.Element:
    el = ET.SubElement(parent, tag)
    el.text = text
    return el


def _to_xml(root: ET.Element) -> str:
    ET.indent(root, space="  ")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"


def render_invoices_xml(invoices: Sequence[InvoiceDocument]) -> str:
    root = ET.Element("Facturi")
    for doc in invoices:
        factura = ET.SubElement(root, "Factura")

        antet = ET.SubElement(factura, "Antet")
        _sub(antet, "FurnizorNume", doc.supplier.name)
        _sub(antet, "FurnizorCIF", doc.supplier.cif)
        _sub(antet, "FurnizorNrRegCom", doc.supplier.registration_number)
        _sub(antet, "FurnizorCapital", "0.00")
        _sub(antet, "FurnizorAdresa", doc.supplier.street)
        _sub(antet, "FurnizorBanca", doc.supplier.bank)
        _sub(antet, "FurnizorIBAN", doc.supplier.iban)
        _sub(antet, "ClientNume", doc.client.name)
        _sub(antet, "ClientCIF", doc.client.cif)
        _sub(antet, "ClientNrRegCom", doc.client.registration_number)
        _sub(antet, "ClientJudet", doc.client.county)
        _sub(antet, "ClientLocalitate", doc.client.locality)
        _sub(antet, "ClientTara", "RO")
        _sub(antet, "ClientAdresa", doc.client.street)
        _sub(antet, "FacturaNumar", doc.number)
        _sub(antet, "FacturaData", to_ro_date(doc.document_date))
        _sub(antet, "FacturaScadenta", to_ro_date(doc.due_date))
        _sub(antet, "FacturaTaxareInversa", "Nu")
        _sub(antet, "FacturaTVAIncasare", "Nu")
        _sub(antet, "FacturaMoneda", doc.currency)
        _sub(antet, "FacturaCotaTVA", f"TVA ({_rate(doc.vat_rate)}%)" if doc.vat_rate is not None else "")

        detalii = ET.SubElement(factura, "Detalii")
        continut = ET.SubElement(detalii, "Continut")
        for line in doc.lines:
            linie = ET.SubElement(continut, "Linie")
            _sub(linie, "LinieNrCrt", str(line.number))
            _sub(linie, "Descriere", line.description)
            _sub(linie, "CodArticolFurnizor", line.code)
            _sub(linie, "CodArticolClient", "")
            _sub(linie, "InformatiiSuplimentare", f"Lot:{line.lot_number}" if line.lot_number is not None else "")
            _sub(linie, "UM", line.unit)
            _sub(linie, "Cantitate", _fmt(line.quantity))
            _sub(linie, "Pret", _fmt(line.unit_price))
            _sub(linie, "Valoare", _fmt(line.value))
            _sub(linie, "ProcTVA", _rate(line.vat_rate))
            _sub(linie, "TVA", _fmt(line.vat))

        sumar = ET.SubElement(factura, "Sumar")
        _sub(sumar, "TotalValoare", _fmt(doc.total))
        _sub(sumar, "TotalTVA", _fmt(doc.total_vat))
        _sub(sumar, "Total", _fmt(doc.total_with_vat))

    return _to_xml(root)


def render_receipts_xml(receipts: Sequence[ReceiptDocument]) -> str:
    root = ET.Element("Incasari")
    for receipt in receipts:
        linie = ET.SubElement(root, "Linie")
        _sub(linie, "Data", to_ro_date(receipt.document_date))
        _sub(linie, "Numar", receipt.code)
        _sub(linie, "Suma", _fmt(receipt.amount))
        _sub(linie, "Cont", receipt.cash_account)
        _sub(linie, "ContClient", receipt.client_account)
        _sub(linie, "FacturaNumar", receipt.invoice_number)
    return _to_xml(root)


def render_production_csv(rows: Sequence[ProductionRow]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(PRODUCTION_HEADER)
    for row in rows:
        writer.writerow([
            row.number,
            row.production_date.isoformat(),
            row.warehouse_name,
            row.product_code,
            row.description,
            row.lot_number,
            row.unit,
            _fmt(row.quantity),
            _fmt(row.unit_price),
            _fmt(row.value),
            0,
            row.order_id,
            "",
        ])
    return buffer.getvalue()
