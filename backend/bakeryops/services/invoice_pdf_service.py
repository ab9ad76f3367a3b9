# Overview: Best-effort PDF rendering of local invoices (reportlab), off the request thread.

from __future__ import annotations

import os
import threading

from flask import current_app
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from ..extensions import db
from ..models import LocalInvoice
from bakeryops.time_utils import to_ro_date, parse_iso_date


_FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
)
_font_lock = threading.Lock()
_font_name = None


def _font() -> str:
    """DejaVuSans when installed (Romanian diacritics), Helvetica otherwise."""
    global _font_name
    with _font_lock:
        if _font_name is None:
            _font_name = "Helvetica"
            for path in _FONT_CANDIDATES:
                if os.path.exists(path):
                    pdfmetrics.registerFont(TTFont("DejaVuSans", path))
                    _font_name = "DejaVuSans"
                    break
        return _font_name


def pdf_filename(invoice: LocalInvoice) -> str:
    return f"{invoice.invoice_code}.pdf"


def render_invoice_pdf(invoice: LocalInvoice, directory: str) -> str:
    """Draw the invoice snapshot to <directory>/<code>.pdf and return the path."""
    snapshot = invoice.snapshot or {}
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, pdf_filename(invoice))
    tmp_path = path + ".tmp"

    font = _font()
    c = canvas.Canvas(tmp_path, pagesize=A4)
    width, height = A4
    left_margin = 15 * mm
    line_height = 6 * mm
    y = height - 20 * mm

    def draw(text, font_size=10, x=left_margin):
        nonlocal y
        if y < 20 * mm:
            c.showPage()
            y = height - 20 * mm
        c.setFont(font, font_size)
        c.drawString(x, y, str(text)[:110])
        y -= line_height

    supplier = snapshot.get("supplier", {})
    client = snapshot.get("client", {})
    document_date = snapshot.get("document_date")
    due_date = snapshot.get("due_date")

    draw(f"FACTURA {invoice.invoice_code}", font_size=14)
    draw(f"Data: {to_ro_date(parse_iso_date(document_date)) if document_date else ''}")
    draw(f"Scadenta: {to_ro_date(parse_iso_date(due_date)) if due_date else ''}")
    y -= 4 * mm
    draw(f"Furnizor: {supplier.get('name', '')}  CIF: {supplier.get('cif', '')}  {supplier.get('registration_number', '')}")
    draw(f"{supplier.get('street', '')}, {supplier.get('locality', '')}, {supplier.get('county', '')}")
    draw(f"{supplier.get('bank', '')} {supplier.get('iban', '')}")
    y -= 4 * mm
    draw(f"Client: {client.get('name', '')}  CIF: {client.get('cif', '')}  {client.get('registration_number', '')}")
    draw(f"{client.get('street', '')}, {client.get('locality', '')}, {client.get('county', '')}")
    y -= 4 * mm

    draw("Nr  Denumire                                UM    Cantitate       Pret     Valoare   TVA%      TVA", font_size=9)
    for line in snapshot.get("lines", []):
        draw(
            f"{line['number']:<3} {line['description'][:38]:<38} {line['unit']:<5} "
            f"{line['quantity']:>10} {line['unit_price']:>10} {line['value']:>10} "
            f"{line['vat_rate']:>6} {line['vat']:>8}",
            font_size=9,
        )

    y -= 4 * mm
    draw(f"Total fara TVA: {snapshot.get('total', invoice.total)} {snapshot.get('currency', 'RON')}")
    draw(f"TVA: {snapshot.get('total_vat', invoice.total_vat)}")
    draw(f"Total de plata: {snapshot.get('total_with_vat', invoice.total_with_vat)}", font_size=12)

    c.showPage()
    c.save()
    os.replace(tmp_path, path)
    return path


def render_and_store(invoice_id: int) -> str | None:
    """
    Render one invoice and record its path.

    Failures are logged and swallowed: the invoice number is already
    committed and stays valid without a PDF.
    """
    try:
        invoice = db.session.get(LocalInvoice, invoice_id)
        if invoice is None:
            current_app.logger.warning("PDF skipped: invoice %s no longer exists", invoice_id)
            return None
        path = render_invoice_pdf(invoice, current_app.config["INVOICE_PDF_DIR"])
        invoice.pdf_path = path
        db.session.commit()
        current_app.logger.info("PDF rendered for invoice %s at %s", invoice.invoice_code, path)
        return path
    except Exception:
        db.session.rollback()
        current_app.logger.warning("PDF rendering failed for invoice %s", invoice_id, exc_info=True)
        return None


def _background_job(app, invoice_id: int) -> None:
    with app.app_context():
        try:
            render_and_store(invoice_id)
        finally:
            db.session.remove()


def schedule_render(invoice_id: int) -> threading.Thread | None:
    """
    Start rendering without blocking the caller.

    With INVOICE_PDF_ASYNC off the PDF is rendered inline (tests, CLI).
    """
    app = current_app._get_current_object()
    if not app.config.get("INVOICE_PDF_ASYNC", True):
        render_and_store(invoice_id)
        return None

    thread = threading.Thread(
        target=_background_job,
        args=(app, invoice_id),
        name=f"invoice-pdf-{invoice_id}",
        daemon=True,
    )
    thread.start()
    return thread
