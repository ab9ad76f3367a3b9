"""
Export batch tests.

Verifies:
- One counter bump per batch, embedded in the file name
- Export flags are stamped together with the counter
- An empty batch fails and leaves the counter untouched
- The production export closes the day and records the LOT
"""

import pytest

from bakeryops.models import ExportState
from bakeryops.services import (
    day_status_service,
    export_counter_service,
    export_service,
    lot_service,
    order_service,
    local_invoice_service,
)
from bakeryops.validation import StateConflictError

from conftest import D1, D2


class TestInvoiceExport:
    def test_batch_bumps_counter_once(self, place_order):
        a = place_order("shop", D1, {"white": "1"})
        b = place_order("far", D1, {"white": "1"})

        result = export_service.export_invoices(D1)

        assert result["sequence"] == 1
        assert result["filename"] == "f_12345678_1_09-02-2026.XML"
        assert result["order_ids"] == [a.id, b.id]
        assert result["content"].count("<Factura>") == 2
        assert export_counter_service.peek(D1)["invoice"] == 1
        assert order_service.get_order(a.id).state == ExportState.INVOICE_EXPORTED

    def test_already_exported_orders_skipped(self, place_order):
        place_order("shop", D1, {"white": "1"})
        export_service.export_invoices(D1)
        late = place_order("far", D1, {"white": "1"})

        result = export_service.export_invoices(D1)

        assert result["sequence"] == 2
        assert result["order_ids"] == [late.id]

    def test_nothing_to_export_keeps_counter(self, place_order):
        place_order("shop", D1, {"white": "1"})
        export_service.export_invoices(D1)

        with pytest.raises(StateConflictError) as exc:
            export_service.export_invoices(D1)

        assert exc.value.code == "nothing_to_export"
        assert export_counter_service.peek(D1)["invoice"] == 1

    def test_empty_day(self, catalog):
        with pytest.raises(StateConflictError):
            export_service.export_invoices(D2)
        assert export_counter_service.peek(D2) == {"invoice": 0, "receipt": 0, "production": 0}

    def test_local_invoice_number_embedded(self, place_order):
        order = place_order("shop", D1, {"white": "1"})
        order_service.validate_order(order.id)
        invoice = local_invoice_service.generate_local_invoice(order.id)

        result = export_service.export_invoices(D1)

        assert f"<FacturaNumar>{invoice.invoice_code}</FacturaNumar>" in result["content"]


class TestReceiptExport:
    def test_receipt_batch(self, place_order):
        a = place_order("shop", D1, {"white": "1"})

        result = export_service.export_receipts(D1)

        assert result["filename"] == "I_12345678_1_09-02-2026.XML"
        assert "<Numar>CN1-001</Numar>" in result["content"]
        assert order_service.get_order(a.id).state == ExportState.RECEIPT_EXPORTED

    def test_both_exports_reach_fully_exported(self, place_order):
        a = place_order("shop", D1, {"white": "1"})

        export_service.export_receipts(D1)
        export_service.export_invoices(D1)

        assert order_service.get_order(a.id).state == ExportState.FULLY_EXPORTED
        assert export_counter_service.peek(D1) == {"invoice": 1, "receipt": 1, "production": 0}

    def test_invoice_export_then_receipt_export(self, place_order):
        a = place_order("shop", D1, {"white": "1"})
        export_service.export_invoices(D1)

        result = export_service.export_receipts(D1)

        assert result["order_ids"] == [a.id]
        assert order_service.get_order(a.id).state == ExportState.FULLY_EXPORTED


class TestProductionExport:
    def test_closes_day_with_lot(self, place_order, users):
        place_order("shop", D1, {"white": "3"})
        operator = users["operator"][0]

        result = export_service.export_production(D1, actor=operator)

        assert result["filename"] == "p_12345678_1_09-02-2026.CSV"
        assert result["lot_number"] == lot_service.current_lot()
        assert result["already_closed"] is False
        assert result["content"].splitlines()[0].startswith("nr,data,den_gest")
        status = day_status_service.get_status(D1)
        assert status.production_exported is True
        assert status.exported_by == "Ana Pop"
        assert status.lot_number == result["lot_number"]

    def test_closed_day_blocks_operator_saves(self, place_order):
        place_order("shop", D1, {"white": "3"})
        export_service.export_production(D1)

        with pytest.raises(StateConflictError) as exc:
            place_order("shop", D1, {"white": "4"})
        assert exc.value.code == "day_closed"

    def test_reexport_reports_already_closed(self, place_order):
        place_order("shop", D1, {"white": "3"})
        export_service.export_production(D1)

        result = export_service.export_production(D1)

        assert result["sequence"] == 2
        assert result["already_closed"] is True

    def test_production_includes_exported_orders(self, place_order):
        a = place_order("shop", D1, {"white": "3"})
        export_service.export_invoices(D1)

        result = export_service.export_production(D1)

        assert result["order_ids"] == [a.id]

    def test_empty_day_does_not_close(self, catalog):
        with pytest.raises(StateConflictError):
            export_service.export_production(D1)

        assert day_status_service.is_closed(D1) is False
        assert export_counter_service.peek(D1)["production"] == 0
