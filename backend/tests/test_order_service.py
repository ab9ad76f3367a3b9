"""
Order store tests.

Verifies:
- Totals are recomputed from frozen line prices (2 dp, half-up)
- Catalog price changes never touch stored lines
- Input validation (duplicate products, quantities, credit due dates)
- Closed days block changes unless overridden
- Invoice-exported orders are frozen; receipt-only exports are not
"""

from decimal import Decimal

import pytest

from bakeryops.extensions import db
from bakeryops.models import ExportState, Order, ProductPrice
from bakeryops.services import day_status_service, local_invoice_service, order_service
from bakeryops.validation import NotFoundError, StateConflictError, ValidationError

from conftest import D1, D2


class TestTotals:
    def test_totals_from_lines(self, place_order):
        order = place_order("shop", D1, {"white": "3", "cake": "2"})

        assert [line.position for line in order.lines] == [1, 2]
        white, cake = order.lines
        assert white.line_value == Decimal("7.50")
        # 7.50 * 11% = 0.825 -> 0.83
        assert white.line_vat == Decimal("0.83")
        assert cake.line_value == Decimal("5.00")
        assert cake.line_vat == Decimal("1.05")
        assert order.total == Decimal("12.50")
        assert order.total_vat == Decimal("1.88")
        assert order.total_with_vat == Decimal("14.38")

    def test_price_rounded_per_line(self, place_order):
        order = place_order("shop", D1, {"bun": "3"})

        # 0.3333 * 3 = 0.9999 -> 1.00
        assert order.total == Decimal("1.00")
        assert order.total_vat == Decimal("0.11")

    def test_zone_price_applies(self, place_order):
        order = place_order("far", D1, {"white": "10"})

        assert order.lines[0].unit_price == Decimal("2.70")
        assert order.total == Decimal("27.00")

    def test_quantity_rounded_to_three_places(self, place_order):
        order = place_order("shop", D1, {"white": "1.23456"})

        assert order.lines[0].quantity == Decimal("1.235")


class TestPriceFreezing:
    def test_catalog_change_does_not_touch_existing_lines(self, place_order, catalog):
        place_order("shop", D1, {"white": "2"})

        price = db.session.query(ProductPrice).filter_by(product_id=catalog["white"], zone="A").one()
        price.price = Decimal("3.00")
        db.session.commit()

        order = place_order("shop", D1, {"white": "4", "dark": "1"})
        white, dark = order.lines

        assert white.unit_price == Decimal("2.50")
        assert white.line_value == Decimal("10.00")
        assert dark.unit_price == Decimal("2.50")

    def test_new_product_takes_current_price(self, place_order, catalog):
        place_order("shop", D1, {"white": "2"})
        price = db.session.query(ProductPrice).filter_by(product_id=catalog["dark"], zone="A").one()
        price.price = Decimal("2.90")
        db.session.commit()

        order = place_order("shop", D1, {"white": "2", "dark": "1"})

        assert order.lines[1].unit_price == Decimal("2.90")


class TestValidation:
    def test_duplicate_product_rejected(self, catalog):
        payload = {
            "date": D1.isoformat(),
            "client_id": catalog["shop"],
            "items": [
                {"product_id": catalog["white"], "quantity": 1},
                {"product_id": catalog["white"], "quantity": 2},
            ],
        }
        with pytest.raises(ValidationError):
            order_service.submit_order(payload)

    @pytest.mark.parametrize("quantity", [0, "-1", "abc", None])
    def test_bad_quantity_rejected(self, catalog, quantity):
        payload = {
            "date": D1.isoformat(),
            "client_id": catalog["shop"],
            "items": [{"product_id": catalog["white"], "quantity": quantity}],
        }
        with pytest.raises(ValidationError):
            order_service.submit_order(payload)

    def test_empty_items_rejected(self, catalog):
        with pytest.raises(ValidationError):
            order_service.submit_order({"date": D1.isoformat(), "client_id": catalog["shop"], "items": []})

    def test_malformed_date(self, catalog):
        payload = {"date": "09.02.2026", "client_id": catalog["shop"],
                   "items": [{"product_id": catalog["white"], "quantity": 1}]}
        with pytest.raises(ValidationError) as exc:
            order_service.submit_order(payload)
        assert exc.value.code == "malformed_date"

    def test_missing_zone_price(self, place_order):
        # Cozonac has no zone B price
        with pytest.raises(ValidationError) as exc:
            place_order("far", D1, {"cake": "1"})
        assert exc.value.code == "missing_price"

    def test_credit_requires_due_date(self, place_order):
        with pytest.raises(ValidationError) as exc:
            place_order("shop", D1, {"white": "1"}, payment_type="credit")
        assert exc.value.code == "missing_fields"

    def test_credit_due_date_not_before_order(self, place_order):
        with pytest.raises(ValidationError):
            place_order("shop", D2, {"white": "1"}, payment_type="credit", due_date=D1.isoformat())

    def test_credit_order_saved(self, place_order):
        order = place_order("shop", D1, {"white": "1"}, payment_type="credit", due_date="2026-02-23")

        assert order.payment_type == "credit"
        assert order.due_date.isoformat() == "2026-02-23"


class TestUpsert:
    def test_same_client_and_date_updates(self, place_order, catalog):
        first = place_order("shop", D1, {"white": "1"})
        second = place_order("shop", D1, {"dark": "2"})

        assert first.id == second.id
        assert db.session.query(Order).count() == 1
        assert [line.product_id for line in second.lines] == [catalog["dark"]]
        assert second.total == Decimal("5.00")

    def test_update_by_id_cannot_move_order(self, place_order, catalog):
        order = place_order("shop", D1, {"white": "1"})
        payload = {"date": D2.isoformat(), "client_id": catalog["shop"],
                   "items": [{"product_id": catalog["white"], "quantity": 1}]}

        with pytest.raises(ValidationError):
            order_service.submit_order(payload, order_id=order.id)

    def test_update_unknown_id(self, catalog):
        payload = {"date": D1.isoformat(), "client_id": catalog["shop"],
                   "items": [{"product_id": catalog["white"], "quantity": 1}]}
        with pytest.raises(NotFoundError):
            order_service.submit_order(payload, order_id=424242)

    def test_save_resets_validation(self, place_order):
        order = place_order("shop", D1, {"white": "1"})
        order_service.validate_order(order.id)

        order = place_order("shop", D1, {"white": "2"})

        assert order.validated is False

    def test_list_orders_by_date(self, place_order, catalog):
        place_order("shop", D1, {"white": "1"})
        place_order("far", D1, {"white": "1"})
        place_order("shop", D2, {"white": "1"})

        assert len(order_service.list_orders(D1)) == 2
        assert len(order_service.list_orders(D1, client_id=catalog["far"])) == 1


class TestClosedDay:
    def test_closed_day_blocks_save(self, place_order):
        place_order("shop", D1, {"white": "1"})
        day_status_service.close_day(D1, exported_by="Ana", lot_number=2)

        with pytest.raises(StateConflictError) as exc:
            place_order("shop", D1, {"white": "5"})
        assert exc.value.code == "day_closed"

        with pytest.raises(StateConflictError):
            place_order("far", D1, {"white": "5"})

    def test_closed_day_blocks_delete(self, place_order):
        order = place_order("shop", D1, {"white": "1"})
        day_status_service.close_day(D1, exported_by="Ana", lot_number=2)

        with pytest.raises(StateConflictError) as exc:
            order_service.delete_order(order.id)
        assert exc.value.code == "day_closed"

    def test_override_allows_save(self, place_order):
        place_order("shop", D1, {"white": "1"})
        day_status_service.close_day(D1, exported_by="Ana", lot_number=2)

        order = place_order("shop", D1, {"white": "5"}, override=True)

        assert order.total == Decimal("12.50")

    def test_reopen_allows_save(self, place_order):
        place_order("shop", D1, {"white": "1"})
        day_status_service.close_day(D1, exported_by="Ana", lot_number=2)
        day_status_service.reopen_day(D1, unlocked_by="Administrator")

        order = place_order("shop", D1, {"white": "5"})

        assert order.total == Decimal("12.50")

    def test_other_day_unaffected(self, place_order):
        day_status_service.close_day(D1, exported_by="Ana", lot_number=2)

        order = place_order("shop", D2, {"white": "1"})

        assert order.order_date == D2


class TestExportState:
    def test_mark_exported_transitions(self, place_order):
        order = place_order("shop", D1, {"white": "1"})

        order_service.mark_exported([order.id], order_service.EXPORT_RECEIPT)
        assert order.state == ExportState.RECEIPT_EXPORTED

        order_service.mark_exported([order.id], order_service.EXPORT_INVOICE)
        assert order.state == ExportState.FULLY_EXPORTED

        # Marking again is a no-op
        order_service.mark_exported([order.id], order_service.EXPORT_RECEIPT)
        assert order.state == ExportState.FULLY_EXPORTED

    def test_mark_exported_unknown_id(self, place_order):
        order = place_order("shop", D1, {"white": "1"})

        with pytest.raises(NotFoundError):
            order_service.mark_exported([order.id, 999], order_service.EXPORT_INVOICE)

    def test_unknown_export_field(self):
        with pytest.raises(ValidationError):
            order_service.next_state(ExportState.OPEN, "production")

    def test_invoice_exported_is_frozen(self, place_order):
        order = place_order("shop", D1, {"white": "1"})
        order_service.mark_exported([order.id], order_service.EXPORT_INVOICE)

        with pytest.raises(StateConflictError) as exc:
            place_order("shop", D1, {"white": "2"})
        assert exc.value.code == "already_exported"

        with pytest.raises(StateConflictError) as exc:
            order_service.delete_order(order.id)
        assert exc.value.code == "already_exported"

    def test_override_does_not_unfreeze(self, place_order):
        order = place_order("shop", D1, {"white": "1"})
        order_service.mark_exported([order.id], order_service.EXPORT_INVOICE)

        with pytest.raises(StateConflictError):
            place_order("shop", D1, {"white": "2"}, override=True)

    def test_receipt_only_still_editable_and_deletable(self, place_order):
        order = place_order("shop", D1, {"white": "1"})
        order_service.mark_exported([order.id], order_service.EXPORT_RECEIPT)

        order = place_order("shop", D1, {"white": "2"})
        assert order.state == ExportState.RECEIPT_EXPORTED

        order_service.delete_order(order.id)
        assert db.session.query(Order).count() == 0


class TestDelete:
    def test_delete_removes_lines(self, place_order):
        order = place_order("shop", D1, {"white": "1", "dark": "1"})

        order_service.delete_order(order.id)

        assert db.session.query(Order).count() == 0
        with pytest.raises(NotFoundError):
            order_service.get_order(order.id)

    def test_delete_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.delete_order(12345)

    def test_issued_invoice_blocks_delete(self, place_order):
        order = place_order("shop", D1, {"white": "1"})
        order_service.validate_order(order.id)
        local_invoice_service.generate_local_invoice(order.id)

        with pytest.raises(StateConflictError) as exc:
            order_service.delete_order(order.id)
        assert exc.value.code == "invoice_issued"


def test_package_sources_compile_without_warnings():
    import warnings
    from pathlib import Path

    import bakeryops

    root = Path(bakeryops.__file__).parent
    for path in sorted(root.rglob("*.py")):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            compile(path.read_text(encoding="utf-8"), str(path), "exec")
