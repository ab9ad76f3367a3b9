"""
Product group tests.

Verifies:
- Save-time uniformity checks (price per zone, VAT) with actionable codes
- Membership rules (master is a member, one group per product)
- Invoice line aggregation order, totals and weight
"""

from decimal import Decimal

import pytest

from bakeryops.extensions import db
from bakeryops.models import Product, ProductGroupMember, ProductPrice
from bakeryops.services import (
    catalog_service,
    document_service,
    export_service,
    order_service,
    product_group_service,
    settings_service,
)
from bakeryops.validation import NotFoundError, StateConflictError, ValidationError

from conftest import D1


def _group(catalog, *keys, master=None):
    ids = [catalog[k] for k in keys]
    return product_group_service.save_group({
        "member_product_ids": ids,
        "master_product_id": catalog[master or keys[0]],
    })


def _product(catalog, key, code, prices, vat="11"):
    product = Product(code=code, description=f"Produs {code}", unit="BUC", vat_rate=Decimal(vat),
                      weight_kg=Decimal("0.500"), warehouse_id=catalog["warehouse"], is_active=True)
    product.prices = [ProductPrice(zone=zone, price=Decimal(price)) for zone, price in prices.items()]
    db.session.add(product)
    db.session.commit()
    catalog[key] = product.id
    return product


def _set_price(catalog, key, zone, price):
    row = db.session.query(ProductPrice).filter_by(product_id=catalog[key], zone=zone).one()
    row.price = Decimal(price)
    db.session.commit()


class TestValidateMembers:
    def test_uniform_members(self, catalog):
        pricing = product_group_service.validate_members([catalog["white"], catalog["dark"]])

        assert pricing.price == Decimal("2.5000")
        assert pricing.vat_rate == Decimal("11")
        assert pricing.price_zone == "A"

    def test_vat_mismatch(self, catalog):
        with pytest.raises(ValidationError) as exc:
            product_group_service.validate_members([catalog["white"], catalog["cake"]])

        assert exc.value.code == "group_vat_mismatch"
        assert exc.value.details["product_id"] == catalog["cake"]
        assert "Cozonac" in exc.value.message

    def test_price_mismatch(self, catalog):
        with pytest.raises(ValidationError) as exc:
            product_group_service.validate_members([catalog["white"], catalog["pretzel"]])

        assert exc.value.code == "group_price_mismatch"
        assert Decimal(exc.value.details["price"]) == Decimal("1.20")
        assert exc.value.details["zone"] == "A"

    def test_explicit_zone_missing_price(self, catalog):
        with pytest.raises(ValidationError) as exc:
            product_group_service.validate_members([catalog["white"], catalog["cake"]], "B")
        assert exc.value.code == "missing_price"

    def test_explicit_zone_compares_that_zone(self, catalog):
        pricing = product_group_service.validate_members([catalog["white"], catalog["dark"]], "B")

        assert pricing.price == Decimal("2.7000")
        assert pricing.price_zone == "B"

    def test_every_priced_zone_compared(self, catalog):
        _product(catalog, "white2", "PA02", {"A": "2.50", "B": "2.90"})

        with pytest.raises(ValidationError) as exc:
            product_group_service.validate_members([catalog["white"], catalog["white2"]])

        assert exc.value.code == "group_price_mismatch"
        assert exc.value.details["zone"] == "B"
        assert exc.value.details["product_id"] == catalog["white2"]

    def test_member_missing_a_zone_price(self, catalog):
        _product(catalog, "white2", "PA02", {"A": "2.50"})

        with pytest.raises(ValidationError) as exc:
            product_group_service.validate_members([catalog["white"], catalog["white2"]])

        assert exc.value.code == "missing_price"
        assert exc.value.details["zone"] == "B"

    def test_too_small(self, catalog):
        with pytest.raises(ValidationError) as exc:
            product_group_service.validate_members([catalog["white"]])
        assert exc.value.code == "group_too_small"

    def test_duplicates_rejected(self, catalog):
        with pytest.raises(ValidationError):
            product_group_service.validate_members([catalog["white"], catalog["white"]])

    def test_unknown_product(self, catalog):
        with pytest.raises(NotFoundError):
            product_group_service.validate_members([catalog["white"], 424242])


class TestSaveGroup:
    def test_create_takes_master_identity(self, catalog):
        group = _group(catalog, "white", "dark", master="dark")

        assert group.name == "Paine neagra"
        assert group.master_product_code == "PN01"
        assert group.member_product_ids == [catalog["white"], catalog["dark"]]
        assert group.price == Decimal("2.50")
        assert product_group_service.group_for(catalog["white"]).id == group.id

    def test_create_commits_complete_row(self, catalog):
        group = _group(catalog, "white", "dark")
        group_id = group.id
        db.session.expire_all()

        stored = product_group_service.get_group(group_id)

        assert stored.name == "Paine alba"
        assert stored.vat_rate == Decimal("11")
        assert stored.price_zone == "A"
        assert [m.position for m in stored.members] == [0, 1]

    def test_master_must_be_member(self, catalog):
        with pytest.raises(ValidationError) as exc:
            product_group_service.save_group({
                "member_product_ids": [catalog["white"], catalog["dark"]],
                "master_product_id": catalog["pretzel"],
            })
        assert exc.value.code == "master_not_member"

    def test_product_in_one_group_only(self, catalog):
        _group(catalog, "white", "dark")

        with pytest.raises(StateConflictError) as exc:
            product_group_service.save_group({
                "member_product_ids": [catalog["dark"], catalog["white"]],
                "master_product_id": catalog["dark"],
            })
        assert exc.value.code == "product_already_grouped"

    def test_update_replaces_members(self, catalog):
        group = _group(catalog, "white", "dark")

        updated = product_group_service.save_group(
            {"member_product_ids": [catalog["dark"], catalog["white"]], "master_product_id": catalog["dark"]},
            group_id=group.id,
        )

        assert updated.id == group.id
        assert updated.member_product_ids == [catalog["dark"], catalog["white"]]
        assert updated.name == "Paine neagra"
        assert db.session.query(ProductGroupMember).count() == 2

    def test_update_unknown_group(self, catalog):
        with pytest.raises(NotFoundError):
            product_group_service.save_group(
                {"member_product_ids": [catalog["white"], catalog["dark"]], "master_product_id": catalog["white"]},
                group_id=999,
            )

    def test_delete_frees_products(self, catalog):
        group = _group(catalog, "white", "dark")

        product_group_service.delete_group(group.id)

        assert product_group_service.list_groups() == []
        assert product_group_service.group_for(catalog["white"]) is None
        assert db.session.query(ProductGroupMember).count() == 0


class TestAggregation:
    def _invoice(self, order):
        groups = product_group_service.list_groups()
        product_ids = {line.product_id for line in order.lines} | {g.master_product_id for g in groups}
        snapshot = catalog_service.snapshot(product_ids=product_ids, client_ids=[order.client_id])
        return document_service.build_invoice(
            order, snapshot, groups, settings_service.get_company_config(), invoice_number="FAC-000001", lot_number=6
        )

    def test_group_folds_into_one_line(self, catalog, place_order):
        _group(catalog, "white", "dark")
        order = place_order("shop", D1, {"white": "3", "dark": "5"})

        doc = self._invoice(order)

        assert len(doc.lines) == 1
        line = doc.lines[0]
        assert line.description == "Paine alba"
        assert line.code == "PA01"
        assert line.quantity == Decimal("8.000")
        assert line.value == Decimal("20.00")
        assert line.vat == Decimal("2.20")
        assert line.lot_number == 6
        assert doc.total_with_vat == Decimal("22.20")

    def test_grouped_lines_come_first(self, catalog, place_order):
        _group(catalog, "white", "dark")
        order = place_order("shop", D1, {"cake": "1", "white": "1", "pretzel": "2", "dark": "1"})

        doc = self._invoice(order)

        assert [line.code for line in doc.lines] == ["PA01", "CZ01", "CV01"]
        assert [line.number for line in doc.lines] == [1, 2, 3]

    def test_groups_in_definition_order(self, catalog, place_order):
        _product(catalog, "cake2", "CZ02", {"A": "2.50"}, vat="21")

        first = _group(catalog, "cake", "cake2")
        second = _group(catalog, "white", "dark")
        order = place_order("shop", D1, {"white": "1", "cake2": "1", "pretzel": "1"})

        doc = self._invoice(order)

        assert second.id > first.id
        assert [line.code for line in doc.lines] == ["CZ01", "PA01", "CV01"]

    def test_weight_line_for_weighing_client(self, catalog, place_order):
        _group(catalog, "white", "dark")
        order = place_order("weigher", D1, {"white": "2", "dark": "5", "cake": "1"})

        doc = self._invoice(order)

        assert [(line.unit, line.is_weight_line) for line in doc.lines] == [
            ("BUC", False), ("KG", True), ("BUC", False), ("KG", True),
        ]
        # 2 * 0.5 + 5 * 0.4
        assert doc.lines[1].quantity == Decimal("3.000")
        assert doc.lines[1].value == Decimal("0.00")
        assert doc.lines[3].quantity == Decimal("1.000")
        assert doc.total == Decimal("20.00")

    def test_zone_b_client_uses_frozen_zone_price(self, catalog, place_order):
        _group(catalog, "white", "dark")
        order = place_order("far", D1, {"white": "3", "dark": "5"})

        doc = self._invoice(order)

        line = doc.lines[0]
        assert line.unit_price == Decimal("2.7000")
        assert line.value == Decimal("21.60")
        assert line.vat == Decimal("2.38")
        assert doc.total_with_vat == Decimal("23.98")
        assert doc.total_with_vat == Decimal(order.total_with_vat)

    def test_resaved_group_does_not_reprice_orders(self, catalog, place_order):
        group = _group(catalog, "white", "dark")
        order = place_order("shop", D1, {"white": "3", "dark": "5"})
        _set_price(catalog, "white", "A", "2.60")
        _set_price(catalog, "dark", "A", "2.60")

        resaved = product_group_service.save_group(
            {"member_product_ids": [catalog["white"], catalog["dark"]], "master_product_id": catalog["white"]},
            group_id=group.id,
        )
        doc = self._invoice(order)

        assert resaved.price == Decimal("2.60")
        assert doc.lines[0].unit_price == Decimal("2.5000")
        assert doc.total_with_vat == Decimal("22.20")

    def test_members_frozen_at_different_prices_conflict(self, catalog, place_order):
        place_order("shop", D1, {"white": "3"})
        _set_price(catalog, "white", "A", "2.60")
        _set_price(catalog, "dark", "A", "2.60")
        _group(catalog, "white", "dark")
        # white keeps its stored 2.50, dark is priced at today's 2.60
        order = place_order("shop", D1, {"white": "3", "dark": "5"})

        with pytest.raises(StateConflictError) as exc:
            self._invoice(order)

        assert exc.value.code == "group_price_conflict"
        assert exc.value.details["product_id"] == catalog["dark"]
        assert Decimal(exc.value.details["reference_unit_price"]) == Decimal("2.50")


class TestGroupedReceipts:
    def test_receipt_matches_grouped_invoice(self, catalog, place_order):
        _group(catalog, "white", "dark")
        order = place_order("far", D1, {"white": "3", "dark": "5"})

        invoices = export_service.export_invoices(D1)
        receipts = export_service.export_receipts(D1)

        assert "<Total>23.98</Total>" in invoices["content"]
        assert "<Suma>23.98</Suma>" in receipts["content"]
        assert order_service.get_order(order.id).total_with_vat == Decimal("23.98")
