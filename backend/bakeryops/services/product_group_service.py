# Overview: Product groups; save-time price/VAT validation and invoice line aggregation.

"""
Product groups.

A group is a set of interchangeable catalog products sharing one price and
one VAT rate. On exported invoices every order line whose product belongs to
a group is folded into a single line named after the group's master product.

Uniformity is checked when the group is saved: members are compared at a
reference price zone (the explicit one, or the first member's first priced
zone) and then in every other zone any member is priced in, within
PRICE_GROUP_EPSILON. At export the folded line uses the members' frozen
line prices, so later catalog or group changes never reprice an order.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, ProductGroup, ProductGroupMember
from ..validation import (
    NotFoundError,
    StateConflictError,
    ValidationError,
    coerce_int,
    require_fields,
    round_money,
    round_price,
    round_qty,
)
from . import catalog_service
from .concurrency import begin_write, run_with_retry
from .money import line_amounts


MIN_MEMBERS = 2


@dataclass(frozen=True)
class GroupPricing:
    price: Decimal
    vat_rate: Decimal
    price_zone: str


@dataclass(frozen=True)
class AggregatedLine:
    """One invoice line: either a whole group or a single ungrouped order line."""
    product_id: int | None
    group_id: int | None
    code: str
    description: str
    unit: str
    quantity: Decimal
    unit_price: Decimal
    value: Decimal
    vat_rate: Decimal
    vat: Decimal
    weight_kg: Decimal


def _epsilon() -> Decimal:
    return Decimal(str(current_app.config.get("PRICE_GROUP_EPSILON", "0.001")))


def _reference_zone(first: Product, zone: str | None) -> str:
    if zone:
        return zone
    if not first.prices:
        raise ValidationError(
            f"Product {first.code} has no price in any zone",
            code="missing_price",
            details={"product_id": first.id},
        )
    return first.prices[0].zone


def _member_zones(products: Sequence[Product], reference: str) -> list[str]:
    zones = {price.zone for product in products for price in product.prices}
    zones.discard(reference)
    return [reference] + sorted(zones)


def _check_zone_price(product: Product, first: Product, zone: str, epsilon: Decimal) -> None:
    base_price = catalog_service.price_for(first, zone)
    price = catalog_service.price_for(product, zone)
    if abs(price - base_price) > epsilon:
        raise ValidationError(
            f"Price mismatch: {product.description} costs {price} but {first.description} costs {base_price} (zone {zone})",
            code="group_price_mismatch",
            details={
                "product_id": product.id,
                "reference_product_id": first.id,
                "price": str(price),
                "reference_price": str(base_price),
                "zone": zone,
            },
        )


def validate_members(member_ids: Sequence[int], price_zone_reference: str | None = None) -> GroupPricing:
    """
    Check that every member shares the first member's price and VAT rate.

    Prices are compared in the reference zone first, then in every other
    zone any member is priced in; a member without a price in such a zone
    fails with missing_price. Raises ValidationError with code
    group_price_mismatch / group_vat_mismatch naming the offending product;
    returns the shared pricing at the reference zone otherwise.
    """
    ids = list(member_ids)
    if len(ids) < MIN_MEMBERS:
        raise ValidationError(
            f"A product group needs at least {MIN_MEMBERS} products",
            code="group_too_small",
            details={"member_product_ids": ids},
        )
    if len(set(ids)) != len(ids):
        raise ValidationError("A product appears more than once in the group", details={"member_product_ids": ids})

    products = [catalog_service.get_product(pid) for pid in ids]
    first = products[0]
    zone = _reference_zone(first, price_zone_reference)
    epsilon = _epsilon()

    base_price = catalog_service.price_for(first, zone)
    base_vat = Decimal(first.vat_rate)

    for product in products[1:]:
        _check_zone_price(product, first, zone, epsilon)
        vat = Decimal(product.vat_rate)
        if abs(vat - base_vat) > epsilon:
            raise ValidationError(
                f"VAT mismatch: {product.description} has {vat}% but {first.description} has {base_vat}%",
                code="group_vat_mismatch",
                details={
                    "product_id": product.id,
                    "reference_product_id": first.id,
                    "vat_rate": str(vat),
                    "reference_vat_rate": str(base_vat),
                },
            )

    for other_zone in _member_zones(products, zone)[1:]:
        for product in products[1:]:
            _check_zone_price(product, first, other_zone, epsilon)

    return GroupPricing(price=round_price(base_price), vat_rate=base_vat, price_zone=zone)


def _parse_group_payload(payload: dict) -> tuple[list[int], int, str | None]:
    require_fields(payload, ["member_product_ids", "master_product_id"])
    raw_ids = payload["member_product_ids"]
    if not isinstance(raw_ids, list):
        raise ValidationError("member_product_ids must be a list", details={"field": "member_product_ids"})
    member_ids = [coerce_int(v, "member_product_ids") for v in raw_ids]
    master_id = coerce_int(payload["master_product_id"], "master_product_id")
    if master_id not in member_ids:
        raise ValidationError(
            "The master product must be one of the group members",
            code="master_not_member",
            details={"master_product_id": master_id},
        )
    zone = payload.get("price_zone") or None
    return member_ids, master_id, zone


def _ensure_not_in_other_group(member_ids: Iterable[int], group_id: int | None) -> None:
    query = db.session.query(ProductGroupMember).filter(ProductGroupMember.product_id.in_(list(member_ids)))
    if group_id is not None:
        query = query.filter(ProductGroupMember.group_id != group_id)
    taken = query.order_by(ProductGroupMember.product_id).all()
    if taken:
        raise StateConflictError(
            f"Product {taken[0].product_id} already belongs to group {taken[0].group_id}",
            code="product_already_grouped",
            details={"assignments": {str(m.product_id): m.group_id for m in taken}},
        )


def save_group(payload: dict, *, group_id: int | None = None) -> ProductGroup:
    """
    Create (group_id None) or replace a product group.

    Name and code always come from the master product; price and VAT are
    the validated shared values.
    """
    member_ids, master_id, zone = _parse_group_payload(payload)
    pricing = validate_members(member_ids, zone)
    master = catalog_service.get_product(master_id)

    def _op() -> ProductGroup:
        begin_write()
        if group_id is not None:
            group = db.session.get(ProductGroup, group_id)
            if not group:
                raise NotFoundError(f"Product group {group_id} not found", details={"group_id": group_id})

        with db.session.no_autoflush:
            _ensure_not_in_other_group(member_ids, group_id)

        fields = {
            "name": master.description,
            "master_product_id": master.id,
            "master_product_code": master.code,
            "price": pricing.price,
            "vat_rate": pricing.vat_rate,
            "price_zone": pricing.price_zone,
        }
        if group_id is None:
            group = ProductGroup(**fields)
            db.session.add(group)
        else:
            for key, value in fields.items():
                setattr(group, key, value)

        # Flush removals before re-inserting so the per-product unique key holds
        group.members = []
        db.session.flush()
        group.members = [
            ProductGroupMember(product_id=pid, position=position)
            for position, pid in enumerate(member_ids)
        ]

        try:
            db.session.flush()
        except IntegrityError as exc:
            raise StateConflictError(
                "A member product was assigned to another group concurrently",
                code="product_already_grouped",
            ) from exc

        db.session.commit()
        return group

    group = run_with_retry(_op)
    current_app.logger.info(
        "Product group %s saved: master %s, members %s", group.id, group.master_product_code, member_ids
    )
    return group


def delete_group(group_id: int) -> None:
    def _op():
        begin_write()
        group = db.session.get(ProductGroup, group_id)
        if not group:
            raise NotFoundError(f"Product group {group_id} not found", details={"group_id": group_id})
        db.session.delete(group)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Product group %s deleted", group_id)


def get_group(group_id: int) -> ProductGroup:
    group = db.session.get(ProductGroup, group_id)
    if not group:
        raise NotFoundError(f"Product group {group_id} not found", details={"group_id": group_id})
    return group


def list_groups() -> list[ProductGroup]:
    return db.session.query(ProductGroup).order_by(ProductGroup.id).all()


def group_for(product_id: int) -> ProductGroup | None:
    member = db.session.query(ProductGroupMember).filter_by(product_id=product_id).first()
    return member.group if member else None


def index_groups(groups: Iterable[ProductGroup]) -> dict[int, ProductGroup]:
    """product_id -> group, for lookups during a single export."""
    index = {}
    for group in groups:
        for pid in group.member_product_ids:
            index[pid] = group
    return index


def _group_price_conflict(order, group, line, bucket) -> StateConflictError:
    return StateConflictError(
        f"Order {order.id} froze different prices for members of group {group.name}",
        code="group_price_conflict",
        details={
            "order_id": order.id,
            "group_id": group.id,
            "product_id": line.product_id,
            "unit_price": str(line.unit_price),
            "vat_rate": str(line.vat_rate),
            "reference_product_id": bucket["product_id"],
            "reference_unit_price": str(bucket["unit_price"]),
            "reference_vat_rate": str(bucket["vat_rate"]),
        },
    )


def aggregate_lines(order, snapshot, groups: Sequence[ProductGroup]) -> list[AggregatedLine]:
    """
    Fold an order's lines into invoice lines.

    Grouped lines come first in group-definition order (group id), then
    ungrouped lines in original item order. A grouped line is priced from
    the members' frozen line prices, which must agree with each other;
    otherwise StateConflictError(group_price_conflict) is raised rather
    than repricing the order.
    """
    index = index_groups(groups)
    epsilon = _epsilon()
    grouped: dict[int, dict] = {}
    ungrouped: list[AggregatedLine] = []

    for line in order.lines:
        product = snapshot.product(line.product_id)
        quantity = Decimal(line.quantity)
        weight = quantity * Decimal(product.weight_kg or 0)
        group = index.get(line.product_id)

        if group is None:
            ungrouped.append(AggregatedLine(
                product_id=product.id,
                group_id=None,
                code=product.code,
                description=product.description,
                unit=product.unit,
                quantity=round_qty(quantity),
                unit_price=round_price(Decimal(line.unit_price)),
                value=round_money(Decimal(line.line_value)),
                vat_rate=Decimal(line.vat_rate),
                vat=round_money(Decimal(line.line_vat)),
                weight_kg=round_qty(weight),
            ))
            continue

        unit_price = Decimal(line.unit_price)
        vat_rate = Decimal(line.vat_rate)
        bucket = grouped.setdefault(group.id, {
            "group": group,
            "product_id": line.product_id,
            "unit_price": unit_price,
            "vat_rate": vat_rate,
            "quantity": Decimal("0"),
            "weight": Decimal("0"),
        })
        if abs(unit_price - bucket["unit_price"]) > epsilon or abs(vat_rate - bucket["vat_rate"]) > epsilon:
            raise _group_price_conflict(order, group, line, bucket)
        bucket["quantity"] += quantity
        bucket["weight"] += weight

    result = []
    for gid in sorted(grouped):
        bucket = grouped[gid]
        group = bucket["group"]
        master = snapshot.products.get(group.master_product_id)
        quantity = round_qty(bucket["quantity"])
        value, vat = line_amounts(quantity, bucket["unit_price"], bucket["vat_rate"])
        result.append(AggregatedLine(
            product_id=group.master_product_id,
            group_id=group.id,
            code=group.master_product_code,
            description=group.name,
            unit=master.unit if master else "BUC",
            quantity=quantity,
            unit_price=round_price(bucket["unit_price"]),
            value=value,
            vat_rate=bucket["vat_rate"],
            vat=vat,
            weight_kg=round_qty(bucket["weight"]),
        ))
    return result + ungrouped
