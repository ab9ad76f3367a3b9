# Overview: Read-only access to products, prices, clients and warehouses.

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..models import Client, Product, Warehouse
from ..validation import NotFoundError, ValidationError


@dataclass
class CatalogSnapshot:
    """Products, clients and warehouses keyed by id, loaded once per export."""
    products: dict[int, Product] = field(default_factory=dict)
    clients: dict[int, Client] = field(default_factory=dict)
    warehouses: dict[int, Warehouse] = field(default_factory=dict)

    def product(self, product_id: int) -> Product:
        try:
            return self.products[product_id]
        except KeyError:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    def client(self, client_id: int) -> Client:
        try:
            return self.clients[client_id]
        except KeyError:
            raise NotFoundError(f"Client {client_id} not found", details={"client_id": client_id})

    def warehouse_name(self, product: Product) -> str:
        warehouse = self.warehouses.get(product.warehouse_id) if product.warehouse_id else None
        return warehouse.name if warehouse else ""


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def get_client(client_id: int) -> Client:
    client = db.session.get(Client, client_id)
    if not client:
        raise NotFoundError(f"Client {client_id} not found", details={"client_id": client_id})
    return client


def price_for(product: Product, zone: str | None) -> Decimal:
    """Price of a product in a zone; a missing zone price is an input error."""
    price = product.price_for(zone)
    if price is None:
        raise ValidationError(
            f"Product {product.code} has no price for zone {zone}",
            code="missing_price",
            details={"product_id": product.id, "zone": zone},
        )
    return price


def snapshot(product_ids: Iterable[int] | None = None, client_ids: Iterable[int] | None = None) -> CatalogSnapshot:
    """Load the catalog rows an export needs (all of them when ids are None)."""
    product_query = db.session.query(Product)
    if product_ids is not None:
        product_query = product_query.filter(Product.id.in_(set(product_ids)))
    client_query = db.session.query(Client)
    if client_ids is not None:
        client_query = client_query.filter(Client.id.in_(set(client_ids)))

    return CatalogSnapshot(
        products={p.id: p for p in product_query.all()},
        clients={c.id: c for c in client_query.all()},
        warehouses={w.id: w for w in db.session.query(Warehouse).all()},
    )


def list_products(*, active_only: bool = True) -> list[Product]:
    query = db.session.query(Product)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.description).all()


def list_clients(*, active_only: bool = True) -> list[Client]:
    query = db.session.query(Client)
    if active_only:
        query = query.filter(Client.is_active.is_(True))
    return query.order_by(Client.name).all()


def list_warehouses() -> list[Warehouse]:
    return db.session.query(Warehouse).order_by(Warehouse.name).all()
