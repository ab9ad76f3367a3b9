from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from bakeryops.time_utils import to_utc_z


class Warehouse(db.Model):
    """
    Production warehouse ("gestiune").

    Every product is produced out of one warehouse; its name is printed on
    each production sheet row.
    """
    __tablename__ = "warehouses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(128), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "code": self.code, "name": self.name}


class Product(db.Model):
    """
    Catalog product.

    Prices live per price zone in `product_prices`; VAT rate, unit of measure
    and per-unit weight are product-wide.
    """
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    # Supplier article code ("codArticolFurnizor"), printed on invoices
    code = db.Column(db.String(64), nullable=False, unique=True)
    production_code = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)

    description = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="BUC")
    weight_kg = db.Column(db.Numeric(12, 3), nullable=False, default=Decimal("0"))
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False)

    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    warehouse = db.relationship("Warehouse")
    prices = db.relationship(
        "ProductPrice",
        backref="product",
        lazy=True,
        order_by="ProductPrice.zone",
        cascade="all, delete-orphan",
    )

    def price_for(self, zone: str | None) -> Decimal | None:
        for price in self.prices:
            if price.zone == zone:
                return Decimal(price.price)
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "production_code": self.production_code,
            "barcode": self.barcode,
            "description": self.description,
            "unit": self.unit,
            "weight_kg": str(self.weight_kg) if self.weight_kg is not None else None,
            "vat_rate": str(self.vat_rate) if self.vat_rate is not None else None,
            "warehouse_id": self.warehouse_id,
            "is_active": self.is_active,
            "prices": {p.zone: str(p.price) for p in self.prices},
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductPrice(db.Model):
    """Unit price of a product inside one price zone."""
    __tablename__ = "product_prices"
    __table_args__ = (
        db.UniqueConstraint("product_id", "zone", name="uq_product_prices_product_zone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    zone = db.Column(db.String(32), nullable=False)
    price = db.Column(db.Numeric(12, 4), nullable=False)


class Client(db.Model):
    """
    Customer the bakery delivers to.

    `price_zone` selects which product price applies; `displays_weight`
    asks for an extra KG line under every invoiced product.
    """
    __tablename__ = "clients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    cif = db.Column(db.String(32), nullable=True)
    registration_number = db.Column(db.String(64), nullable=True)
    accounting_code = db.Column(db.String(64), nullable=True)

    county = db.Column(db.String(64), nullable=True)
    locality = db.Column(db.String(128), nullable=True)
    street = db.Column(db.String(255), nullable=True)

    price_zone = db.Column(db.String(32), nullable=True)
    displays_weight = db.Column(db.Boolean, nullable=False, default=False)
    agent_id = db.Column(db.Integer, nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cif": self.cif,
            "registration_number": self.registration_number,
            "accounting_code": self.accounting_code,
            "county": self.county,
            "locality": self.locality,
            "street": self.street,
            "price_zone": self.price_zone,
            "displays_weight": self.displays_weight,
            "agent_id": self.agent_id,
            "is_active": self.is_active,
        }
