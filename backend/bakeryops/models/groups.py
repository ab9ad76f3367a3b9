from __future__ import annotations

from ..extensions import db
from bakeryops.time_utils import to_utc_z


class ProductGroup(db.Model):
    """
    Interchangeable products invoiced as one line under a master product.

    price/vat_rate are copied from the members when the group is saved and
    must match every member at that moment.
    """
    __tablename__ = "product_groups"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    master_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    master_product_code = db.Column(db.String(64), nullable=False)
    price = db.Column(db.Numeric(12, 4), nullable=False)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False)
    price_zone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    master_product = db.relationship("Product")
    members = db.relationship(
        "ProductGroupMember",
        backref="group",
        lazy=True,
        order_by="ProductGroupMember.position",
        cascade="all, delete-orphan",
    )

    @property
    def member_product_ids(self) -> list[int]:
        return [m.product_id for m in self.members]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "master_product_id": self.master_product_id,
            "master_product_code": self.master_product_code,
            "member_product_ids": self.member_product_ids,
            "price": str(self.price),
            "vat_rate": str(self.vat_rate),
            "price_zone": self.price_zone,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductGroupMember(db.Model):
    """A product may belong to at most one group."""
    __tablename__ = "product_group_members"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_product_group_members_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("product_groups.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
