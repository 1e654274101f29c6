from __future__ import annotations

from ..extensions import db
from orderboard.time_utils import to_utc_z, utcnow


class CatalogProduct(db.Model):
    """
    Catalog entry sold on orders.

    is_internal marks products produced and weighed in-house: every order
    line for such a product must eventually be bound to one InventoryUnit.
    """
    __tablename__ = "catalog_products"
    __table_args__ = (
        db.Index("ix_catalog_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents
    base_price_cents = db.Column(db.Integer, nullable=False, default=0)

    is_internal = db.Column(db.Boolean, nullable=False, default=False)
    catalog_barcode = db.Column(db.Integer, nullable=True, unique=True)
    shelf_life_days = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<CatalogProduct id={self.id} name={self.name!r} internal={self.is_internal}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "base_price_cents": self.base_price_cents,
            "is_internal": self.is_internal,
            "catalog_barcode": self.catalog_barcode,
            "shelf_life_days": self.shelf_life_days,
            "is_active": self.is_active,
        }


class InventoryUnit(db.Model):
    """
    One individually tracked physical unit (e.g. a weighed package).

    STATUS: available, reserved, sold, expired, discarded.
    Binding to an order line marks the unit sold and records the order.
    """
    __tablename__ = "inventory_units"
    __table_args__ = (
        db.Index("ix_inventory_units_catalog_status", "catalog_product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    catalog_product_id = db.Column(db.Integer, db.ForeignKey("catalog_products.id"), nullable=False, index=True)

    scale_barcode = db.Column(db.Integer, nullable=True, index=True)
    weight_grams = db.Column(db.Integer, nullable=False)
    sale_price_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="available", index=True)

    produced_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=True)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=True, index=True)

    catalog_product = db.relationship("CatalogProduct", backref=db.backref("inventory_units", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "catalog_product_id": self.catalog_product_id,
            "scale_barcode": self.scale_barcode,
            "weight_grams": self.weight_grams,
            "sale_price_cents": self.sale_price_cents,
            "status": self.status,
            "produced_at": to_utc_z(self.produced_at),
            "expires_at": to_utc_z(self.expires_at),
            "sold_at": to_utc_z(self.sold_at),
            "order_id": self.order_id,
        }
