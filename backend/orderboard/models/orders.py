from __future__ import annotations

import uuid

from ..extensions import db
from orderboard.time_utils import to_utc_z, utcnow


def _new_order_id() -> str:
    return str(uuid.uuid4())


class Order(db.Model):
    """
    Customer order (sale header) tracked through the fulfillment board.

    Identity is the durable UUID ``id``; ``display_number`` is the short
    sequential number staff and customers see. It is allocated from
    DisplayNumberSequence inside the creating transaction and never changes.

    Orders are never deleted: cancellation is a status.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("display_number", name="uq_orders_display_number"),
        db.Index("ix_orders_status_scheduled", "status", "scheduled_at"),
        db.CheckConstraint("total_cents >= 0", name="ck_orders_total_non_negative"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_order_id)
    display_number = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="received", index=True)

    # All amounts in cents
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    delivery_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    change_cents = db.Column(db.Integer, nullable=False, default=0)  # cash over-tender

    scheduled_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    # Delivery: either a saved client address or a manually typed one
    is_delivery = db.Column(db.Boolean, nullable=False, default=False)
    delivery_address_id = db.Column(db.Integer, db.ForeignKey("client_addresses.id"), nullable=True)
    delivery_street = db.Column(db.String(255), nullable=True)
    delivery_number = db.Column(db.String(32), nullable=True)
    delivery_complement = db.Column(db.String(255), nullable=True)
    delivery_neighborhood = db.Column(db.String(128), nullable=True)
    delivery_city = db.Column(db.String(128), nullable=True)
    delivery_state = db.Column(db.String(64), nullable=True)
    delivery_zip_code = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    client = db.relationship("Client", backref=db.backref("orders", lazy=True))
    saved_address = db.relationship("ClientAddress", foreign_keys=[delivery_address_id])
    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.id",
        cascade="all, delete-orphan",
    )
    payments = db.relationship(
        "OrderPayment",
        back_populates="order",
        order_by="OrderPayment.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} #{self.display_number} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_number": self.display_number,
            "status": self.status,
            "total_cents": self.total_cents,
            "delivery_fee_cents": self.delivery_fee_cents,
            "change_cents": self.change_cents,
            "scheduled_at": to_utc_z(self.scheduled_at),
            "notes": self.notes,
            "client_id": self.client_id,
            "is_delivery": self.is_delivery,
            "delivery_address_id": self.delivery_address_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderLine(db.Model):
    """
    Priced product entry on an order.

    line_total_cents is computed once at write time (unit price x quantity).
    inventory_unit_id binds an internally tracked product to one physical
    unit; a unit can be bound to at most one line.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("inventory_unit_id", name="uq_order_lines_inventory_unit"),
        db.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)
    catalog_product_id = db.Column(db.Integer, db.ForeignKey("catalog_products.id"), nullable=False)
    inventory_unit_id = db.Column(db.Integer, db.ForeignKey("inventory_units.id"), nullable=True)

    # Snapshot of the catalog name at sale time
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    order = db.relationship("Order", back_populates="lines")
    catalog_product = db.relationship("CatalogProduct")
    inventory_unit = db.relationship("InventoryUnit", foreign_keys=[inventory_unit_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "catalog_product_id": self.catalog_product_id,
            "inventory_unit_id": self.inventory_unit_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
        }


class OrderPayment(db.Model):
    """
    Payment entry recorded with the order.

    METHODS: pix, cash, card_credit, card_debit. Split payments are several
    rows; the sum may be below the total (partial/deposit) and may exceed it
    only when cash is involved (the excess is Order.change_cents).
    """
    __tablename__ = "order_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_order_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)

    method = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Method-specific references
    pix_key_id = db.Column(db.String(64), nullable=True)
    machine_id = db.Column(db.String(64), nullable=True)
    card_flag = db.Column(db.String(32), nullable=True)
    installments = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    order = db.relationship("Order", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "pix_key_id": self.pix_key_id,
            "machine_id": self.machine_id,
            "card_flag": self.card_flag,
            "installments": self.installments,
            "created_at": to_utc_z(self.created_at),
        }


class DisplayNumberSequence(db.Model):
    """
    Counter behind Order.display_number.

    Incremented inside the sale-completion transaction, so a rolled back
    sale never leaves a gap that a committed order could collide with.
    """
    __tablename__ = "display_number_sequences"

    name = db.Column(db.String(32), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
