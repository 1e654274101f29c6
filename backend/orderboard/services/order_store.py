# Overview: Store procedures for orders; atomic sale completion, status updates, edits and auto-ready.

"""
Order Store Procedures

================================================================================
PROCEDURES:
    complete_sale(sale, items, payments)   one transaction: header + lines + payments
    update_order_status(order_id, status)  single-field update, idempotent
    update_order(order_id, sale, items)    non-atomic edit: lines, then header
    check_and_set_ready(order_id)          auto-advance when every internal line is linked

ATOMICITY:
- complete_sale writes all three record sets or none. The display number is
  allocated inside the same transaction, so a rolled back sale leaves no
  trace (no header, no lines, no payments, no consumed number).
- update_order commits in two steps and never touches payments. A failure
  between the steps leaves the new lines with the old schedule/address.

MONEY (cents):
- line_total_cents = unit_price_cents * quantity, fixed at write time
- total_cents = sum(line totals) + delivery fee (delivery orders only)
- payments may exceed the total only when one of them is cash; the excess
  is stored as change_cents
================================================================================
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..models import (
    CatalogProduct,
    Client,
    ClientAddress,
    DisplayNumberSequence,
    Order,
    OrderLine,
    OrderPayment,
)
from ..errors import OrderNotFound, OrderStatusError, SaleCompletionError
from orderboard.time_utils import parse_iso_datetime
from .concurrency import lock_for_update, write_transaction
from .inventory_unit_service import claim_unit, release_unit
from .order_status import (
    INITIAL_STATUS,
    IN_PROGRESS_STATUSES,
    READY,
    TERMINAL_STATUSES,
    ensure_can_leave,
    validate_status,
)
from .order_types import PAYMENT_CASH, PAYMENT_METHODS, SaleReceipt


logger = logging.getLogger(__name__)

DISPLAY_SEQUENCE = "orders"

# Joined shape every order read returns: client, address, lines (with the
# product flag needed for linking) and payments.
ORDER_LOAD_OPTIONS = (
    joinedload(Order.client),
    joinedload(Order.saved_address),
    selectinload(Order.lines).joinedload(OrderLine.catalog_product),
    selectinload(Order.payments),
)


def load_order(order_id: str) -> Order:
    order = (
        db.session.query(Order)
        .options(*ORDER_LOAD_OPTIONS)
        .filter(Order.id == order_id)
        .first()
    )
    if order is None:
        raise OrderNotFound("Order not found", details={"order_id": order_id})
    return order


# =============================================================================
# DISPLAY NUMBERS
# =============================================================================

def next_display_number() -> int:
    """
    Allocate the next display number inside the current transaction.

    Does not commit: the allocation becomes durable only together with the
    order that uses it.
    """
    stmt = (
        update(DisplayNumberSequence)
        .where(DisplayNumberSequence.name == DISPLAY_SEQUENCE)
        .values(next_number=DisplayNumberSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DisplayNumberSequence.next_number)
            .filter_by(name=DISPLAY_SEQUENCE)
            .scalar()
        )
        return current - 1

    # First sale: seed the sequence past any existing number
    highest = db.session.query(func.max(Order.display_number)).scalar() or 0
    db.session.add(DisplayNumberSequence(name=DISPLAY_SEQUENCE, next_number=highest + 2))
    db.session.flush()
    return highest + 1


# =============================================================================
# REQUEST CHECKS
# =============================================================================

def _fail(message: str, **details) -> SaleCompletionError:
    return SaleCompletionError(message, details=details)


def _require_int(value, field: str, *, minimum: Optional[int] = None) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise _fail(f"{field} must be an integer", field=field)
    if minimum is not None and value < minimum:
        raise _fail(f"{field} must be at least {minimum}", field=field)
    return value


def _checked_items(items: list[dict]) -> list[dict]:
    """Validate line items and attach the resolved catalog product."""
    if not items:
        raise _fail("A sale needs at least one line item", field="items")

    checked = []
    for i, item in enumerate(items):
        product_id = _require_int(item.get("catalog_product_id"), f"items.{i}.catalog_product_id")
        quantity = _require_int(item.get("quantity"), f"items.{i}.quantity", minimum=1)
        price = _require_int(item.get("unit_price_cents"), f"items.{i}.unit_price_cents", minimum=0)

        line_total = price * quantity
        declared = item.get("line_total_cents")
        if declared is not None and declared != line_total:
            raise _fail(
                "Line total does not match unit price x quantity",
                field=f"items.{i}.line_total_cents",
                expected=line_total,
                received=declared,
            )

        product = db.session.get(CatalogProduct, product_id)
        if product is None:
            raise _fail("Catalog product not found", field=f"items.{i}.catalog_product_id", catalog_product_id=product_id)

        unit_id = item.get("inventory_unit_id")
        if unit_id is not None:
            _require_int(unit_id, f"items.{i}.inventory_unit_id")

        checked.append({
            "product": product,
            "name": (item.get("name") or product.name).strip(),
            "quantity": quantity,
            "unit_price_cents": price,
            "line_total_cents": line_total,
            "inventory_unit_id": unit_id,
        })
    return checked


def _checked_payments(payments: list[dict]) -> list[dict]:
    checked = []
    for i, payment in enumerate(payments or []):
        method = payment.get("method")
        if method not in PAYMENT_METHODS:
            raise _fail(
                f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}",
                field=f"payments.{i}.method",
            )
        amount = _require_int(payment.get("amount_cents"), f"payments.{i}.amount_cents", minimum=1)
        checked.append({**payment, "method": method, "amount_cents": amount})
    return checked


def _change_for(total_cents: int, payments: list[dict]) -> int:
    paid = sum(p["amount_cents"] for p in payments)
    if paid <= total_cents:
        return 0
    if not any(p["method"] == PAYMENT_CASH for p in payments):
        raise _fail(
            "Only cash payments can exceed the order total",
            field="payments",
            total_cents=total_cents,
            paid_cents=paid,
        )
    return paid - total_cents


def _delivery_fields(sale: dict) -> dict:
    """Resolve the delivery part of a sale header into Order column values."""
    if not sale.get("is_delivery"):
        return {"is_delivery": False, "delivery_fee_cents": 0, "delivery_address_id": None}

    fee = _require_int(sale.get("delivery_fee_cents") or 0, "delivery_fee_cents", minimum=0)
    fields = {"is_delivery": True, "delivery_fee_cents": fee}

    address_id = sale.get("delivery_address_id")
    if address_id is not None:
        if db.session.get(ClientAddress, address_id) is None:
            raise _fail("Saved address not found", field="delivery_address_id", delivery_address_id=address_id)
        fields["delivery_address_id"] = address_id
        return fields

    address = sale.get("address") or {}
    missing = [k for k in ("street", "number", "neighborhood") if not (address.get(k) or "").strip()]
    if missing:
        raise _fail("Delivery address is incomplete", field="delivery_address", missing=missing)

    fields["delivery_address_id"] = None
    for key in ("street", "number", "complement", "neighborhood", "city", "state", "zip_code"):
        value = address.get(key)
        fields[f"delivery_{key}"] = value.strip() if isinstance(value, str) else value
    return fields


def _clear_manual_address(order: Order) -> None:
    for key in ("street", "number", "complement", "neighborhood", "city", "state", "zip_code"):
        setattr(order, f"delivery_{key}", None)


def _scheduled_at(sale: dict) -> Optional[datetime]:
    value = sale.get("scheduled_at")
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise _fail("scheduled_at must be an ISO-8601 datetime", field="scheduled_at")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise _fail("scheduled_at must be an ISO-8601 datetime", field="scheduled_at")


def _client_id(sale: dict) -> Optional[int]:
    client_id = sale.get("client_id")
    if client_id is not None and db.session.get(Client, client_id) is None:
        raise _fail("Client not found", field="client_id", client_id=client_id)
    return client_id


# =============================================================================
# COMPLETE SALE
# =============================================================================

def _insert_header(sale: dict, total_cents: int, change_cents: int, delivery: dict) -> Order:
    order = Order(
        display_number=next_display_number(),
        status=INITIAL_STATUS,
        total_cents=total_cents,
        change_cents=change_cents,
        scheduled_at=_scheduled_at(sale),
        notes=(sale.get("notes") or None),
        client_id=_client_id(sale),
        **delivery,
    )
    db.session.add(order)
    db.session.flush()
    return order


def _insert_lines(order: Order, items: list[dict]) -> None:
    for item in items:
        unit_id = item["inventory_unit_id"]
        if unit_id is not None:
            claim_unit(unit_id, catalog_product_id=item["product"].id, order_id=order.id)
        db.session.add(OrderLine(
            order_id=order.id,
            catalog_product_id=item["product"].id,
            inventory_unit_id=unit_id,
            name=item["name"],
            quantity=item["quantity"],
            unit_price_cents=item["unit_price_cents"],
            line_total_cents=item["line_total_cents"],
        ))
    db.session.flush()


def _insert_payments(order: Order, payments: list[dict]) -> None:
    for payment in payments:
        db.session.add(OrderPayment(
            order_id=order.id,
            method=payment["method"],
            amount_cents=payment["amount_cents"],
            pix_key_id=payment.get("pix_key_id"),
            machine_id=payment.get("machine_id"),
            card_flag=payment.get("card_flag"),
            installments=payment.get("installments"),
        ))
    db.session.flush()


def complete_sale(sale: dict, items: list[dict], payments: list[dict]) -> SaleReceipt:
    """
    Create an order header, its line items and its payments atomically.

    Args:
        sale: header (client_id, scheduled_at, notes, is_delivery,
            delivery_fee_cents, delivery_address_id | address, total_cents)
        items: ordered line items (catalog_product_id, name, quantity,
            unit_price_cents, optional line_total_cents / inventory_unit_id)
        payments: payment entries (method, amount_cents, method references)

    Returns:
        SaleReceipt with the new order id and its display number

    Raises:
        SaleCompletionError: request rejected; nothing was written
        InventoryUnitUnavailable / InventoryUnitNotFound: a pre-bound unit
            cannot be sold; nothing was written
        RemoteWriteError: database failure; nothing was written
    """
    with write_transaction("Sale completion"):
        checked_items = _checked_items(items)
        checked_payments = _checked_payments(payments)
        delivery = _delivery_fields(sale)

        total = sum(item["line_total_cents"] for item in checked_items) + delivery["delivery_fee_cents"]
        declared_total = sale.get("total_cents")
        if declared_total is not None and declared_total != total:
            raise _fail(
                "Order total does not match its items and delivery fee",
                field="total_cents",
                expected=total,
                received=declared_total,
            )
        change = _change_for(total, checked_payments)

        order = _insert_header(sale, total, change, delivery)
        _insert_lines(order, checked_items)
        _insert_payments(order, checked_payments)

    receipt = SaleReceipt(order_id=order.id, display_number=order.display_number)
    logger.info(
        "Sale completed: order %s #%d (%d items, %d payments, total %d)",
        receipt.order_id, receipt.display_number, len(checked_items), len(checked_payments), total,
    )
    return receipt


# =============================================================================
# STATUS
# =============================================================================

def update_order_status(order_id: str, status: str) -> Order:
    """
    Set an order's status.

    Re-applying the current status is a successful no-op. Leaving
    delivered/cancelled is rejected with OrderStatusError.
    """
    validate_status(status)

    with write_transaction("Status update"):
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise OrderNotFound("Order not found", details={"order_id": order_id})

        previous = order.status
        if previous != status:
            ensure_can_leave(previous, status)
            order.status = status

    if previous != status:
        logger.info("Order %s status %s -> %s", order_id, previous, status)
    return order


def check_and_set_ready(order_id: str) -> bool:
    """
    Auto-advance to ready when every internally tracked line has a unit.

    Only applies to received/preparing orders with at least one internal
    line; never moves an order past ready. Returns True when the status
    changed.
    """
    with write_transaction("Ready check"):
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise OrderNotFound("Order not found", details={"order_id": order_id})

        if order.status not in IN_PROGRESS_STATUSES:
            return False

        internal = [line for line in order.lines if line.catalog_product.is_internal]
        if not internal or any(line.inventory_unit_id is None for line in internal):
            return False

        previous = order.status
        order.status = READY

    logger.info("Order %s auto-advanced %s -> ready (all internal items linked)", order_id, previous)
    return True


# =============================================================================
# EDIT
# =============================================================================

def _replace_lines(order: Order, items: list[dict]) -> None:
    kept_units = {item["inventory_unit_id"] for item in items if item["inventory_unit_id"] is not None}
    held_units = {}
    for line in order.lines:
        if line.inventory_unit is not None:
            held_units[line.inventory_unit_id] = line.inventory_unit

    for unit_id, unit in held_units.items():
        if unit_id not in kept_units:
            release_unit(unit)

    order.lines.clear()
    # Old rows must be gone before a kept unit is bound to a new row
    db.session.flush()

    for item in items:
        unit_id = item["inventory_unit_id"]
        if unit_id is not None and unit_id not in held_units:
            claim_unit(unit_id, catalog_product_id=item["product"].id, order_id=order.id)
        order.lines.append(OrderLine(
            catalog_product_id=item["product"].id,
            inventory_unit_id=unit_id,
            name=item["name"],
            quantity=item["quantity"],
            unit_price_cents=item["unit_price_cents"],
            line_total_cents=item["line_total_cents"],
        ))


def update_order(order_id: str, sale: dict, items: list[dict]) -> Order:
    """
    Edit an existing order: replace its line items, then its schedule,
    delivery info, notes and client.

    Two separate commits; payments and status are never touched.
    """
    order = load_order(order_id)
    if order.status in TERMINAL_STATUSES:
        raise OrderStatusError(
            f"Cannot edit a {order.status} order",
            details={"order_id": order_id, "status": order.status},
        )

    # Every input is checked before the first commit
    checked_items = _checked_items(items)
    delivery = _delivery_fields(sale)
    scheduled_at = _scheduled_at(sale)
    client_id = _client_id(sale)

    with write_transaction("Order line replacement"):
        _replace_lines(order, checked_items)

    with write_transaction("Order header update"):
        order.scheduled_at = scheduled_at
        order.notes = sale.get("notes") or None
        order.client_id = client_id
        if delivery.get("delivery_address_id") is not None or not delivery["is_delivery"]:
            _clear_manual_address(order)
        for key, value in delivery.items():
            setattr(order, key, value)

        total = sum(line.line_total_cents for line in order.lines) + order.delivery_fee_cents
        order.total_cents = total
        # Payments stay as recorded; only the derived change follows the new total
        paid_cents = sum(p.amount_cents for p in order.payments)
        has_cash = any(p.method == PAYMENT_CASH for p in order.payments)
        order.change_cents = paid_cents - total if (paid_cents > total and has_cash) else 0

    logger.info("Order %s edited (%d items, total %d)", order_id, len(order.lines), order.total_cents)
    return order
