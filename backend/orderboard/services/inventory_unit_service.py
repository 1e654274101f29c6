# Overview: Service-layer operations for physical inventory units; lookup, quick creation and binding to order lines.

"""
Physical inventory units (individually weighed/packaged stock).

Unit lifecycle:
    available -> sold        (bound to an order line)
    available -> reserved / expired / discarded (managed elsewhere)
    sold -> available        (only when an order edit drops the bound line)

Binding invariants:
- A unit is bound to at most one order line (unique order_lines.inventory_unit_id)
- Only available units of the line's own catalog product can be bound
- Binding is one-way within the linking flow: a linked line is never re-pointed
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from ..extensions import db
from ..models import CatalogProduct, InventoryUnit, OrderLine
from ..errors import (
    InventoryUnitNotFound,
    InventoryUnitUnavailable,
    LineAlreadyLinked,
    LineNotFound,
    OrderStatusError,
    ValidationError,
)
from orderboard.time_utils import utcnow
from .concurrency import lock_for_update, write_transaction
from .order_status import TERMINAL_STATUSES


logger = logging.getLogger(__name__)

AVAILABLE = "available"
RESERVED = "reserved"
SOLD = "sold"
EXPIRED = "expired"
DISCARDED = "discarded"

UNIT_STATUSES = (AVAILABLE, RESERVED, SOLD, EXPIRED, DISCARDED)


def list_units(*, catalog_product_id: Optional[int] = None, status: Optional[str] = AVAILABLE) -> list[InventoryUnit]:
    """Units filtered by catalog product and status, oldest production first."""
    query = db.session.query(InventoryUnit)
    if catalog_product_id is not None:
        query = query.filter(InventoryUnit.catalog_product_id == catalog_product_id)
    if status:
        if status not in UNIT_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(UNIT_STATUSES)}",
                field_errors={"status": "invalid"},
            )
        query = query.filter(InventoryUnit.status == status)
    return query.order_by(InventoryUnit.produced_at.asc(), InventoryUnit.id.asc()).all()


def create_unit(
    *,
    catalog_product_id: int,
    weight_grams: int,
    sale_price_cents: Optional[int] = None,
    scale_barcode: Optional[int] = None,
    produced_at: Optional[datetime] = None,
) -> InventoryUnit:
    """
    Register a freshly weighed unit (the quick-scan path).

    expires_at is derived from the catalog product's shelf life. When no
    sale price is given the catalog base price is used.
    """
    product = db.session.get(CatalogProduct, catalog_product_id)
    if product is None:
        raise ValidationError("Catalog product not found", field_errors={"catalog_product_id": "not_found"})
    if not product.is_internal:
        raise ValidationError(
            "Only internally tracked products have physical units",
            field_errors={"catalog_product_id": "not_internal"},
        )
    if weight_grams <= 0:
        raise ValidationError("Weight must be greater than zero", field_errors={"weight_grams": "invalid"})

    price = product.base_price_cents if sale_price_cents is None else sale_price_cents
    if price < 0:
        raise ValidationError("Price cannot be negative", field_errors={"sale_price_cents": "invalid"})

    produced = produced_at or utcnow()
    expires = None
    if product.shelf_life_days:
        expires = produced + timedelta(days=product.shelf_life_days)

    unit = InventoryUnit(
        catalog_product_id=product.id,
        weight_grams=weight_grams,
        sale_price_cents=price,
        scale_barcode=scale_barcode,
        status=AVAILABLE,
        produced_at=produced,
        expires_at=expires,
    )
    with write_transaction("Inventory unit creation"):
        db.session.add(unit)

    logger.info("Created inventory unit %s for product %s (%d g)", unit.id, product.id, weight_grams)
    return unit


def claim_unit(unit_id: int, *, catalog_product_id: int, order_id: str) -> InventoryUnit:
    """
    Mark an available unit sold to an order. Does not commit.

    Raises:
        InventoryUnitNotFound: unknown unit id
        InventoryUnitUnavailable: unit is not available or is another product
    """
    unit = lock_for_update(db.session.query(InventoryUnit).filter_by(id=unit_id)).first()
    if unit is None:
        raise InventoryUnitNotFound("Inventory unit not found", details={"unit_id": unit_id})

    if unit.catalog_product_id != catalog_product_id:
        raise InventoryUnitUnavailable(
            "Inventory unit belongs to a different product",
            details={
                "unit_id": unit_id,
                "unit_product_id": unit.catalog_product_id,
                "line_product_id": catalog_product_id,
            },
        )
    if unit.status != AVAILABLE:
        raise InventoryUnitUnavailable(
            f"Inventory unit is {unit.status}",
            details={"unit_id": unit_id, "status": unit.status},
        )

    unit.status = SOLD
    unit.sold_at = utcnow()
    unit.order_id = order_id
    return unit


def release_unit(unit: InventoryUnit) -> None:
    """Put a sold unit back on the shelf. Does not commit."""
    unit.status = AVAILABLE
    unit.sold_at = None
    unit.order_id = None


def bind_unit_to_line(line_id: int, unit_id: int) -> OrderLine:
    """
    Bind a physical unit to an order line.

    Re-binding the unit a line already holds is a no-op. A failed bind
    leaves the order (and its status) untouched.
    """
    with write_transaction("Inventory unit binding"):
        line = lock_for_update(db.session.query(OrderLine).filter_by(id=line_id)).first()
        if line is None:
            raise LineNotFound("Order line not found", details={"line_id": line_id})

        if line.inventory_unit_id == unit_id:
            return line
        if line.inventory_unit_id is not None:
            raise LineAlreadyLinked(
                "Order line is already linked to another unit",
                details={"line_id": line_id, "inventory_unit_id": line.inventory_unit_id},
            )

        if line.order.status in TERMINAL_STATUSES:
            raise OrderStatusError(
                f"Cannot link items on a {line.order.status} order",
                details={"order_id": line.order_id, "status": line.order.status},
            )
        if not line.catalog_product.is_internal:
            raise ValidationError(
                "Only internally tracked products are linked to units",
                field_errors={"line_id": "not_internal"},
            )

        unit = claim_unit(unit_id, catalog_product_id=line.catalog_product_id, order_id=line.order_id)
        line.inventory_unit_id = unit.id

    logger.info("Linked unit %s to line %s of order %s", unit_id, line_id, line.order_id)
    return line
