# Overview: Order detail item-linking flow; binds physical units to internal line items and auto-advances to ready.

"""
Item Linking Flow

For an internally tracked line item with no bound unit, on an order that is
not delivered/cancelled:

    1. start()            query available units for the line's product
    2a. units exist       -> "select" prompt, operator picks one
    2b. none available    -> "create" prompt, quick-scan creates one
    3. link()             bind the unit (one-way)
    4. re-evaluate        all internal lines linked -> order becomes ready

A failed bind raises and leaves the order untouched. A failed re-evaluation
does NOT undo the bind: the outcome reports linked=True together with the
status error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import LineAlreadyLinked, LineNotFound, OrderBoardError, OrderStatusError, ValidationError
from .notification_service import NotificationService
from .order_repository import OrderRepository
from .order_status import READY, TERMINAL_STATUSES
from .order_types import InventoryUnitView, OrderLineView, OrderView


logger = logging.getLogger(__name__)

MODE_SELECT = "select"
MODE_CREATE = "create"


@dataclass(frozen=True)
class LinkPrompt:
    order_id: str
    line_id: int
    catalog_product_id: int
    mode: str
    units: tuple[InventoryUnitView, ...] = ()


@dataclass(frozen=True)
class LinkOutcome:
    line: OrderLineView
    linked: bool
    became_ready: bool
    status_error: Optional[OrderBoardError] = None

    @property
    def partial(self) -> bool:
        """Bind succeeded but the ready re-evaluation failed."""
        return self.linked and self.status_error is not None


class ItemLinkingFlow:

    def __init__(self, repository: OrderRepository, notifier: Optional[NotificationService] = None):
        self.repository = repository
        self.notifier = notifier or NotificationService()

    @staticmethod
    def linkable_lines(order: OrderView) -> list[OrderLineView]:
        """Lines that get a 'link' action in the detail view."""
        if order.status in TERMINAL_STATUSES:
            return []
        return list(order.unlinked_lines)

    def start(self, order: OrderView, line_id: int) -> LinkPrompt:
        line = order.line(line_id)
        if line is None:
            raise LineNotFound("Order line not found", details={"order_id": order.id, "line_id": line_id})
        if order.status in TERMINAL_STATUSES:
            raise OrderStatusError(
                f"Cannot link items on a {order.status} order",
                details={"order_id": order.id, "status": order.status},
            )
        if not line.is_internal:
            raise ValidationError(
                "Only internally tracked products are linked to units",
                field_errors={"line_id": "not_internal"},
            )
        if line.is_linked:
            raise LineAlreadyLinked(
                "Order line is already linked",
                details={"line_id": line_id, "inventory_unit_id": line.inventory_unit_id},
            )

        units = tuple(self.repository.available_units(line.catalog_product_id))
        return LinkPrompt(
            order_id=order.id,
            line_id=line.id,
            catalog_product_id=line.catalog_product_id,
            mode=MODE_SELECT if units else MODE_CREATE,
            units=units,
        )

    def link(self, order_id: str, line_id: int, unit_id: int) -> LinkOutcome:
        line = self.repository.link_inventory_unit(line_id, unit_id)
        logger.info("Linked unit %s to line %s (order %s)", unit_id, line_id, order_id)
        return self._reevaluate(order_id, line)

    def create_and_link(
        self,
        order_id: str,
        line_id: int,
        *,
        catalog_product_id: int,
        weight_grams: int,
        sale_price_cents: Optional[int] = None,
        scale_barcode: Optional[int] = None,
    ) -> LinkOutcome:
        unit = self.repository.create_unit(
            catalog_product_id,
            weight_grams,
            sale_price_cents=sale_price_cents,
            scale_barcode=scale_barcode,
        )
        return self.link(order_id, line_id, unit.id)

    def _reevaluate(self, order_id: str, line: OrderLineView) -> LinkOutcome:
        try:
            became_ready = self.repository.check_and_set_ready(order_id)
        except OrderBoardError as exc:
            logger.warning("Unit linked but ready check failed for order %s: %s", order_id, exc)
            return LinkOutcome(line=line, linked=True, became_ready=False, status_error=exc)

        if became_ready:
            self.notifier.status_changed(order_id, READY)
        return LinkOutcome(line=line, linked=True, became_ready=became_ready)
