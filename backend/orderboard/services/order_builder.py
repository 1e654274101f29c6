# Overview: New/edit order builder; assembles an OrderDraft, validates it and submits it through the repository.

"""
Order Builder

Holds one OrderDraft at a time (new order, or edit of an existing one).

Submission:
- validate() runs first; any field error blocks the call (nothing is sent)
- new orders go through complete_sale (atomic); edits through update_order
  (non-atomic, payments untouched)
- on failure the draft is kept as-is so the operator can resubmit
- on success the draft is cleared
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..errors import OrderBoardError, ValidationError
from .notification_service import NotificationService
from .order_repository import OrderRepository
from .order_types import (
    DraftAddress,
    DraftItem,
    DraftPayment,
    OrderDraft,
    OrderView,
    SaleReceipt,
    ensure_valid_draft,
    validate_draft,
)


logger = logging.getLogger(__name__)


@dataclass
class ImportPayload:
    """Already-parsed order message (e.g. from a WhatsApp order text)."""
    items: list[DraftItem] = field(default_factory=list)
    client_id: Optional[int] = None
    client_name: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    notes: Optional[str] = None


class OrderBuilder:

    def __init__(
        self,
        repository: OrderRepository,
        *,
        notifier: Optional[NotificationService] = None,
        default_delivery_fee_cents: int = 0,
    ):
        self.repository = repository
        self.notifier = notifier or NotificationService()
        self.default_delivery_fee_cents = default_delivery_fee_cents
        self.draft = OrderDraft()
        self.editing_order_id: Optional[str] = None
        self.errors: dict[str, str] = {}

    # -- lifecycle -----------------------------------------------------------

    def reset(self) -> None:
        self.draft = OrderDraft()
        self.editing_order_id = None
        self.errors = {}

    def open(self) -> OrderDraft:
        """Start a new order with the configured delivery fee."""
        self.reset()
        self.draft.delivery_fee_cents = self.default_delivery_fee_cents
        return self.draft

    def prefill(self, payload: ImportPayload) -> OrderDraft:
        """
        Start a new order from an import payload.

        The client name from the message is kept at the top of the notes.
        """
        self.open()
        self.draft.client_id = payload.client_id
        self.draft.scheduled_at = payload.scheduled_at
        self.draft.items = [
            DraftItem(
                catalog_product_id=item.catalog_product_id,
                name=item.name,
                unit_price_cents=item.unit_price_cents,
                quantity=item.quantity,
                inventory_unit_id=item.inventory_unit_id,
            )
            for item in payload.items
        ]

        notes = ""
        if payload.client_name:
            notes = f"Cliente: {payload.client_name}\n"
        if payload.notes:
            notes += payload.notes
        self.draft.notes = notes.strip() or None
        return self.draft

    def from_order(self, order: OrderView) -> OrderDraft:
        """Load an existing order for editing. Payments are not editable."""
        self.reset()
        self.editing_order_id = order.id

        address = None
        address_id = None
        if order.address is not None:
            if order.address.saved_address_id is not None:
                address_id = order.address.saved_address_id
            else:
                address = DraftAddress(
                    street=order.address.street,
                    number=order.address.number,
                    neighborhood=order.address.neighborhood,
                    complement=order.address.complement,
                    city=order.address.city,
                    state=order.address.state,
                    zip_code=order.address.zip_code,
                )

        self.draft = OrderDraft(
            items=[
                DraftItem(
                    catalog_product_id=line.catalog_product_id,
                    name=line.name,
                    unit_price_cents=line.unit_price_cents,
                    quantity=line.quantity,
                    inventory_unit_id=line.inventory_unit_id,
                )
                for line in order.lines
            ],
            client_id=order.client.id if order.client else None,
            scheduled_at=order.scheduled_at,
            notes=order.notes,
            is_delivery=order.is_delivery,
            delivery_fee_cents=order.delivery_fee_cents,
            delivery_address_id=address_id,
            address=address,
        )
        return self.draft

    # -- items ---------------------------------------------------------------

    def add_item(
        self,
        catalog_product_id: int,
        name: str,
        unit_price_cents: int,
        quantity: int = 1,
        inventory_unit_id: Optional[int] = None,
    ) -> DraftItem:
        """Add a product; the same product + unit merges into one line."""
        for item in self.draft.items:
            if item.catalog_product_id == catalog_product_id and item.inventory_unit_id == inventory_unit_id:
                item.quantity += quantity
                return item

        item = DraftItem(
            catalog_product_id=catalog_product_id,
            name=name,
            unit_price_cents=unit_price_cents,
            quantity=quantity,
            inventory_unit_id=inventory_unit_id,
        )
        self.draft.items.append(item)
        return item

    def update_quantity(self, key: str, quantity: int) -> Optional[DraftItem]:
        """Set a line's quantity; zero or less removes the line."""
        if quantity <= 0:
            self.remove_item(key)
            return None
        for item in self.draft.items:
            if item.key == key:
                item.quantity = quantity
                return item
        return None

    def remove_item(self, key: str) -> bool:
        before = len(self.draft.items)
        self.draft.items = [item for item in self.draft.items if item.key != key]
        return len(self.draft.items) != before

    # -- payments / header ---------------------------------------------------

    def add_payment(self, method: str, amount_cents: int, **references) -> DraftPayment:
        payment = DraftPayment(method=method, amount_cents=amount_cents, **references)
        self.draft.payments.append(payment)
        return payment

    def remove_payment(self, key: str) -> bool:
        before = len(self.draft.payments)
        self.draft.payments = [p for p in self.draft.payments if p.key != key]
        return len(self.draft.payments) != before

    def set_schedule(self, scheduled_at: Optional[datetime]) -> None:
        self.draft.scheduled_at = scheduled_at

    def set_client(self, client_id: Optional[int]) -> None:
        self.draft.client_id = client_id

    def set_notes(self, notes: Optional[str]) -> None:
        self.draft.notes = notes

    def set_delivery(
        self,
        is_delivery: bool,
        *,
        address_id: Optional[int] = None,
        address: Optional[DraftAddress] = None,
        fee_cents: Optional[int] = None,
    ) -> None:
        self.draft.is_delivery = is_delivery
        self.draft.delivery_address_id = address_id if is_delivery else None
        self.draft.address = address if is_delivery else None
        if fee_cents is not None:
            self.draft.delivery_fee_cents = fee_cents

    @property
    def subtotal_cents(self) -> int:
        return self.draft.subtotal_cents

    @property
    def total_cents(self) -> int:
        return self.draft.total_cents

    @property
    def change_cents(self) -> int:
        return self.draft.change_cents

    # -- submission ----------------------------------------------------------

    def validate(self) -> dict[str, str]:
        self.errors = validate_draft(self.draft)
        return dict(self.errors)

    @property
    def can_submit(self) -> bool:
        return not validate_draft(self.draft)

    def _ensure_valid(self) -> None:
        try:
            ensure_valid_draft(self.draft)
        except ValidationError as exc:
            self.errors = dict(exc.field_errors)
            raise
        self.errors = {}

    def submit(self) -> SaleReceipt:
        """Create the order atomically. Returns the receipt with its display number."""
        if self.editing_order_id is not None:
            raise ValidationError(
                "Draft is editing an existing order; use submit_update()",
                field_errors={"order_id": "editing"},
            )
        self._ensure_valid()

        try:
            receipt = self.repository.complete_sale(self.draft)
        except OrderBoardError as exc:
            logger.warning("Sale completion failed; draft kept for resubmission: %s", exc)
            raise

        logger.info("Order #%d created (%s)", receipt.display_number, receipt.order_id)
        self.notifier.order_created(receipt.order_id, receipt.display_number)
        self.reset()
        return receipt

    def submit_update(self) -> OrderView:
        """Apply the draft to the order loaded with from_order()."""
        if self.editing_order_id is None:
            raise ValidationError("No order loaded for editing", field_errors={"order_id": "missing"})
        self._ensure_valid()

        order_id = self.editing_order_id
        try:
            order = self.repository.update_order(order_id, self.draft)
        except OrderBoardError as exc:
            logger.warning("Order %s edit failed; draft kept: %s", order_id, exc)
            raise

        self.reset()
        return order
