# Overview: Value types passed across the repository boundary (read views, write drafts, filters).

"""
Order value types.

Views are frozen snapshots detached from the ORM session, so the board and
the reconciler can hold them regardless of which repository produced them
(in-process SQL or remote HTTP). Drafts are the mutable write-side shape
the builder assembles and complete_sale consumes.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional

from orderboard.errors import ValidationError
from orderboard.time_utils import parse_iso_date, parse_iso_datetime, to_utc_z


PAYMENT_CASH = "cash"
PAYMENT_METHODS = ("pix", "cash", "card_credit", "card_debit")

DELIVERY_FILTERS = ("all", "delivery", "pickup")


def _new_key() -> str:
    return uuid.uuid4().hex


# =============================================================================
# READ VIEWS
# =============================================================================

@dataclass(frozen=True)
class ClientSummary:
    id: int
    name: str
    phone: Optional[str] = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "phone": self.phone}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["ClientSummary"]:
        if not data:
            return None
        return cls(id=data["id"], name=data["name"], phone=data.get("phone"))


@dataclass(frozen=True)
class DeliveryAddress:
    street: str
    number: str
    neighborhood: str
    complement: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    saved_address_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "street": self.street,
            "number": self.number,
            "neighborhood": self.neighborhood,
            "complement": self.complement,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "saved_address_id": self.saved_address_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["DeliveryAddress"]:
        if not data:
            return None
        return cls(
            street=data["street"],
            number=data["number"],
            neighborhood=data["neighborhood"],
            complement=data.get("complement"),
            city=data.get("city"),
            state=data.get("state"),
            zip_code=data.get("zip_code"),
            saved_address_id=data.get("saved_address_id"),
        )


@dataclass(frozen=True)
class OrderLineView:
    id: int
    catalog_product_id: int
    name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    is_internal: bool = False
    inventory_unit_id: Optional[int] = None

    @property
    def is_linked(self) -> bool:
        return self.inventory_unit_id is not None

    @property
    def needs_link(self) -> bool:
        return self.is_internal and not self.is_linked

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "catalog_product_id": self.catalog_product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "is_internal": self.is_internal,
            "inventory_unit_id": self.inventory_unit_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OrderLineView":
        return cls(
            id=data["id"],
            catalog_product_id=data["catalog_product_id"],
            name=data["name"],
            quantity=data["quantity"],
            unit_price_cents=data["unit_price_cents"],
            line_total_cents=data["line_total_cents"],
            is_internal=bool(data.get("is_internal")),
            inventory_unit_id=data.get("inventory_unit_id"),
        )

    @classmethod
    def from_model(cls, line) -> "OrderLineView":
        return cls(
            id=line.id,
            catalog_product_id=line.catalog_product_id,
            name=line.name,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            line_total_cents=line.line_total_cents,
            is_internal=bool(line.catalog_product and line.catalog_product.is_internal),
            inventory_unit_id=line.inventory_unit_id,
        )


@dataclass(frozen=True)
class PaymentView:
    id: int
    method: str
    amount_cents: int

    def to_dict(self) -> dict:
        return {"id": self.id, "method": self.method, "amount_cents": self.amount_cents}

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentView":
        return cls(id=data["id"], method=data["method"], amount_cents=data["amount_cents"])


@dataclass(frozen=True)
class OrderView:
    """An order joined with its client, address, lines and payments."""
    id: str
    display_number: int
    status: str
    total_cents: int
    created_at: datetime
    scheduled_at: Optional[datetime] = None
    notes: Optional[str] = None
    is_delivery: bool = False
    delivery_fee_cents: int = 0
    change_cents: int = 0
    client: Optional[ClientSummary] = None
    address: Optional[DeliveryAddress] = None
    lines: tuple[OrderLineView, ...] = ()
    payments: tuple[PaymentView, ...] = ()

    @property
    def paid_cents(self) -> int:
        return sum(p.amount_cents for p in self.payments)

    @property
    def internal_lines(self) -> tuple[OrderLineView, ...]:
        return tuple(line for line in self.lines if line.is_internal)

    @property
    def unlinked_lines(self) -> tuple[OrderLineView, ...]:
        return tuple(line for line in self.lines if line.needs_link)

    def line(self, line_id: int) -> Optional[OrderLineView]:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None

    def with_status(self, status: str) -> "OrderView":
        return replace(self, status=status)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_number": self.display_number,
            "status": self.status,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
            "scheduled_at": to_utc_z(self.scheduled_at),
            "notes": self.notes,
            "is_delivery": self.is_delivery,
            "delivery_fee_cents": self.delivery_fee_cents,
            "change_cents": self.change_cents,
            "client": self.client.to_dict() if self.client else None,
            "address": self.address.to_dict() if self.address else None,
            "lines": [line.to_dict() for line in self.lines],
            "payments": [p.to_dict() for p in self.payments],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OrderView":
        return cls(
            id=data["id"],
            display_number=data["display_number"],
            status=data["status"],
            total_cents=data["total_cents"],
            created_at=parse_iso_datetime(data["created_at"]),
            scheduled_at=parse_iso_datetime(data.get("scheduled_at")),
            notes=data.get("notes"),
            is_delivery=bool(data.get("is_delivery")),
            delivery_fee_cents=data.get("delivery_fee_cents") or 0,
            change_cents=data.get("change_cents") or 0,
            client=ClientSummary.from_dict(data.get("client")),
            address=DeliveryAddress.from_dict(data.get("address")),
            lines=tuple(OrderLineView.from_dict(line) for line in data.get("lines") or []),
            payments=tuple(PaymentView.from_dict(p) for p in data.get("payments") or []),
        )

    @classmethod
    def from_model(cls, order) -> "OrderView":
        client = None
        if order.client is not None:
            client = ClientSummary(id=order.client.id, name=order.client.name, phone=order.client.phone)

        address = None
        if order.saved_address is not None:
            saved = order.saved_address
            address = DeliveryAddress(
                street=saved.street,
                number=saved.number,
                neighborhood=saved.neighborhood,
                complement=saved.complement,
                city=saved.city,
                state=saved.state,
                zip_code=saved.zip_code,
                saved_address_id=saved.id,
            )
        elif order.delivery_street:
            address = DeliveryAddress(
                street=order.delivery_street,
                number=order.delivery_number or "",
                neighborhood=order.delivery_neighborhood or "",
                complement=order.delivery_complement,
                city=order.delivery_city,
                state=order.delivery_state,
                zip_code=order.delivery_zip_code,
            )

        lines = tuple(OrderLineView.from_model(line) for line in order.lines)
        payments = tuple(
            PaymentView(id=p.id, method=p.method, amount_cents=p.amount_cents)
            for p in order.payments
        )

        return cls(
            id=order.id,
            display_number=order.display_number,
            status=order.status,
            total_cents=order.total_cents,
            created_at=order.created_at,
            scheduled_at=order.scheduled_at,
            notes=order.notes,
            is_delivery=order.is_delivery,
            delivery_fee_cents=order.delivery_fee_cents,
            change_cents=order.change_cents,
            client=client,
            address=address,
            lines=lines,
            payments=payments,
        )


@dataclass(frozen=True)
class InventoryUnitView:
    id: int
    catalog_product_id: int
    weight_grams: int
    sale_price_cents: int
    status: str
    scale_barcode: Optional[int] = None
    produced_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "catalog_product_id": self.catalog_product_id,
            "weight_grams": self.weight_grams,
            "sale_price_cents": self.sale_price_cents,
            "status": self.status,
            "scale_barcode": self.scale_barcode,
            "produced_at": to_utc_z(self.produced_at),
            "expires_at": to_utc_z(self.expires_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InventoryUnitView":
        return cls(
            id=data["id"],
            catalog_product_id=data["catalog_product_id"],
            weight_grams=data["weight_grams"],
            sale_price_cents=data["sale_price_cents"],
            status=data["status"],
            scale_barcode=data.get("scale_barcode"),
            produced_at=parse_iso_datetime(data.get("produced_at")),
            expires_at=parse_iso_datetime(data.get("expires_at")),
        )

    @classmethod
    def from_model(cls, unit) -> "InventoryUnitView":
        return cls(
            id=unit.id,
            catalog_product_id=unit.catalog_product_id,
            weight_grams=unit.weight_grams,
            sale_price_cents=unit.sale_price_cents,
            status=unit.status,
            scale_barcode=unit.scale_barcode,
            produced_at=unit.produced_at,
            expires_at=unit.expires_at,
        )


@dataclass(frozen=True)
class SaleReceipt:
    """What complete_sale returns: the new id and the number to show staff."""
    order_id: str
    display_number: int

    def to_dict(self) -> dict:
        return {"order_id": self.order_id, "display_number": self.display_number}


# =============================================================================
# FILTERS
# =============================================================================

@dataclass(frozen=True)
class OrderFilters:
    """
    list_orders() filters. All optional.

    date / date_from..date_to bound the scheduled time by local calendar
    day. status 'all' or None means no status filter.
    """
    date: Optional[date] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    status: Optional[str] = None
    search: Optional[str] = None
    delivery: str = "all"

    @property
    def has_date_filter(self) -> bool:
        return self.date is not None or (self.date_from is not None and self.date_to is not None)

    @property
    def date_range(self) -> Optional[tuple[date, date]]:
        if self.date_from is not None and self.date_to is not None:
            return self.date_from, self.date_to
        if self.date is not None:
            return self.date, self.date
        return None

    @property
    def status_filter(self) -> Optional[str]:
        if not self.status or self.status == "all":
            return None
        return self.status

    @property
    def search_term(self) -> Optional[str]:
        if self.search is None:
            return None
        term = self.search.strip().lower()
        return term or None

    def cache_key(self) -> tuple:
        return (
            self.date_range,
            self.status_filter,
            self.search_term,
            self.delivery,
        )

    def to_query_params(self) -> dict:
        params: dict = {}
        if self.date is not None:
            params["date"] = self.date.isoformat()
        if self.date_from is not None:
            params["date_from"] = self.date_from.isoformat()
        if self.date_to is not None:
            params["date_to"] = self.date_to.isoformat()
        if self.status_filter:
            params["status"] = self.status_filter
        if self.search_term:
            params["search"] = self.search_term
        if self.delivery != "all":
            params["delivery"] = self.delivery
        return params

    @classmethod
    def from_query_params(cls, args) -> "OrderFilters":
        delivery = (args.get("delivery") or "all").strip().lower()
        if delivery not in DELIVERY_FILTERS:
            raise ValidationError(
                f"delivery must be one of: {', '.join(DELIVERY_FILTERS)}",
                field_errors={"delivery": "invalid"},
            )
        try:
            filters = cls(
                date=parse_iso_date(args.get("date")),
                date_from=parse_iso_date(args.get("date_from")),
                date_to=parse_iso_date(args.get("date_to")),
                status=(args.get("status") or None),
                search=(args.get("search") or None),
                delivery=delivery,
            )
        except ValueError:
            raise ValidationError("Dates must be YYYY-MM-DD", field_errors={"date": "invalid"})

        if (filters.date_from is None) != (filters.date_to is None):
            missing = "date_to" if filters.date_to is None else "date_from"
            raise ValidationError(
                "date_from and date_to must be given together",
                field_errors={missing: "required"},
            )
        return filters


# =============================================================================
# WRITE DRAFTS
# =============================================================================

@dataclass
class DraftItem:
    catalog_product_id: int
    name: str
    unit_price_cents: int
    quantity: int = 1
    inventory_unit_id: Optional[int] = None
    key: str = field(default_factory=_new_key)

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_rpc(self) -> dict:
        return {
            "catalog_product_id": self.catalog_product_id,
            "inventory_unit_id": self.inventory_unit_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
        }


@dataclass
class DraftPayment:
    method: str
    amount_cents: int
    pix_key_id: Optional[str] = None
    machine_id: Optional[str] = None
    card_flag: Optional[str] = None
    installments: Optional[int] = None
    key: str = field(default_factory=_new_key)

    def to_rpc(self) -> dict:
        return {
            "method": self.method,
            "amount_cents": self.amount_cents,
            "pix_key_id": self.pix_key_id,
            "machine_id": self.machine_id,
            "card_flag": self.card_flag,
            "installments": self.installments,
        }


@dataclass
class DraftAddress:
    street: str = ""
    number: str = ""
    neighborhood: str = ""
    complement: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None

    def is_complete(self) -> bool:
        return all((value or "").strip() for value in (self.street, self.number, self.neighborhood))

    def to_rpc(self) -> dict:
        return {
            "street": self.street,
            "number": self.number,
            "neighborhood": self.neighborhood,
            "complement": self.complement,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
        }


@dataclass
class OrderDraft:
    """Everything needed to create (or fully edit) an order."""
    items: list[DraftItem] = field(default_factory=list)
    client_id: Optional[int] = None
    scheduled_at: Optional[datetime] = None
    notes: Optional[str] = None
    is_delivery: bool = False
    delivery_fee_cents: int = 0
    delivery_address_id: Optional[int] = None
    address: Optional[DraftAddress] = None
    payments: list[DraftPayment] = field(default_factory=list)

    @property
    def subtotal_cents(self) -> int:
        return sum(item.line_total_cents for item in self.items)

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + (self.delivery_fee_cents if self.is_delivery else 0)

    @property
    def paid_cents(self) -> int:
        return sum(p.amount_cents for p in self.payments)

    @property
    def change_cents(self) -> int:
        excess = self.paid_cents - self.total_cents
        if excess > 0 and any(p.method == PAYMENT_CASH for p in self.payments):
            return excess
        return 0

    def sale_header(self) -> dict:
        address = self.address if (self.is_delivery and self.delivery_address_id is None) else None
        return {
            "total_cents": self.total_cents,
            "client_id": self.client_id,
            "notes": self.notes or None,
            "scheduled_at": to_utc_z(self.scheduled_at),
            "is_delivery": self.is_delivery,
            "delivery_fee_cents": self.delivery_fee_cents if self.is_delivery else 0,
            "delivery_address_id": self.delivery_address_id if self.is_delivery else None,
            "address": address.to_rpc() if address else None,
            "change_cents": self.change_cents,
        }

    def to_rpc(self) -> dict:
        """Arguments of the complete_sale procedure: header, items, payments."""
        return {
            "sale": self.sale_header(),
            "items": [item.to_rpc() for item in self.items],
            "payments": [p.to_rpc() for p in self.payments],
        }


def validate_draft(draft: OrderDraft) -> dict[str, str]:
    """
    Client-side preconditions for submitting a draft.

    Returns a field -> message mapping; empty means the draft can be sent.
    """
    errors: dict[str, str] = {}

    if not draft.items:
        errors["items"] = "Add at least one product"
    for i, item in enumerate(draft.items):
        if item.quantity <= 0:
            errors[f"items.{i}.quantity"] = "Quantity must be greater than zero"
        if item.unit_price_cents < 0:
            errors[f"items.{i}.unit_price_cents"] = "Price cannot be negative"

    if draft.scheduled_at is None:
        errors["scheduled_at"] = "Select the pickup/delivery date and time"

    if draft.is_delivery:
        if draft.delivery_fee_cents < 0:
            errors["delivery_fee_cents"] = "Delivery fee cannot be negative"
        has_saved = draft.delivery_address_id is not None
        has_manual = draft.address is not None and draft.address.is_complete()
        if not has_saved and not has_manual:
            errors["delivery_address"] = "Select a saved address or fill street, number and neighborhood"

    for i, payment in enumerate(draft.payments):
        if payment.method not in PAYMENT_METHODS:
            errors[f"payments.{i}.method"] = f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}"
        if payment.amount_cents <= 0:
            errors[f"payments.{i}.amount_cents"] = "Payment amount must be positive"

    if draft.payments and draft.paid_cents > draft.total_cents:
        if not any(p.method == PAYMENT_CASH for p in draft.payments):
            errors["payments"] = "Only cash payments can exceed the order total"

    return errors


def ensure_valid_draft(draft: OrderDraft) -> None:
    errors = validate_draft(draft)
    if errors:
        raise ValidationError("Order draft is incomplete", field_errors=errors)
