from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from orderboard.errors import ValidationError
from orderboard.services.order_types import DraftAddress, DraftItem, DraftPayment, OrderDraft
from orderboard.time_utils import parse_iso_datetime


# Maximum price: R$ 9.999.999,99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999


def _invalid(field: str, message: str) -> ValidationError:
    return ValidationError(message, field_errors={field: message})


def coerce_int(value: Any, field: str, *, minimum: Optional[int] = None, required: bool = True) -> Optional[int]:
    """
    Strict integer parsing: ints and plain digit strings only.

    Floats, decimals and scientific notation are rejected so that money
    amounts in cents never get silently rounded.
    """
    if value is None:
        if required:
            raise _invalid(field, f"{field} is required")
        return None

    # bool is a subclass of int
    if isinstance(value, bool):
        raise _invalid(field, f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise _invalid(field, f"{field} must be an integer")
        if "e" in stripped.lower():
            raise _invalid(field, f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped or "," in stripped:
            raise _invalid(field, f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise _invalid(field, f"{field} must be an integer")
    elif isinstance(value, float):
        raise _invalid(field, f"{field} must be an integer, not a decimal")
    else:
        raise _invalid(field, f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise _invalid(field, f"{field} must be at least {minimum}")
    if field.endswith("_cents") and result > MAX_PRICE_CENTS:
        raise _invalid(field, f"{field} exceeds maximum allowed ({MAX_PRICE_CENTS} cents)")
    return result


def coerce_bool(value: Any, field: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no", ""):
        return False
    raise _invalid(field, f"{field} must be a boolean")


def coerce_datetime(value: Any, field: str) -> Optional[datetime]:
    """ISO-8601 string -> UTC-naive datetime. None/"" -> None."""
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise _invalid(field, f"{field} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise _invalid(field, f"{field} must be an ISO-8601 datetime")


def coerce_str(value: Any, field: str, *, max_length: Optional[int] = None) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if max_length is not None and len(text) > max_length:
        raise _invalid(field, f"{field} must be at most {max_length} characters")
    return text or None


def _require_dict(value: Any, field: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _invalid(field, f"{field} must be an object")
    return value


def _require_list(value: Any, field: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _invalid(field, f"{field} must be a list")
    return value


def _address_from_payload(data: dict) -> DraftAddress:
    return DraftAddress(
        street=coerce_str(data.get("street"), "address.street", max_length=255) or "",
        number=coerce_str(data.get("number"), "address.number", max_length=32) or "",
        neighborhood=coerce_str(data.get("neighborhood"), "address.neighborhood", max_length=128) or "",
        complement=coerce_str(data.get("complement"), "address.complement", max_length=255),
        city=coerce_str(data.get("city"), "address.city", max_length=128),
        state=coerce_str(data.get("state"), "address.state", max_length=64),
        zip_code=coerce_str(data.get("zip_code"), "address.zip_code", max_length=16),
    )


def draft_from_payload(payload: Any) -> OrderDraft:
    """
    Parse a complete-sale / edit body: {"sale": {...}, "items": [...], "payments": [...]}.

    Declared line totals and order total, when present, must match what the
    items add up to.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    sale = _require_dict(payload.get("sale"), "sale")
    items = _require_list(payload.get("items"), "items")
    payments = _require_list(payload.get("payments"), "payments")

    draft_items = []
    for i, raw in enumerate(items):
        raw = _require_dict(raw, f"items.{i}")
        item = DraftItem(
            catalog_product_id=coerce_int(raw.get("catalog_product_id"), f"items.{i}.catalog_product_id"),
            name=coerce_str(raw.get("name"), f"items.{i}.name", max_length=255) or "",
            unit_price_cents=coerce_int(raw.get("unit_price_cents"), f"items.{i}.unit_price_cents", minimum=0),
            quantity=coerce_int(raw.get("quantity"), f"items.{i}.quantity", minimum=1),
            inventory_unit_id=coerce_int(raw.get("inventory_unit_id"), f"items.{i}.inventory_unit_id", required=False),
        )
        declared = coerce_int(raw.get("line_total_cents"), f"items.{i}.line_total_cents", required=False)
        if declared is not None and declared != item.line_total_cents:
            raise _invalid(f"items.{i}.line_total_cents", "Line total does not match unit price x quantity")
        draft_items.append(item)

    draft_payments = []
    for i, raw in enumerate(payments):
        raw = _require_dict(raw, f"payments.{i}")
        draft_payments.append(DraftPayment(
            method=coerce_str(raw.get("method"), f"payments.{i}.method") or "",
            amount_cents=coerce_int(raw.get("amount_cents"), f"payments.{i}.amount_cents"),
            pix_key_id=coerce_str(raw.get("pix_key_id"), f"payments.{i}.pix_key_id", max_length=64),
            machine_id=coerce_str(raw.get("machine_id"), f"payments.{i}.machine_id", max_length=64),
            card_flag=coerce_str(raw.get("card_flag"), f"payments.{i}.card_flag", max_length=32),
            installments=coerce_int(raw.get("installments"), f"payments.{i}.installments", minimum=1, required=False),
        ))

    address_data = sale.get("address")
    draft = OrderDraft(
        items=draft_items,
        client_id=coerce_int(sale.get("client_id"), "client_id", required=False),
        scheduled_at=coerce_datetime(sale.get("scheduled_at"), "scheduled_at"),
        notes=coerce_str(sale.get("notes"), "notes"),
        is_delivery=coerce_bool(sale.get("is_delivery"), "is_delivery"),
        delivery_fee_cents=coerce_int(sale.get("delivery_fee_cents"), "delivery_fee_cents", minimum=0, required=False) or 0,
        delivery_address_id=coerce_int(sale.get("delivery_address_id"), "delivery_address_id", required=False),
        address=_address_from_payload(_require_dict(address_data, "address")) if address_data else None,
        payments=draft_payments,
    )

    declared_total = coerce_int(sale.get("total_cents"), "total_cents", required=False)
    if declared_total is not None and declared_total != draft.total_cents:
        raise _invalid("total_cents", "Order total does not match its items and delivery fee")
    return draft


def unit_from_payload(payload: Any) -> dict:
    """Parse a quick inventory-unit creation body."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return {
        "catalog_product_id": coerce_int(payload.get("catalog_product_id"), "catalog_product_id"),
        "weight_grams": coerce_int(payload.get("weight_grams"), "weight_grams", minimum=1),
        "sale_price_cents": coerce_int(payload.get("sale_price_cents"), "sale_price_cents", minimum=0, required=False),
        "scale_barcode": coerce_int(payload.get("scale_barcode"), "scale_barcode", required=False),
    }
