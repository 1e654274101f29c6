# Overview: Flask API routes for the order store; parses input and returns JSON responses.

# backend/orderboard/routes/orders.py
"""
Order store API.

Error bodies carry {"error", "code", "details"} so HttpOrderRepository can
rebuild the typed exception on the client side.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import OrderBoardError, ValidationError
from ..extensions import get_repository
from ..services.order_repository import UPCOMING_DAYS
from ..services.order_types import OrderFilters
from ..validation import coerce_int, coerce_str, draft_from_payload


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _error_response(exc: OrderBoardError):
    return jsonify(exc.to_dict()), exc.http_status


def _internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
def list_orders_route():
    """
    List orders for the board.

    Query params: date, date_from, date_to (YYYY-MM-DD, local days),
    status, search, delivery (all|delivery|pickup).
    """
    try:
        filters = OrderFilters.from_query_params(request.args)
        orders = get_repository().list_orders(filters)
        return jsonify({"orders": [order.to_dict() for order in orders]}), 200
    except OrderBoardError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to list orders")


@orders_bp.get("/upcoming")
def upcoming_orders_route():
    try:
        days = coerce_int(request.args.get("days"), "days", minimum=0, required=False)
        orders = get_repository().upcoming_orders(UPCOMING_DAYS if days is None else days)
        return jsonify({"orders": [order.to_dict() for order in orders]}), 200
    except OrderBoardError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to list upcoming orders")


@orders_bp.get("/<order_id>")
def get_order_route(order_id: str):
    try:
        order = get_repository().get_order(order_id)
        return jsonify({"order": order.to_dict()}), 200
    except OrderBoardError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to load order")


@orders_bp.patch("/<order_id>/status")
def change_status_route(order_id: str):
    """
    Single-field status update. Re-sending the current status is a 200.
    """
    try:
        data = request.get_json(silent=True) or {}
        status = coerce_str(data.get("status"), "status")
        if not status:
            raise ValidationError("status is required", field_errors={"status": "required"})

        order = get_repository().change_status(order_id, status)
        return jsonify({"order": order.to_dict()}), 200
    except OrderBoardError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to change order status")


@orders_bp.post("/complete-sale")
def complete_sale_route():
    """
    Atomic sale completion.

    Body: {"sale": {...}, "items": [...], "payments": [...]}
    Returns 201 {"order_id", "display_number"}; on any error nothing is written.
    """
    try:
        draft = draft_from_payload(request.get_json(silent=True))
        receipt = get_repository().complete_sale(draft)
        return jsonify(receipt.to_dict()), 201
    except OrderBoardError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to complete sale")


@orders_bp.put("/<order_id>")
def update_order_route(order_id: str):
    """
    Edit an order: replaces items, schedule, delivery, notes and client.
    Payments in the body are ignored.
    """
    try:
        draft = draft_from_payload(request.get_json(silent=True))
        order = get_repository().update_order(order_id, draft)
        return jsonify({"order": order.to_dict()}), 200
    except OrderBoardError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to update order")


@orders_bp.post("/<order_id>/ready-check")
def ready_check_route(order_id: str):
    try:
        became_ready = get_repository().check_and_set_ready(order_id)
        return jsonify({"became_ready": became_ready}), 200
    except OrderBoardError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to evaluate order readiness")


@orders_bp.post("/lines/<int:line_id>/link")
def link_unit_route(line_id: int):
    try:
        data = request.get_json(silent=True) or {}
        unit_id = coerce_int(data.get("unit_id"), "unit_id")
        line = get_repository().link_inventory_unit(line_id, unit_id)
        return jsonify({"line": line.to_dict()}), 200
    except OrderBoardError as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to link inventory unit")
