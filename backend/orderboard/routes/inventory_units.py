# Overview: Flask API routes for physical inventory units; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import OrderBoardError
from ..extensions import get_repository
from ..services import inventory_unit_service
from ..services.order_types import InventoryUnitView
from ..validation import coerce_int, coerce_str, unit_from_payload


inventory_units_bp = Blueprint("inventory_units", __name__, url_prefix="/api/inventory-units")


@inventory_units_bp.get("")
def list_units_route():
    """
    List units.

    Query params: catalog_product_id, status (default "available",
    "all" for every status).
    """
    try:
        catalog_product_id = coerce_int(request.args.get("catalog_product_id"), "catalog_product_id", required=False)
        status = coerce_str(request.args.get("status"), "status") or inventory_unit_service.AVAILABLE
        units = inventory_unit_service.list_units(
            catalog_product_id=catalog_product_id,
            status=None if status == "all" else status,
        )
        return jsonify({"units": [InventoryUnitView.from_model(u).to_dict() for u in units]}), 200
    except OrderBoardError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list inventory units")
        return jsonify({"error": "Internal server error"}), 500


@inventory_units_bp.post("")
def create_unit_route():
    """Quick-scan creation of a weighed unit. Returns 201 {"unit"}."""
    try:
        data = unit_from_payload(request.get_json(silent=True))
        unit = get_repository().create_unit(
            data["catalog_product_id"],
            data["weight_grams"],
            sale_price_cents=data["sale_price_cents"],
            scale_barcode=data["scale_barcode"],
        )
        return jsonify({"unit": unit.to_dict()}), 201
    except OrderBoardError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create inventory unit")
        return jsonify({"error": "Internal server error"}), 500
