# backend/orderboard/routes/system.py
"""
System health endpoint.

Checks the order store and the physical inventory tables so that a board
client can tell "store unreachable" apart from "nothing to show".
"""

import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import Order, InventoryUnit
from orderboard.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity with a cheap count per order table.
    """
    start_time = time.time()
    try:
        order_count = db.session.query(Order).count()
        open_count = db.session.query(Order).filter(
            Order.status.in_(("received", "preparing", "ready"))
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "orders": order_count,
                "open_orders": open_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_inventory_health() -> dict:
    """
    Available units past their expiry date mean the shelf needs attention;
    reported as degraded, never unhealthy.
    """
    start_time = time.time()
    try:
        now = utcnow()
        available = db.session.query(InventoryUnit).filter_by(status="available").count()
        stale = db.session.query(InventoryUnit).filter(
            InventoryUnit.status == "available",
            InventoryUnit.expires_at.isnot(None),
            InventoryUnit.expires_at < now,
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000
        result = {
            "status": "degraded" if stale else "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "available_units": available,
                "expired_but_available": stale,
            }
        }
        if stale:
            result["warning"] = f"{stale} available unit(s) past expiry"
        return result
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Inventory health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Inventory error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    inventory_health = check_inventory_health()

    all_checks = [database_health, inventory_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "inventory": inventory_health,
        }
    }

    return response, http_status
