# backend/orderboard/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/orderboard.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///orderboard.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Local calendar used for "today" (delivered history window, date filters)
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "America/Sao_Paulo")

    # Default delivery fee offered by the order builder (cents)
    FIXED_DELIVERY_FEE_CENTS = int(os.environ.get("FIXED_DELIVERY_FEE_CENTS", "0"))

    # Order list cache; entries are dropped on every write and after this many seconds
    ORDER_CACHE_TTL_SECONDS = float(os.environ.get("ORDER_CACHE_TTL_SECONDS", "5"))

    NOTIFICATIONS_ENABLED = _env_bool("NOTIFICATIONS_ENABLED", True)

    # Base URL used by HttpOrderRepository when no client is injected
    ORDER_BOARD_URL = os.environ.get("ORDER_BOARD_URL", "http://127.0.0.1:5001")
    ORDER_BOARD_TIMEOUT_SECONDS = float(os.environ.get("ORDER_BOARD_TIMEOUT_SECONDS", "10"))
