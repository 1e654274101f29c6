# Overview: HTTP implementation of OrderRepository for boards running outside the store process.

"""
Remote order repository over the JSON API.

Error bodies ({"error", "code", "details"}) are turned back into the same
typed exceptions the in-process repository raises. Transport failures
(connection refused, timeouts) become RemoteWriteError. Timeouts are the
transport's; nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from orderboard.errors import RemoteWriteError, error_from_payload
from orderboard.services.order_repository import UPCOMING_DAYS, OrderRepository
from orderboard.services.order_types import (
    InventoryUnitView,
    OrderDraft,
    OrderFilters,
    OrderLineView,
    OrderView,
    SaleReceipt,
)


logger = logging.getLogger(__name__)


class HttpOrderRepository(OrderRepository):

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise RemoteWriteError(
                "Order store unreachable",
                details={"reason": exc.__class__.__name__, "path": path},
            ) from exc

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {"error": response.text[:200] or f"HTTP {response.status_code}"}
            raise error_from_payload(payload, response.status_code)

        return response.json()

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "HttpOrderRepository":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- reads ---------------------------------------------------------------

    def list_orders(self, filters: Optional[OrderFilters] = None) -> list[OrderView]:
        params = (filters or OrderFilters()).to_query_params()
        data = self._request("GET", "/api/orders", params=params)
        return [OrderView.from_dict(order) for order in data["orders"]]

    def get_order(self, order_id: str) -> OrderView:
        data = self._request("GET", f"/api/orders/{order_id}")
        return OrderView.from_dict(data["order"])

    def upcoming_orders(self, days: int = UPCOMING_DAYS) -> list[OrderView]:
        data = self._request("GET", "/api/orders/upcoming", params={"days": days})
        return [OrderView.from_dict(order) for order in data["orders"]]

    def available_units(self, catalog_product_id: int) -> list[InventoryUnitView]:
        data = self._request(
            "GET",
            "/api/inventory-units",
            params={"catalog_product_id": catalog_product_id, "status": "available"},
        )
        return [InventoryUnitView.from_dict(unit) for unit in data["units"]]

    # -- writes --------------------------------------------------------------

    def change_status(self, order_id: str, status: str) -> OrderView:
        data = self._request("PATCH", f"/api/orders/{order_id}/status", json={"status": status})
        return OrderView.from_dict(data["order"])

    def complete_sale(self, draft: OrderDraft) -> SaleReceipt:
        data = self._request("POST", "/api/orders/complete-sale", json=draft.to_rpc())
        return SaleReceipt(order_id=data["order_id"], display_number=data["display_number"])

    def update_order(self, order_id: str, draft: OrderDraft) -> OrderView:
        data = self._request("PUT", f"/api/orders/{order_id}", json=draft.to_rpc())
        return OrderView.from_dict(data["order"])

    def create_unit(
        self,
        catalog_product_id: int,
        weight_grams: int,
        sale_price_cents: Optional[int] = None,
        scale_barcode: Optional[int] = None,
    ) -> InventoryUnitView:
        data = self._request("POST", "/api/inventory-units", json={
            "catalog_product_id": catalog_product_id,
            "weight_grams": weight_grams,
            "sale_price_cents": sale_price_cents,
            "scale_barcode": scale_barcode,
        })
        return InventoryUnitView.from_dict(data["unit"])

    def link_inventory_unit(self, line_id: int, unit_id: int) -> OrderLineView:
        data = self._request("POST", f"/api/orders/lines/{line_id}/link", json={"unit_id": unit_id})
        return OrderLineView.from_dict(data["line"])

    def check_and_set_ready(self, order_id: str) -> bool:
        data = self._request("POST", f"/api/orders/{order_id}/ready-check")
        return bool(data["became_ready"])
