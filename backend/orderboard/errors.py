# Overview: Typed errors shared by the order store, the repositories and the board.

"""
Error taxonomy for the order lifecycle engine.

Every failure that crosses a repository boundary is one of these classes.
Each carries a stable ``code`` (used on the wire by the HTTP API so the
remote client can rebuild the same type) and the HTTP status the routes
answer with.

    OrderBoardError
    ├── ValidationError          400  caught before any write
    ├── OrderStatusError         400  unknown status / leaving a terminal state
    └── RepositoryError          500  store call failed
        ├── OrderNotFound        404
        ├── LineNotFound         404
        ├── InventoryUnitNotFound 404
        ├── InventoryUnitUnavailable 409
        ├── LineAlreadyLinked    409
        ├── SaleCompletionError  400  complete_sale rejected, nothing written
        └── RemoteWriteError     502  transport / database failure
"""

from __future__ import annotations


class OrderBoardError(Exception):
    """Base class; carries a message and optional structured details."""

    code = "order_board_error"
    http_status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(OrderBoardError):
    """400-level input problem. ``field_errors`` maps field -> message."""

    code = "validation_error"
    http_status = 400

    def __init__(self, message: str, field_errors: dict[str, str] | None = None):
        super().__init__(message, details={"fields": dict(field_errors or {})})
        self.field_errors = dict(field_errors or {})


class OrderStatusError(OrderBoardError):
    code = "invalid_status"
    http_status = 400


class RepositoryError(OrderBoardError):
    code = "repository_error"
    http_status = 500


class OrderNotFound(RepositoryError):
    code = "order_not_found"
    http_status = 404


class LineNotFound(RepositoryError):
    code = "line_not_found"
    http_status = 404


class InventoryUnitNotFound(RepositoryError):
    code = "inventory_unit_not_found"
    http_status = 404


class InventoryUnitUnavailable(RepositoryError):
    code = "inventory_unit_unavailable"
    http_status = 409


class LineAlreadyLinked(RepositoryError):
    code = "line_already_linked"
    http_status = 409


class SaleCompletionError(RepositoryError):
    code = "sale_completion_failed"
    http_status = 400


class RemoteWriteError(RepositoryError):
    code = "remote_write_failed"
    http_status = 502


ERRORS_BY_CODE: dict[str, type[OrderBoardError]] = {
    cls.code: cls
    for cls in (
        OrderBoardError,
        ValidationError,
        OrderStatusError,
        RepositoryError,
        OrderNotFound,
        LineNotFound,
        InventoryUnitNotFound,
        InventoryUnitUnavailable,
        LineAlreadyLinked,
        SaleCompletionError,
        RemoteWriteError,
    )
}


def error_from_payload(payload: dict, status_code: int) -> OrderBoardError:
    """Rebuild a typed error from an API error body."""
    message = payload.get("error") or f"HTTP {status_code}"
    code = payload.get("code")
    details = payload.get("details") or {}
    cls = ERRORS_BY_CODE.get(code)
    if cls is ValidationError:
        return ValidationError(message, field_errors=details.get("fields"))
    if cls is None:
        cls = RepositoryError if status_code >= 500 else OrderBoardError
    return cls(message, details=details)
