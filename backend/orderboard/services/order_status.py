# Overview: Order fulfillment status state machine; pure functions, no database work.

"""
Order Status State Machine

================================================================================
STATE MACHINE:
    received -> preparing -> ready -> delivered

    received:   initial state, set by complete_sale
    preparing:  kitchen is working on it
    ready:      waiting for pickup / courier
    delivered:  terminal
    cancelled:  terminal, reachable from any non-terminal state; never
                offered by the board as a next step

RULES:
1. next_status() is the single forward step of the happy path, or None
2. Terminal states are never left (only the idempotent self-transition)
3. Re-applying the current status is a no-op, not an error
================================================================================
"""

from __future__ import annotations
from typing import Literal, Optional

from orderboard.errors import OrderStatusError


RECEIVED = "received"
PREPARING = "preparing"
READY = "ready"
DELIVERED = "delivered"
CANCELLED = "cancelled"

OrderStatus = Literal["received", "preparing", "ready", "delivered", "cancelled"]

ORDER_STATUSES = (RECEIVED, PREPARING, READY, DELIVERED, CANCELLED)
INITIAL_STATUS = RECEIVED
TERMINAL_STATUSES = frozenset({DELIVERED, CANCELLED})

# Statuses that get a board column, in display order
BOARD_STATUSES = (RECEIVED, PREPARING, READY, DELIVERED)

# Statuses where the schedule still matters (countdown / late flag)
IN_PROGRESS_STATUSES = frozenset({RECEIVED, PREPARING})

STATUS_LABELS = {
    RECEIVED: "Recebido",
    PREPARING: "Em Preparo",
    READY: "Pronto",
    DELIVERED: "Entregue",
    CANCELLED: "Cancelado",
}

_FORWARD = {
    RECEIVED: PREPARING,
    PREPARING: READY,
    READY: DELIVERED,
}


def validate_status(status: str) -> None:
    """
    Raises:
        OrderStatusError: If status is not one of ORDER_STATUSES
    """
    if status not in ORDER_STATUSES:
        raise OrderStatusError(
            f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}",
            details={"status": status},
        )


def next_status(status: str) -> Optional[str]:
    """The single legal forward transition from ``status``, or None."""
    validate_status(status)
    return _FORWARD.get(status)


def is_terminal(status: str) -> bool:
    validate_status(status)
    return status in TERMINAL_STATUSES


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check a transition against the happy path.

    Valid:
    - the forward step (received -> preparing, preparing -> ready,
      ready -> delivered)
    - any status to itself (idempotent re-apply)

    Everything else is invalid, including skips and backward moves.
    """
    validate_status(from_status)
    validate_status(to_status)

    if from_status == to_status:
        return True

    return _FORWARD.get(from_status) == to_status


def cancel_allowed(status: str) -> bool:
    """Cancellation is reachable from any non-terminal state."""
    return not is_terminal(status)


def ensure_can_leave(from_status: str, to_status: str) -> None:
    """
    Guard used by the store before writing a new status.

    Raises:
        OrderStatusError: If from_status is terminal and to_status differs
    """
    validate_status(from_status)
    validate_status(to_status)
    if from_status != to_status and from_status in TERMINAL_STATUSES:
        raise OrderStatusError(
            f"Order is '{from_status}' and cannot move to '{to_status}'",
            details={"from": from_status, "to": to_status},
        )
