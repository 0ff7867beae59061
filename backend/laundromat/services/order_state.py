# Overview: Order status state machine; validates transitions and stamps stage audit fields.

"""
Order pipeline:

    received -> cleaned -> ready -> delivered
    received -> cancelled

delivered and cancelled are terminal. Re-applying the current status of a
non-terminal order is a status no-op that re-stamps that stage's
actor/timestamp (the newer stamp wins).

These functions mutate the Order in memory only; order_service owns
locking and commit.
"""

from __future__ import annotations

from datetime import datetime

from ..models.orders import (
    Order,
    STATUS_RECEIVED,
    STATUS_CLEANED,
    STATUS_READY,
    STATUS_DELIVERED,
    STATUS_CANCELLED,
    VALID_STATUSES,
)
from ..validation import ValidationError, ForbiddenError
from laundromat.time_utils import utcnow


class InvalidTransitionError(ValueError):
    """Raised when a status change (or edit) is not allowed in the order's current status."""
    pass


TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_RECEIVED: frozenset({STATUS_CLEANED, STATUS_CANCELLED}),
    STATUS_CLEANED: frozenset({STATUS_READY}),
    STATUS_READY: frozenset({STATUS_DELIVERED}),
    STATUS_DELIVERED: frozenset(),
    STATUS_CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({STATUS_DELIVERED, STATUS_CANCELLED})

# status -> (actor column, timestamp column)
STAGE_STAMPS: dict[str, tuple[str, str]] = {
    STATUS_RECEIVED: ("received_by", "received_at"),
    STATUS_CLEANED: ("cleaned_by", "cleaned_at"),
    STATUS_READY: ("ready_by", "ready_at"),
    STATUS_DELIVERED: ("delivered_by", "delivered_at"),
    STATUS_CANCELLED: ("cancelled_by", "cancelled_at"),
}


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, frozenset())


def stamp_stage(order: Order, status: str, actor_name: str | None, now: datetime | None = None) -> None:
    by_col, at_col = STAGE_STAMPS[status]
    setattr(order, by_col, actor_name)
    setattr(order, at_col, now or utcnow())


def apply_transition(order: Order, new_status: str, actor_name: str | None, now: datetime | None = None) -> Order:
    """
    Move order to new_status, stamping the stage being entered.

    Raises:
        ValidationError: unknown status value
        InvalidTransitionError: the move is not in TRANSITIONS
    """
    if new_status not in VALID_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(VALID_STATUSES)}")

    current = order.status
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Order {order.order_number} is {current}; its status can no longer change")

    if new_status == current:
        stamp_stage(order, new_status, actor_name, now)
        return order

    if not can_transition(current, new_status):
        if new_status == STATUS_CANCELLED:
            raise InvalidTransitionError("Only orders in 'received' status can be cancelled")
        raise InvalidTransitionError(f"Cannot move order from '{current}' to '{new_status}'")

    order.status = new_status
    stamp_stage(order, new_status, actor_name, now)
    return order


def cancel(order: Order, actor_name: str | None, now: datetime | None = None) -> Order:
    if order.status != STATUS_RECEIVED:
        raise InvalidTransitionError("Only orders in 'received' status can be cancelled")
    return apply_transition(order, STATUS_CANCELLED, actor_name, now)


def mark_delivered(order: Order, actor_name: str | None, now: datetime | None = None) -> Order:
    """
    Direct-to-delivered path used by the driver/counter deliver action.

    Unlike apply_transition this does not require the order to have passed
    through cleaned/ready first, so the audit trail may have gaps. Terminal
    orders are still rejected.
    """
    if order.status in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Order {order.order_number} is already {order.status}")
    order.status = STATUS_DELIVERED
    stamp_stage(order, STATUS_DELIVERED, actor_name, now)
    return order


def ensure_editable(order: Order) -> None:
    """Staff edits are allowed in any non-terminal status."""
    if order.status in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Order {order.order_number} is {order.status} and can no longer be edited")


def ensure_customer_editable(order: Order) -> None:
    """Customers may only touch an order the shop has not started on."""
    if order.status != STATUS_RECEIVED:
        raise ForbiddenError("This order is already being processed and can no longer be changed online")
