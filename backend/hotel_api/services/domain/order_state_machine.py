"""
Order lifecycle rules.

The transition graph itself lives in ``hotel_shared.config.constants`` so the
API, the kitchen display and tests all read the same immutable table.
"""

from __future__ import annotations

from typing import Iterable

from hotel_shared.config.constants import ORDER_TRANSITIONS, OrderStatus, TERMINAL_STATUSES
from hotel_shared.utils.exceptions import InvalidTransitionError, ValidationError


def parse_status(value: OrderStatus | str) -> OrderStatus:
    """Coerce a client-supplied status, refusing unknown values."""
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown order status '{value}'", status=str(value))


def allowed_targets(current: OrderStatus) -> frozenset[OrderStatus]:
    return ORDER_TRANSITIONS.get(OrderStatus(current), frozenset())


def is_valid_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """True only for real edges; a self-transition is not an edge."""
    return OrderStatus(target) in allowed_targets(current)


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def validate_transition(order_id: str, current: OrderStatus, target: OrderStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is an edge."""
    if not is_valid_transition(current, target):
        raise InvalidTransitionError(
            "order",
            OrderStatus(current).value,
            OrderStatus(target).value,
            order_id=order_id,
        )


def initial_status(payment_method: str, cash_methods: Iterable[str]) -> OrderStatus:
    """Cash-on-delivery orders skip pending and enter confirmed_unpaid."""
    if payment_method in set(cash_methods):
        return OrderStatus.CONFIRMED_UNPAID
    return OrderStatus.PENDING
