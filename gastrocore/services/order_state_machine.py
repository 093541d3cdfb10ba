"""
Order lifecycle graph.

Pure lookups, no I/O. Every order status write consults ``ensure_transition``
before persisting; persisting is the caller's job.
"""
from typing import Dict, FrozenSet

from gastrocore.core.errors import InvalidTransition
from gastrocore.models.business import OperationMode
from gastrocore.models.order import OrderStatus


VALID_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.OPEN: frozenset({OrderStatus.IN_PREP, OrderStatus.CANCELLED}),
    OrderStatus.IN_PREP: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERED, OrderStatus.CLOSED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.CLOSED}),
    OrderStatus.CLOSED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset({OrderStatus.CLOSED, OrderStatus.CANCELLED})


def can_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    return OrderStatus(to_status) in VALID_TRANSITIONS[OrderStatus(from_status)]


def next_states(current: OrderStatus) -> FrozenSet[OrderStatus]:
    return VALID_TRANSITIONS[OrderStatus(current)]


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATES


def requires_reason(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    """Cancellation always needs an operator supplied reason, from any state."""
    return OrderStatus(to_status) == OrderStatus.CANCELLED


def can_skip_delivered(operation_mode: OperationMode) -> bool:
    """
    Counter businesses (food trucks) hand the order over at the counter, so the
    UI offers READY -> CLOSED directly. The edge itself is legal in every mode.
    """
    return OperationMode(operation_mode) == OperationMode.COUNTER


def ensure_transition(from_status: OrderStatus, to_status: OrderStatus) -> None:
    if not can_transition(from_status, to_status):
        raise InvalidTransition(OrderStatus(from_status).value, OrderStatus(to_status).value)
