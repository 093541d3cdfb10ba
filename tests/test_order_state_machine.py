import itertools

import pytest

from gastrocore.core.errors import InvalidTransition
from gastrocore.models.business import OperationMode
from gastrocore.models.order import OrderStatus
from gastrocore.services.order_state_machine import (
    can_skip_delivered,
    can_transition,
    ensure_transition,
    is_terminal,
    next_states,
    requires_reason,
)

LEGAL = {
    (OrderStatus.OPEN, OrderStatus.IN_PREP),
    (OrderStatus.OPEN, OrderStatus.CANCELLED),
    (OrderStatus.IN_PREP, OrderStatus.READY),
    (OrderStatus.IN_PREP, OrderStatus.CANCELLED),
    (OrderStatus.READY, OrderStatus.DELIVERED),
    (OrderStatus.READY, OrderStatus.CLOSED),
    (OrderStatus.DELIVERED, OrderStatus.CLOSED),
}

ALL_PAIRS = list(itertools.product(OrderStatus, repeat=2))


@pytest.mark.parametrize("from_status,to_status", ALL_PAIRS)
def test_can_transition_matches_table(from_status, to_status):
    assert can_transition(from_status, to_status) == ((from_status, to_status) in LEGAL)


@pytest.mark.parametrize("from_status,to_status", [p for p in ALL_PAIRS if p not in LEGAL])
def test_ensure_transition_rejects_illegal_pairs(from_status, to_status):
    with pytest.raises(InvalidTransition) as excinfo:
        ensure_transition(from_status, to_status)
    assert excinfo.value.code == "INVALID_TRANSITION"


def test_no_self_loops():
    for status in OrderStatus:
        assert not can_transition(status, status)


def test_next_states():
    assert next_states(OrderStatus.OPEN) == {OrderStatus.IN_PREP, OrderStatus.CANCELLED}
    assert next_states(OrderStatus.READY) == {OrderStatus.DELIVERED, OrderStatus.CLOSED}
    assert next_states(OrderStatus.CLOSED) == frozenset()


def test_only_closed_and_cancelled_are_terminal():
    terminal = {s for s in OrderStatus if is_terminal(s)}
    assert terminal == {OrderStatus.CLOSED, OrderStatus.CANCELLED}
    for status in terminal:
        assert next_states(status) == frozenset()


@pytest.mark.parametrize("from_status,to_status", ALL_PAIRS)
def test_reason_required_only_for_cancellation(from_status, to_status):
    assert requires_reason(from_status, to_status) == (to_status == OrderStatus.CANCELLED)


def test_accepts_raw_status_strings():
    assert can_transition("READY", "CLOSED")
    assert is_terminal("CANCELLED")


def test_counter_mode_may_skip_delivered():
    assert can_skip_delivered(OperationMode.COUNTER)
    assert not can_skip_delivered(OperationMode.RESTAURANT)
    # The edge is legal regardless of mode
    assert can_transition(OrderStatus.READY, OrderStatus.CLOSED)
