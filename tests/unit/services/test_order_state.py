# tests/unit/services/test_order_state.py
import pytest

from app.core.enums import OrderItemStatus as S, ShipmentStatus
from app.core.exceptions import IllegalStateError
from app.services.order_state import (
    ALLOWED_TRANSITIONS,
    can_transition,
    is_forward,
    is_shipment_forward,
    is_terminal,
    validate_transition,
)


def test_every_status_has_a_transition_entry():
    assert set(ALLOWED_TRANSITIONS) == set(S)


@pytest.mark.parametrize("current,target", [
    (S.PENDING_APPROVAL, S.APPROVED),
    (S.PENDING_APPROVAL, S.REJECTED),
    (S.APPROVED, S.PROCESSING),
    (S.APPROVED, S.CANCELLED),
    (S.PROCESSING, S.APPROVED),
    (S.DELIVERED, S.RETURNED),
    (S.REJECTED, S.REFUNDED),
])
def test_legal_transitions(current, target):
    assert can_transition(current, target)
    validate_transition(current, target)


@pytest.mark.parametrize("current,target", [
    (S.PENDING_APPROVAL, S.PROCESSING),
    (S.APPROVED, S.REJECTED),
    (S.REJECTED, S.APPROVED),
    (S.DELIVERED, S.IN_TRANSIT),
    (S.REFUNDED, S.REFUNDED),
    (S.CANCELLED, S.APPROVED),
])
def test_illegal_transitions_raise(current, target):
    assert not can_transition(current, target)
    with pytest.raises(IllegalStateError):
        validate_transition(current, target, "item-1")


def test_refunded_is_final():
    assert ALLOWED_TRANSITIONS[S.REFUNDED] == frozenset()
    assert is_terminal("refunded")
    assert not is_terminal(S.DELIVERED)


def test_string_statuses_are_accepted():
    assert can_transition("pending_approval", "approved")


def test_is_forward_moves_only_ahead():
    assert is_forward(S.PROCESSING, S.IN_TRANSIT)
    assert is_forward(S.IN_TRANSIT, S.DELIVERED)
    assert not is_forward(S.DELIVERED, S.IN_TRANSIT)
    assert not is_forward(S.IN_TRANSIT, S.IN_TRANSIT)
    assert not is_forward(S.REFUNDED, S.DELIVERED)


def test_exception_enters_and_leaves_the_shipping_track():
    assert is_forward(S.IN_TRANSIT, S.EXCEPTION)
    assert is_forward(S.EXCEPTION, S.DELIVERED)
    assert not is_forward(S.DELIVERED, S.EXCEPTION)
    assert not is_forward(S.EXCEPTION, S.PROCESSING)


def test_exception_cannot_be_left_below_the_status_before_it():
    assert not is_forward(S.EXCEPTION, S.IN_TRANSIT, before_exception=S.OUT_FOR_DELIVERY)
    assert is_forward(S.EXCEPTION, S.OUT_FOR_DELIVERY, before_exception=S.OUT_FOR_DELIVERY)
    assert is_forward(S.EXCEPTION, S.DELIVERED, before_exception=S.OUT_FOR_DELIVERY)
    assert is_forward(S.EXCEPTION, S.SHIPPED, before_exception=S.PROCESSING)
    assert not is_shipment_forward(
        ShipmentStatus.EXCEPTION, ShipmentStatus.IN_TRANSIT, ShipmentStatus.OUT_FOR_DELIVERY
    )
    assert is_shipment_forward(ShipmentStatus.EXCEPTION, ShipmentStatus.DELIVERED, ShipmentStatus.OUT_FOR_DELIVERY)


def test_shipment_forward_rule():
    assert is_shipment_forward(ShipmentStatus.CREATED, ShipmentStatus.IN_TRANSIT)
    assert is_shipment_forward(ShipmentStatus.PICKUP_SCHEDULED, ShipmentStatus.SHIPPED)
    assert not is_shipment_forward(ShipmentStatus.DELIVERED, ShipmentStatus.IN_TRANSIT)
    assert not is_shipment_forward(ShipmentStatus.CANCELLED, ShipmentStatus.DELIVERED)
    assert not is_shipment_forward(ShipmentStatus.RETURNED, ShipmentStatus.DELIVERED)
