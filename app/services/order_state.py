"""
Order item lifecycle.

Every status change an order item can make is listed in ALLOWED_TRANSITIONS;
services call validate_transition() instead of comparing strings themselves.

Seller decision:      pending_approval -> approved | rejected
Shipping track:       approved -> processing -> shipped -> in_transit
                      -> out_for_delivery -> delivered
Exceptions:           processing..out_for_delivery -> exception -> back on track
Compensation:         processing | shipped | exception -> approved (shipment voided)
                      approved -> cancelled (stock restored)
                      delivered -> returned
Money:                anything except refunded -> refunded
"""

from typing import Dict, FrozenSet, Optional

from app.core.enums import OrderItemStatus, ShipmentStatus
from app.core.exceptions import IllegalStateError

S = OrderItemStatus

ALLOWED_TRANSITIONS: Dict[OrderItemStatus, FrozenSet[OrderItemStatus]] = {
    S.PENDING_APPROVAL: frozenset({S.APPROVED, S.REJECTED, S.REFUNDED}),
    S.APPROVED: frozenset({S.PROCESSING, S.CANCELLED, S.REFUNDED}),
    S.PROCESSING: frozenset({
        S.SHIPPED, S.IN_TRANSIT, S.OUT_FOR_DELIVERY, S.DELIVERED, S.EXCEPTION, S.APPROVED, S.REFUNDED,
    }),
    S.SHIPPED: frozenset({
        S.IN_TRANSIT, S.OUT_FOR_DELIVERY, S.DELIVERED, S.EXCEPTION, S.APPROVED, S.REFUNDED,
    }),
    S.IN_TRANSIT: frozenset({S.OUT_FOR_DELIVERY, S.DELIVERED, S.EXCEPTION, S.REFUNDED}),
    S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED, S.EXCEPTION, S.REFUNDED}),
    S.EXCEPTION: frozenset({
        S.SHIPPED, S.IN_TRANSIT, S.OUT_FOR_DELIVERY, S.DELIVERED, S.APPROVED, S.REFUNDED,
    }),
    S.DELIVERED: frozenset({S.RETURNED, S.REFUNDED}),
    # Terminal for goods; the money can still be settled
    S.REJECTED: frozenset({S.REFUNDED}),
    S.CANCELLED: frozenset({S.REFUNDED}),
    S.RETURNED: frozenset({S.REFUNDED}),
    S.REFUNDED: frozenset(),
}

TERMINAL_STATES = frozenset({S.REJECTED, S.CANCELLED, S.REFUNDED, S.RETURNED})

# Forward order of the carrier-driven track. Exception sits outside it.
PROGRESSION_RANK: Dict[OrderItemStatus, int] = {
    S.APPROVED: 0,
    S.PROCESSING: 1,
    S.SHIPPED: 2,
    S.IN_TRANSIT: 3,
    S.OUT_FOR_DELIVERY: 4,
    S.DELIVERED: 5,
}

# Item states a seller can be paid out for
PAYABLE_STATES = frozenset({
    S.APPROVED, S.PROCESSING, S.SHIPPED, S.IN_TRANSIT, S.OUT_FOR_DELIVERY, S.DELIVERED, S.EXCEPTION,
})

SHIPMENT_RANK: Dict[ShipmentStatus, int] = {
    ShipmentStatus.PENDING: 0,
    ShipmentStatus.CREATED: 1,
    ShipmentStatus.PICKUP_SCHEDULED: 2,
    ShipmentStatus.SHIPPED: 3,
    ShipmentStatus.IN_TRANSIT: 4,
    ShipmentStatus.OUT_FOR_DELIVERY: 5,
    ShipmentStatus.DELIVERED: 6,
}

# Shipment statuses a carrier poll may still move
SHIPMENT_IN_FLIGHT = frozenset({
    ShipmentStatus.CREATED,
    ShipmentStatus.PICKUP_SCHEDULED,
    ShipmentStatus.SHIPPED,
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY,
    ShipmentStatus.EXCEPTION,
})


def coerce_status(value) -> OrderItemStatus:
    if isinstance(value, OrderItemStatus):
        return value
    return OrderItemStatus(value)


def can_transition(current, target) -> bool:
    return coerce_status(target) in ALLOWED_TRANSITIONS[coerce_status(current)]


def validate_transition(current, target, item_id: Optional[str] = None) -> None:
    """
    Raise IllegalStateError unless current -> target is a legal move.
    """
    current = coerce_status(current)
    target = coerce_status(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        label = f"Order item {item_id}" if item_id else "Order item"
        raise IllegalStateError(
            f"{label} cannot move from '{current.value}' to '{target.value}'"
        )


def is_terminal(status) -> bool:
    return coerce_status(status) in TERMINAL_STATES


def is_forward(current, target, before_exception=None) -> bool:
    """
    Monotonic rule for carrier events.

    True only when target is strictly further along the shipping track than
    current. Exception can be entered from processing..out_for_delivery and
    left for a shipped-track state no earlier than before_exception, the
    status held when the exception arrived. Anything else (duplicates,
    regressions, terminal items) is False and the caller ignores the event.
    """
    current = coerce_status(current)
    target = coerce_status(target)

    if current == target:
        return False
    if target == S.EXCEPTION:
        return current in (S.PROCESSING, S.SHIPPED, S.IN_TRANSIT, S.OUT_FOR_DELIVERY)
    if target not in PROGRESSION_RANK or target == S.APPROVED:
        return False
    if current == S.EXCEPTION:
        floor = PROGRESSION_RANK[S.SHIPPED]
        if before_exception is not None:
            floor = max(floor, PROGRESSION_RANK.get(coerce_status(before_exception), floor))
        return PROGRESSION_RANK[target] >= floor
    if current not in PROGRESSION_RANK:
        return False
    return PROGRESSION_RANK[target] > PROGRESSION_RANK[current]


def is_shipment_forward(
    current: ShipmentStatus,
    target: ShipmentStatus,
    before_exception: Optional[ShipmentStatus] = None,
) -> bool:
    """Same rule as is_forward(), applied to shipment statuses."""
    current = ShipmentStatus(current)
    target = ShipmentStatus(target)

    if current == target:
        return False
    if target == ShipmentStatus.EXCEPTION:
        return current in (
            ShipmentStatus.CREATED,
            ShipmentStatus.PICKUP_SCHEDULED,
            ShipmentStatus.SHIPPED,
            ShipmentStatus.IN_TRANSIT,
            ShipmentStatus.OUT_FOR_DELIVERY,
        )
    if target not in SHIPMENT_RANK:
        return False
    if current == ShipmentStatus.EXCEPTION:
        floor = SHIPMENT_RANK[ShipmentStatus.SHIPPED]
        if before_exception is not None:
            floor = max(floor, SHIPMENT_RANK.get(ShipmentStatus(before_exception), floor))
        return SHIPMENT_RANK[target] >= floor
    if current not in SHIPMENT_RANK:
        return False
    return SHIPMENT_RANK[target] > SHIPMENT_RANK[current]


# Shipment status -> what the contained order items become
SHIPMENT_TO_ITEM_STATUS: Dict[ShipmentStatus, OrderItemStatus] = {
    ShipmentStatus.SHIPPED: S.SHIPPED,
    ShipmentStatus.IN_TRANSIT: S.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY: S.OUT_FOR_DELIVERY,
    ShipmentStatus.DELIVERED: S.DELIVERED,
    ShipmentStatus.EXCEPTION: S.EXCEPTION,
}
