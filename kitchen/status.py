"""
Order status state machine.

Orders move strictly forward: placed -> cooking -> dispatched -> delivered.
Every status write goes through ``check_transition``.
"""
from enum import Enum

from .exceptions import InvalidTransition


class OrderStatus(str, Enum):
    PLACED = "placed"
    COOKING = "cooking"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidTransition(f"Unknown order status: {value!r}")

    @property
    def label(self):
        return self.value.capitalize()


ALLOWED_TRANSITIONS = {
    OrderStatus.PLACED: OrderStatus.COOKING,
    OrderStatus.COOKING: OrderStatus.DISPATCHED,
    OrderStatus.DISPATCHED: OrderStatus.DELIVERED,
}

# Button text on the order board for the advance action
ADVANCE_LABELS = {
    OrderStatus.PLACED: "Start Cooking",
    OrderStatus.COOKING: "Mark Dispatched",
    OrderStatus.DISPATCHED: "Mark Delivered",
}


def next_status(status):
    """The status an order advances to, or None once delivered."""
    return ALLOWED_TRANSITIONS.get(OrderStatus.parse(status))


def can_advance(status):
    return next_status(status) is not None


def check_transition(current, new):
    current, new = OrderStatus.parse(current), OrderStatus.parse(new)
    allowed = ALLOWED_TRANSITIONS.get(current)
    if allowed is None:
        raise InvalidTransition(f"Order is already {current.value}")
    if new is not allowed:
        raise InvalidTransition(
            f"Cannot move order from {current.value} to {new.value}; next status is {allowed.value}"
        )
    return new
