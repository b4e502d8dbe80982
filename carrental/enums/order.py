from enum import Enum


class OrderStatus(Enum):
    PENDING = "PENDING"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    TAKEN = "TAKEN"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"


# Happy path is PENDING -> PAYMENT_COMPLETED -> TAKEN -> RETURNED.
# RETURNED and CANCELLED are terminal.
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAYMENT_COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_COMPLETED: {OrderStatus.TAKEN, OrderStatus.CANCELLED},
    OrderStatus.TAKEN: {OrderStatus.RETURNED},
    OrderStatus.RETURNED: set(),
    OrderStatus.CANCELLED: set(),
}

# Vehicle availability follows the order: picked up -> busy, back or cancelled -> free
RELEASES_VEHICLE = {OrderStatus.RETURNED, OrderStatus.CANCELLED}
HOLDS_VEHICLE = {OrderStatus.TAKEN}

# Support staff may move an order along by hand; PAYMENT_COMPLETED only comes
# from a verified gateway callback
MANUAL_STATUSES = [OrderStatus.TAKEN, OrderStatus.RETURNED, OrderStatus.CANCELLED]


def can_transition(current, new):
    return new in ALLOWED_TRANSITIONS.get(current, set())
