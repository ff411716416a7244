"""Order domain constants.

Defines the status choices and the transitions the lifecycle accepts,
plus the two transition families that carry stock side effects.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    ACCEPTED = "accepted", "Accepted"
    REFUSED = "refused", "Refused"
    DELIVERED = "delivered", "Delivered"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.REFUSED},
    OrderStatus.PROCESSING: {
        OrderStatus.ACCEPTED,
        OrderStatus.REFUSED,
        OrderStatus.DELIVERED,
    },
    OrderStatus.ACCEPTED: {OrderStatus.DELIVERED, OrderStatus.REFUSED},
    OrderStatus.REFUSED: set(),
    OrderStatus.DELIVERED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.REFUSED, OrderStatus.DELIVERED}

# Transitions that debit stock (commit path) or give it back (restore path).
DEBIT_TRANSITIONS: set[tuple[str, str]] = {
    (OrderStatus.PENDING, OrderStatus.PROCESSING),
}
RESTORE_TRANSITIONS: set[tuple[str, str]] = {
    (OrderStatus.PROCESSING, OrderStatus.REFUSED),
    (OrderStatus.ACCEPTED, OrderStatus.REFUSED),
}

ORDER_ID_MAX_RETRIES = 5

GUEST_STORAGE_KEY = "orders_guest"
USER_STORAGE_KEY_TEMPLATE = "orders_user_{owner_id}"
