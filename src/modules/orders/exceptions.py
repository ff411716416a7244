"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from modules.orders.dtos import Shortfall


class OrderNotFound(Exception):
    """The requested order does not exist in the active owner's store."""


class EmptyCart(Exception):
    """An order was requested for a cart with no items."""


class InvalidOrderStatus(Exception):
    """The requested status is unknown or not reachable from the current one."""


class InsufficientStock(Exception):
    """One or more items cannot be satisfied by the current stock.

    Carries every shortfall found, not just the first one.
    """

    def __init__(self, shortfalls: Iterable[Shortfall]) -> None:
        self.shortfalls = list(shortfalls)
        super().__init__(
            "Insufficient stock: "
            + "; ".join(s.describe() for s in self.shortfalls)
            + "."
        )


class PersistenceFailure(Exception):
    """A write to the inventory or the order store failed."""
