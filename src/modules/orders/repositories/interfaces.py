"""Order repository interface.

Orders are stored as one list per owner (the authenticated user, or the
guest store when nobody is signed in), newest first.  The Service Layer
depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from modules.orders.constants import OrderStatus
    from modules.orders.dtos import Order


class IOrderRepository(ABC):
    """Repository contract for the active owner's order list.

    Store failures surface as ``PersistenceFailure``.
    """

    @property
    @abstractmethod
    def owner_id(self) -> Optional[str]:
        """Owner whose list is active; ``None`` for the guest store."""

    @abstractmethod
    def switch_owner(self, owner_id: Optional[str]) -> None:
        """Point the repository at another owner's list."""

    @abstractmethod
    def list(self) -> List[Order]:
        """All orders of the active owner, newest first."""

    @abstractmethod
    def get(self, id: str) -> Optional[Order]:
        """Retrieve an order, or ``None`` if the active owner has no such id."""

    @abstractmethod
    def create(self, order: Order) -> Order:
        """Prepend ``order`` to the active owner's list."""

    @abstractmethod
    def update_status(self, id: str, status: OrderStatus) -> Order:
        """Replace the order's status.

        Raises:
            OrderNotFound: no order with this id.
        """

    @abstractmethod
    def update_notes(self, id: str, notes: str) -> Order:
        """Replace the order's internal notes.

        Raises:
            OrderNotFound: no order with this id.
        """

    @abstractmethod
    def remove(self, id: str) -> bool:
        """Delete an order.  Returns ``False`` if it did not exist."""
