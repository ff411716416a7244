"""Cart collaborator.

The order engine never owns cart contents: it reads the lines and totals,
then tells the cart to lower its cached stock ceilings and to clear itself
once the order exists.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import structlog

from modules.orders.dtos import OrderItem

logger = structlog.get_logger(__name__)


class ICart(Protocol):
    def items(self) -> List[OrderItem]: ...

    def taxes(self) -> Decimal: ...

    def decrease_stock_ceilings(self, items: Sequence[OrderItem]) -> None: ...

    def clear(self) -> None: ...


class SubmittedCart:
    """Cart snapshot posted by the storefront together with the checkout form.

    Stock ceilings are the per-line maximum quantities the front end lets a
    shopper pick.  After placement they are lowered by the ordered quantities
    and echoed back so the storefront can refresh its quantity pickers.
    """

    def __init__(
        self,
        items: Iterable[OrderItem],
        taxes: Decimal = Decimal("0.00"),
        stock_ceilings: Optional[Dict[Tuple[str, Optional[str]], int]] = None,
    ):
        self._items = list(items)
        self._taxes = taxes
        self.stock_ceilings = dict(stock_ceilings or {})

    def items(self) -> List[OrderItem]:
        return list(self._items)

    def taxes(self) -> Decimal:
        return self._taxes

    def decrease_stock_ceilings(self, items: Sequence[OrderItem]) -> None:
        for item in items:
            ceiling = self.stock_ceilings.get(item.stock_key)
            if ceiling is not None:
                self.stock_ceilings[item.stock_key] = max(0, ceiling - item.qty)
        logger.info("cart.stock_ceilings_decreased", lines=len(items))

    def clear(self) -> None:
        self._items = []
        self._taxes = Decimal("0.00")
        logger.info("cart.cleared")
