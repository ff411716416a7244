"""Stock reconciliation against the Inventory Gateway.

The gateway offers no transaction, so all-or-nothing stock mutation is
obtained with two explicit phases:

1. *Validate*: read every line's current stock and plan its new value.
   Missing products/variants, lines without a variant on a product that
   has variants, and negative plans are collected as shortfalls; if there
   is at least one, nothing is written.
2. *Commit*: apply the planned values sequentially.  If the gateway fails
   part-way, the writes already applied are reverted to their pre-commit
   values (compensation) and ``PersistenceFailure`` is raised.

Restoring stock (refusal of a debited order) is best-effort per line: a
failing line is logged and reported back, the remaining lines are still
restored.

This module assumes a single logical writer per stock counter; it gives no
isolation against concurrent reconciliations of the same SKU.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import structlog

from modules.inventory.exceptions import (
    InvalidStock,
    InventoryError,
    ProductNotFound,
    VariantNotFound,
)
from modules.orders.dtos import OrderItem, Shortfall
from modules.orders.exceptions import PersistenceFailure

if TYPE_CHECKING:
    from modules.inventory.dtos import ProductSnapshot
    from modules.inventory.gateways.interfaces import IInventoryGateway

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockAdjustment:
    """One planned write: ``current_stock`` is what validation read."""

    item: OrderItem
    current_stock: int
    new_stock: int


@dataclass(frozen=True)
class StockCheck:
    """Outcome of the validation phase (the adjustment plan + shortfalls)."""

    adjustments: Tuple[StockAdjustment, ...] = ()
    shortfalls: Tuple[Shortfall, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.shortfalls


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of ``validate_and_commit``: either applied, or the shortfalls."""

    applied: Tuple[StockAdjustment, ...] = ()
    shortfalls: Tuple[Shortfall, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.shortfalls


class StockReconciler:
    """Sole writer path to the stock counters."""

    def __init__(self, gateway: IInventoryGateway) -> None:
        self._gateway = gateway

    # ------------------------------------------------------------------
    # Validation (read-only)
    # ------------------------------------------------------------------

    def check(self, items: Sequence[OrderItem]) -> StockCheck:
        """Plan the debit of *items* without writing anything.

        Lines drawing from the same counter are planned cumulatively, so
        two lines of the same SKU cannot both pass against a stock that
        only covers one of them.

        Raises:
            PersistenceFailure: the gateway could not be read.
        """
        adjustments: List[StockAdjustment] = []
        shortfalls: List[Shortfall] = []
        running: Dict[Tuple[str, Optional[str]], int] = {}

        for item in items:
            if item.stock_key in running:
                current: Optional[int] = running[item.stock_key]
            else:
                current = self._read_stock(item)

            if current is None or current - item.qty < 0:
                shortfalls.append(
                    Shortfall(
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        title=item.title,
                        requested=item.qty,
                        available=current or 0,
                    )
                )
                continue

            planned = current - item.qty
            running[item.stock_key] = planned
            adjustments.append(
                StockAdjustment(item=item, current_stock=current, new_stock=planned)
            )

        if shortfalls:
            logger.info(
                "stock.validation_failed",
                shortfalls=[s.describe() for s in shortfalls],
            )
        return StockCheck(adjustments=tuple(adjustments), shortfalls=tuple(shortfalls))

    # ------------------------------------------------------------------
    # Debit
    # ------------------------------------------------------------------

    def validate_and_commit(self, items: Sequence[OrderItem]) -> ReconciliationResult:
        """Debit every line's ``qty``, or nothing at all.

        Returns a failed result carrying *all* shortfalls when validation
        does not pass; in that case no write has been issued.

        Raises:
            PersistenceFailure: a write failed during the commit phase.  The
                writes applied before it have been compensated.
        """
        plan = self.check(items)
        if not plan.ok:
            return ReconciliationResult(shortfalls=plan.shortfalls)

        applied: List[StockAdjustment] = []
        for adjustment in plan.adjustments:
            try:
                self._write(adjustment.item, adjustment.new_stock)
            except InventoryError as exc:
                logger.error(
                    "stock.commit_failed",
                    product_id=adjustment.item.product_id,
                    variant_id=adjustment.item.variant_id,
                    applied=len(applied),
                    error=str(exc),
                )
                self._compensate(applied)
                raise PersistenceFailure("Stock could not be updated.") from exc
            applied.append(adjustment)
            logger.info(
                "stock.debited",
                product_id=adjustment.item.product_id,
                variant_id=adjustment.item.variant_id,
                quantity=adjustment.item.qty,
                remaining=adjustment.new_stock,
            )

        return ReconciliationResult(applied=tuple(applied))

    def _compensate(self, applied: Sequence[StockAdjustment]) -> None:
        """Revert applied writes, newest first, to their pre-commit values."""
        for adjustment in reversed(applied):
            try:
                self._write(adjustment.item, adjustment.current_stock)
            except InventoryError as exc:
                logger.critical(
                    "stock.compensation_failed",
                    product_id=adjustment.item.product_id,
                    variant_id=adjustment.item.variant_id,
                    expected_stock=adjustment.current_stock,
                    error=str(exc),
                )
                continue
            logger.warning(
                "stock.compensated",
                product_id=adjustment.item.product_id,
                variant_id=adjustment.item.variant_id,
                restored_stock=adjustment.current_stock,
            )

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore(self, items: Sequence[OrderItem]) -> List[OrderItem]:
        """Give each line's ``qty`` back to its counter.

        Returns the lines that could not be restored (empty on full success).
        """
        failed: List[OrderItem] = []
        for item in items:
            log = logger.bind(
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.qty,
            )
            try:
                current = self._read_stock(item, strict=True)
                self._write(item, current + item.qty)
            except (InventoryError, PersistenceFailure) as exc:
                log.error("stock.restore_failed", error=str(exc))
                failed.append(item)
                continue
            log.info("stock.restored", restored_stock=current + item.qty)
        return failed

    # ------------------------------------------------------------------
    # Gateway access
    # ------------------------------------------------------------------

    def _read_stock(self, item: OrderItem, strict: bool = False) -> Optional[int]:
        """Current stock of the line's counter; ``None`` when it does not exist.

        With ``strict`` a missing product/variant raises instead.
        """
        try:
            product = self._gateway.get_product(item.product_id)
        except InventoryError as exc:
            raise PersistenceFailure(
                f"Stock for product {item.product_id} could not be read."
            ) from exc

        if product is None:
            if strict:
                raise ProductNotFound(f"Product {item.product_id} not found.")
            return None
        return _stock_of(product, item, strict)

    def _write(self, item: OrderItem, new_stock: int) -> None:
        if item.variant_id:
            self._gateway.set_variant_stock(item.product_id, item.variant_id, new_stock)
        else:
            self._gateway.set_product_stock(item.product_id, new_stock)


def _stock_of(product: ProductSnapshot, item: OrderItem, strict: bool) -> Optional[int]:
    if not item.variant_id:
        if not product.variants:
            return product.stock
        # Product-level stock of a variant product is derived and not writable.
        if strict:
            raise InvalidStock(
                f"Product {item.product_id} has variants; the line names none."
            )
        return None
    variant = product.variant(item.variant_id)
    if variant is None:
        if strict:
            raise VariantNotFound(
                f"Variant {item.variant_id} not found for product {item.product_id}."
            )
        return None
    return variant.stock
