"""Order service layer (Use Cases).

Orchestrates order placement, status transitions and the stock side
effects that go with them.

Business rules enforced:
- An order is only placed when every cart line is covered by stock
  (read-only check; nothing is debited at placement).
- ``pending -> processing`` debits stock all-or-nothing.
- ``processing|accepted -> refused`` gives the stock back, best-effort.
- Transitions outside ``VALID_TRANSITIONS`` are rejected; asking for the
  current status is a no-op.
- Loyalty points are accrued after a debit and never abort it.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

import structlog

from modules.orders.constants import (
    DEBIT_TRANSITIONS,
    ORDER_ID_MAX_RETRIES,
    RESTORE_TRANSITIONS,
    VALID_TRANSITIONS,
    OrderStatus,
)
from modules.orders.dtos import CENT, LoyaltyAccrual, Order
from modules.orders.events import OrderPlaced, OrderStatusChanged
from modules.orders.exceptions import (
    EmptyCart,
    InsufficientStock,
    InvalidOrderStatus,
    OrderNotFound,
    PersistenceFailure,
)
from modules.orders.integrations.loyalty import DisabledLoyaltyProgram, LoyaltyError

if TYPE_CHECKING:
    from modules.core.notifications import INotifier
    from modules.orders.dtos import OrderItem, PlaceOrderDTO
    from modules.orders.integrations.cart import ICart
    from modules.orders.integrations.loyalty import ILoyaltyProgram
    from modules.orders.reconciler import StockReconciler
    from modules.orders.repositories.interfaces import IOrderRepository
    from shared.infrastructure.bus import InMemoryEventBus

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderService:
    """Application service for Order use-cases.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        reconciler: StockReconciler,
        notifier: INotifier,
        event_bus: InMemoryEventBus,
        loyalty: Optional[ILoyaltyProgram] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._order_repo = order_repository
        self._reconciler = reconciler
        self._notifier = notifier
        self._bus = event_bus
        self._loyalty = loyalty or DisabledLoyaltyProgram()
        self._clock = clock

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def place_order(self, dto: PlaceOrderDTO, cart: ICart) -> Order:
        """Create a ``pending`` order from the cart contents.

        Stock is only checked here; the debit happens when the order moves
        to ``processing``.

        Raises:
            EmptyCart: the cart has no lines.
            InsufficientStock: one or more lines exceed the current stock.
            PersistenceFailure: the inventory or the order store failed.
        """
        items = cart.items()
        owner_id = self._order_repo.owner_id
        log = logger.bind(owner_id=owner_id, item_count=len(items))

        if not items:
            log.info("order.placement_rejected", reason="empty_cart")
            raise EmptyCart("Cannot place an order for an empty cart.")

        log.info("order.placement_started")
        check = self._reconciler.check(items)
        if not check.ok:
            log.info("order.placement_rejected", reason="insufficient_stock")
            raise InsufficientStock(check.shortfalls)

        subtotal = sum((item.line_total for item in items), Decimal("0")).quantize(CENT)
        taxes = Decimal(cart.taxes()).quantize(CENT)
        shipping = dto.shipping.quantize(CENT)

        order = Order(
            id=self._generate_order_id(),
            owner_id=owner_id,
            created_at=self._clock(),
            items=items,
            subtotal=subtotal,
            taxes=taxes,
            shipping=shipping,
            total=subtotal + taxes + shipping,
            status=OrderStatus.PENDING,
            customer=dto.customer,
            payment=dto.payment,
        )
        self._order_repo.create(order)
        log.info("order.placed", order_id=order.id, total=str(order.total))

        cart.decrease_stock_ceilings(items)
        cart.clear()

        self._bus.publish(
            OrderPlaced(
                aggregate_id=order.id,
                owner_id=owner_id,
                total=order.total,
                item_count=len(items),
            )
        )
        self._notifier.success(f"Order {order.id} placed.", order_id=order.id)
        return order

    def transition(self, order_id: str, desired_status: str) -> Order:
        """Move an order to ``desired_status`` with its stock side effects.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: unknown status or transition not allowed.
            InsufficientStock: the debit did not pass validation.
            PersistenceFailure: stock or status could not be written.
        """
        order = self.get_order(order_id)

        try:
            desired = OrderStatus(desired_status)
        except ValueError as exc:
            raise InvalidOrderStatus(f"Unknown order status '{desired_status}'.") from exc

        current = OrderStatus(order.status)
        log = logger.bind(order_id=order_id, current_status=current, new_status=desired)

        if desired == current:
            log.debug("order.transition_noop")
            return order

        if order.is_terminal:
            log.warning("order.invalid_transition", reason="terminal")
            raise InvalidOrderStatus(f"Order {order.id} is {current} and can no longer change.")

        if desired not in VALID_TRANSITIONS[current]:
            log.warning("order.invalid_transition")
            raise InvalidOrderStatus(f"Cannot transition from {current} to {desired}.")

        if (current, desired) in DEBIT_TRANSITIONS:
            updated = self._debit_and_persist(order, desired)
        elif (current, desired) in RESTORE_TRANSITIONS:
            updated = self._restore_and_persist(order, desired)
        else:
            updated = self._order_repo.update_status(order.id, desired)

        log.info("order.status_updated")
        self._bus.publish(
            OrderStatusChanged(
                aggregate_id=order.id,
                owner_id=order.owner_id,
                old_status=current.value,
                new_status=desired.value,
            )
        )
        return updated

    def update_notes(self, order_id: str, notes: str) -> Order:
        """Replace the order's internal notes; status is left alone.

        Raises:
            OrderNotFound: order does not exist.
        """
        order = self._order_repo.update_notes(order_id, notes)
        logger.info("order.notes_updated", order_id=order_id)
        return order

    def delete_order(self, order_id: str) -> None:
        """Remove an order from the active store.  Stock is not touched.

        Raises:
            OrderNotFound: order does not exist.
        """
        if not self._order_repo.remove(order_id):
            raise OrderNotFound(f"Order {order_id} not found.")
        logger.info("order.deleted", order_id=order_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, status: Optional[str] = None) -> List[Order]:
        """Return the active owner's orders, newest first, optionally by status."""
        orders = self._order_repo.list()
        if status:
            orders = [order for order in orders if order.status == status]
        return orders

    # ------------------------------------------------------------------
    # Stock side effects
    # ------------------------------------------------------------------

    def _debit_and_persist(self, order: Order, desired: OrderStatus) -> Order:
        result = self._reconciler.validate_and_commit(order.items)
        if not result.ok:
            raise InsufficientStock(result.shortfalls)

        self._award_loyalty_points(order)

        try:
            return self._order_repo.update_status(order.id, desired)
        except PersistenceFailure:
            logger.error("order.status_write_failed_after_debit", order_id=order.id)
            self._restore_stock(order)
            raise

    def _restore_and_persist(self, order: Order, desired: OrderStatus) -> Order:
        failed = self._restore_stock(order)

        try:
            return self._order_repo.update_status(order.id, desired)
        except PersistenceFailure:
            logger.error("order.status_write_failed_after_restore", order_id=order.id)
            skipped = {id(item) for item in failed}
            self._redebit(order, [item for item in order.items if id(item) not in skipped])
            raise

    def _restore_stock(self, order: Order) -> List[OrderItem]:
        failed = self._reconciler.restore(order.items)
        if failed:
            self._notifier.warning(
                f"Stock of order {order.id} could not be fully restored.",
                order_id=order.id,
                items=_describe(failed),
            )
        return failed

    def _redebit(self, order: Order, items: Sequence[OrderItem]) -> None:
        """Take back stock restored for an order whose status did not change."""
        if not items:
            return
        try:
            result = self._reconciler.validate_and_commit(items)
        except PersistenceFailure:
            result = None
        if result is not None and result.ok:
            logger.warning("order.restore_reverted", order_id=order.id)
            return

        logger.critical("order.restore_revert_failed", order_id=order.id)
        self._notifier.error(
            f"Stock of order {order.id} was restored but the order is still "
            f"{order.status}; adjust the inventory manually.",
            order_id=order.id,
            items=_describe(items),
        )

    def _award_loyalty_points(self, order: Order) -> None:
        if order.owner_id is None:
            return

        accrual = LoyaltyAccrual(
            order_id=order.id,
            amount_after_discounts=order.subtotal + order.taxes,
            items=order.items,
        )
        # Runs after the debit: nothing raised here may escape.
        try:
            points = int(self._loyalty.earn_points(order.owner_id, accrual))
        except LoyaltyError as exc:
            logger.warning("order.loyalty_failed", order_id=order.id, error=str(exc))
            self._notify_loyalty_failure(order)
            return
        except Exception:
            logger.exception("order.loyalty_crashed", order_id=order.id)
            self._notify_loyalty_failure(order)
            return

        if points > 0:
            self._notifier.info(
                f"{points} loyalty points credited for order {order.id}.",
                order_id=order.id,
                points=points,
            )

    def _notify_loyalty_failure(self, order: Order) -> None:
        self._notifier.error(
            f"Loyalty points for order {order.id} could not be credited.",
            order_id=order.id,
        )

    def _generate_order_id(self) -> str:
        taken = {order.id for order in self._order_repo.list()}
        prefix = self._clock().strftime("ORD-%Y%m%d-")
        for _ in range(ORDER_ID_MAX_RETRIES):
            candidate = prefix + secrets.token_hex(3).upper()
            if candidate not in taken:
                return candidate
        raise PersistenceFailure("Could not allocate a unique order id.")


def _describe(items: Sequence[OrderItem]) -> List[str]:
    return [
        f"{item.title} x{item.qty}" + (f" ({item.variant_label})" if item.variant_label else "")
        for item in items
    ]
