"""Django cache implementation of the Order repository.

Each owner's orders live under a single cache key as a JSON array of
camelCase records (``orders_user_<id>`` or ``orders_guest``).  Entries
never expire.  In production the alias points at Redis (django-redis);
tests use the local-memory backend.

Payloads written by older storefront releases are normalized on load:

- ``userId`` is renamed ``ownerId``;
- a missing ``notes`` becomes ``""``;
- a blank ``variantLabel`` is dropped.

Records are validated one by one.  A record that does not validate is
logged, hidden from reads and written back untouched (after the valid
orders) on the next save.  A payload that cannot be decoded at all reads as
an empty list, and every write to that key is refused until it is repaired.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

import structlog
from django.conf import settings
from django.core.cache import caches
from django_redis.exceptions import ConnectionInterrupted
from pydantic import TypeAdapter
from redis.exceptions import RedisError

from modules.orders.constants import (
    GUEST_STORAGE_KEY,
    USER_STORAGE_KEY_TEMPLATE,
    OrderStatus,
)
from modules.orders.dtos import Order
from modules.orders.exceptions import OrderNotFound, PersistenceFailure
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_order_list = TypeAdapter(List[Order])

STORE_ERRORS = (ConnectionInterrupted, RedisError, OSError)


def storage_key(owner_id: Optional[str]) -> str:
    if owner_id is None:
        return GUEST_STORAGE_KEY
    return USER_STORAGE_KEY_TEMPLATE.format(owner_id=owner_id)


class OrderCacheRepository(IOrderRepository):
    """Concrete Order repository backed by the Django cache framework."""

    def __init__(
        self,
        owner_id: Optional[str] = None,
        cache_alias: Optional[str] = None,
    ) -> None:
        self._cache = caches[cache_alias or settings.ORDER_STORE_CACHE_ALIAS]
        self._owner_id = owner_id

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def key(self) -> str:
        return storage_key(self._owner_id)

    def switch_owner(self, owner_id: Optional[str]) -> None:
        if owner_id != self._owner_id:
            logger.info(
                "order_store.owner_switched",
                previous=self.key,
                current=storage_key(owner_id),
            )
        self._owner_id = owner_id

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list(self) -> List[Order]:
        return self._load()

    def get(self, id: str) -> Optional[Order]:
        for order in self._load():
            if order.id == id:
                return order
        return None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create(self, order: Order) -> Order:
        orders, rejected = self._read(for_write=True)
        self._save([order, *orders], rejected)
        logger.info("order_store.created", order_id=order.id, key=self.key)
        return order

    def update_status(self, id: str, status: OrderStatus) -> Order:
        return self._replace(id, status=OrderStatus(status))

    def update_notes(self, id: str, notes: str) -> Order:
        return self._replace(id, notes=notes)

    def remove(self, id: str) -> bool:
        orders, rejected = self._read(for_write=True)
        remaining = [order for order in orders if order.id != id]
        if len(remaining) == len(orders):
            return False
        self._save(remaining, rejected)
        logger.info("order_store.removed", order_id=id, key=self.key)
        return True

    def _replace(self, id: str, **changes: Any) -> Order:
        orders, rejected = self._read(for_write=True)
        for index, order in enumerate(orders):
            if order.id == id:
                updated = order.model_copy(update=changes)
                orders[index] = updated
                self._save(orders, rejected)
                logger.info(
                    "order_store.updated",
                    order_id=id,
                    fields=sorted(changes),
                )
                return updated
        raise OrderNotFound(f"Order {id} not found.")

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _load(self) -> List[Order]:
        orders, _ = self._read()
        return orders

    def _read(self, for_write: bool = False) -> Tuple[List[Order], List[Any]]:
        """Valid orders plus the raw records that failed validation.

        Raises:
            PersistenceFailure: the store is unreachable, or ``for_write`` is
                set and the payload cannot be decoded.
        """
        try:
            raw = self._cache.get(self.key)
        except STORE_ERRORS as exc:
            logger.error("order_store.read_failed", key=self.key, error=str(exc))
            raise PersistenceFailure("Order store unavailable.") from exc

        if raw is None:
            return [], []
        try:
            records = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        except ValueError as exc:
            records, error = None, str(exc)
        else:
            error = "payload is not a list"
        if not isinstance(records, list):
            logger.warning("order_store.unreadable_payload", key=self.key, error=error)
            if for_write:
                raise PersistenceFailure("Order store holds an unreadable payload.")
            return [], []

        orders: List[Order] = []
        rejected: List[Any] = []
        for record in records:
            try:
                orders.append(Order.model_validate(_normalize_legacy(record)))
            except (ValueError, TypeError, AttributeError) as exc:
                logger.warning(
                    "order_store.invalid_record",
                    key=self.key,
                    order_id=record.get("id") if isinstance(record, dict) else None,
                    error=str(exc),
                )
                rejected.append(record)
        return orders, rejected

    def _save(self, orders: List[Order], rejected: List[Any]) -> None:
        records = _order_list.dump_python(orders, mode="json", by_alias=True)
        payload = json.dumps([*records, *rejected])
        try:
            self._cache.set(self.key, payload, timeout=None)
        except STORE_ERRORS as exc:
            logger.error("order_store.write_failed", key=self.key, error=str(exc))
            raise PersistenceFailure("Order store unavailable.") from exc


def _normalize_legacy(record: Dict[str, Any]) -> Dict[str, Any]:
    record = dict(record)
    if "ownerId" not in record and "userId" in record:
        user_id = record.pop("userId")
        record["ownerId"] = None if user_id is None else str(user_id)
    record.setdefault("notes", "")
    record["items"] = [_normalize_legacy_item(item) for item in record.get("items", [])]
    return record


def _normalize_legacy_item(item: Dict[str, Any]) -> Dict[str, Any]:
    item = dict(item)
    label = item.get("variantLabel")
    if label is not None and not str(label).strip():
        del item["variantLabel"]
    return item
