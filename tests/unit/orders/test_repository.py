"""Unit tests for OrderCacheRepository.

Covers:
- Per-owner storage keys and isolation.
- CRUD on the active owner's list.
- Legacy payload normalization, invalid records and unreadable payloads.
- Store failures surface as PersistenceFailure.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from django.core.cache import caches
from redis.exceptions import ConnectionError as RedisConnectionError

from modules.orders.constants import OrderStatus
from modules.orders.dtos import Address, CustomerInfo, Order, PaymentInfo
from modules.orders.exceptions import OrderNotFound, PersistenceFailure
from modules.orders.repositories import OrderCacheRepository
from modules.orders.repositories.cache_repository import storage_key

pytestmark = pytest.mark.unit


@pytest.fixture()
def store():
    return caches["orders"]


@pytest.fixture()
def make_order(make_item):
    def _make(order_id: str, owner_id=None, status=OrderStatus.PENDING) -> Order:
        return Order(
            id=order_id,
            owner_id=owner_id,
            created_at=datetime(2025, 1, 2, 10, 0, tzinfo=timezone.utc),
            items=[make_item("p1", qty=2)],
            subtotal=Decimal("20.00"),
            taxes=Decimal("0.00"),
            shipping=Decimal("0.00"),
            total=Decimal("20.00"),
            status=status,
            customer=CustomerInfo(
                first_name="Grace",
                last_name="Hopper",
                email="grace@example.com",
                address=Address(street="1 Navy Rd", city="Arlington", zip="22201", country="US"),
            ),
            payment=PaymentInfo(method="paypal", brand="paypal"),
        )

    return _make


LEGACY_RECORD = {
    "id": "ORD-LEGACY-1",
    "userId": 3,
    "createdAt": "2024-11-05T08:30:00Z",
    "items": [
        {
            "productId": 12,
            "variantId": None,
            "title": "Harbour print",
            "unitPrice": 45,
            "qty": 1,
            "imageUrl": "/img/12.jpg",
            "variantLabel": "  ",
        }
    ],
    "subtotal": 45,
    "taxes": 0,
    "shipping": 5,
    "total": 50,
    "status": "delivered",
    "customer": {
        "firstName": "Old",
        "lastName": "Timer",
        "email": "old@example.com",
        "address": {"street": "2 Rue", "city": "Paris", "zip": "75001", "country": "FR"},
    },
    "payment": {"method": "card", "last4": "1111", "brand": "visa"},
}


class TestStorageKey:
    def test_guest_key(self):
        assert storage_key(None) == "orders_guest"

    def test_user_key(self):
        assert storage_key("42") == "orders_user_42"


class TestCrud:
    def test_empty_store_lists_nothing(self, repository):
        assert repository.list() == []
        assert repository.get("missing") is None

    def test_create_prepends(self, repository, make_order):
        repository.create(make_order("A"))
        repository.create(make_order("B"))

        assert [o.id for o in repository.list()] == ["B", "A"]

    def test_round_trip_keeps_amounts_and_status(self, repository, make_order):
        repository.create(make_order("A"))

        stored = repository.get("A")

        assert stored.total == Decimal("20.00")
        assert stored.status == OrderStatus.PENDING
        assert stored.items[0].qty == 2

    def test_persists_camel_case_records(self, repository, make_order, store):
        repository.create(make_order("A", owner_id="9"))
        repository.switch_owner("9")
        repository.create(make_order("B", owner_id="9"))

        record = json.loads(store.get("orders_user_9"))[0]
        assert record["ownerId"] == "9"
        assert "unitPrice" in record["items"][0]
        assert "createdAt" in record

    def test_update_status(self, repository, make_order):
        repository.create(make_order("A"))

        updated = repository.update_status("A", OrderStatus.PROCESSING)

        assert updated.status == OrderStatus.PROCESSING
        assert repository.get("A").status == OrderStatus.PROCESSING

    def test_update_notes_leaves_status(self, repository, make_order):
        repository.create(make_order("A", status=OrderStatus.ACCEPTED))

        updated = repository.update_notes("A", "Call before delivery")

        assert updated.notes == "Call before delivery"
        assert repository.get("A").status == OrderStatus.ACCEPTED

    def test_updates_on_unknown_id_raise(self, repository):
        with pytest.raises(OrderNotFound):
            repository.update_status("nope", OrderStatus.PROCESSING)
        with pytest.raises(OrderNotFound):
            repository.update_notes("nope", "x")

    def test_remove(self, repository, make_order):
        repository.create(make_order("A"))
        repository.create(make_order("B"))

        assert repository.remove("A") is True
        assert repository.remove("A") is False
        assert [o.id for o in repository.list()] == ["B"]


class TestOwnerIsolation:
    def test_each_owner_sees_only_its_orders(self, make_order):
        repository = OrderCacheRepository()
        repository.create(make_order("GUEST-1"))
        repository.switch_owner("1")
        repository.create(make_order("USER-1", owner_id="1"))

        assert [o.id for o in repository.list()] == ["USER-1"]
        repository.switch_owner("2")
        assert repository.list() == []
        repository.switch_owner(None)
        assert [o.id for o in repository.list()] == ["GUEST-1"]


class TestLegacyPayloads:
    def test_normalizes_old_records(self, repository, store):
        store.set("orders_guest", json.dumps([LEGACY_RECORD]), timeout=None)

        order = repository.get("ORD-LEGACY-1")

        assert order.owner_id == "3"
        assert order.notes == ""
        assert order.items[0].product_id == "12"
        assert order.items[0].variant_label is None
        assert order.total == Decimal("50")
        assert order.status == OrderStatus.DELIVERED

    def test_accepts_already_decoded_lists(self, repository, store):
        store.set("orders_guest", [LEGACY_RECORD], timeout=None)

        assert [o.id for o in repository.list()] == ["ORD-LEGACY-1"]

    def test_unreadable_payload_reads_as_empty(self, repository, store):
        store.set("orders_guest", "{not json", timeout=None)

        assert repository.list() == []

    def test_invalid_record_is_hidden_but_others_are_listed(
        self, repository, make_order, store
    ):
        repository.create(make_order("A"))
        records = json.loads(store.get("orders_guest"))
        store.set("orders_guest", json.dumps([*records, {"id": "x"}]), timeout=None)

        assert [o.id for o in repository.list()] == ["A"]

    def test_write_after_invalid_record_keeps_every_record(
        self, repository, make_order, store
    ):
        repository.create(make_order("A"))
        records = json.loads(store.get("orders_guest"))
        store.set("orders_guest", json.dumps([*records, {"id": "x"}]), timeout=None)

        repository.create(make_order("B"))
        repository.update_notes("A", "Gift wrap")

        stored = json.loads(store.get("orders_guest"))
        assert [r["id"] for r in stored] == ["B", "A", "x"]
        assert stored[2] == {"id": "x"}
        assert [o.id for o in repository.list()] == ["B", "A"]

    def test_remove_keeps_invalid_records(self, repository, make_order, store):
        repository.create(make_order("A"))
        records = json.loads(store.get("orders_guest"))
        store.set("orders_guest", json.dumps([*records, "garbage"]), timeout=None)

        assert repository.remove("A") is True

        assert json.loads(store.get("orders_guest")) == ["garbage"]

    def test_writes_refused_over_unreadable_payload(self, repository, make_order, store):
        store.set("orders_guest", "{not json", timeout=None)

        with pytest.raises(PersistenceFailure):
            repository.create(make_order("A"))
        with pytest.raises(PersistenceFailure):
            repository.remove("A")

        assert store.get("orders_guest") == "{not json"

    def test_non_list_payload_is_unreadable(self, repository, make_order, store):
        store.set("orders_guest", json.dumps({"id": "A"}), timeout=None)

        assert repository.list() == []
        with pytest.raises(PersistenceFailure):
            repository.create(make_order("A"))


class TestStoreFailures:
    def test_read_failure(self, repository, monkeypatch):
        def broken(*args, **kwargs):
            raise RedisConnectionError("connection refused")

        monkeypatch.setattr(repository._cache, "get", broken)

        with pytest.raises(PersistenceFailure):
            repository.list()

    def test_write_failure(self, repository, make_order, monkeypatch):
        def broken(*args, **kwargs):
            raise RedisConnectionError("connection refused")

        monkeypatch.setattr(repository._cache, "set", broken)

        with pytest.raises(PersistenceFailure):
            repository.create(make_order("A"))
