"""Fixtures for the order unit tests.

``FakeInventoryGateway`` keeps stock in memory, counts every call and can
be told to fail specific reads or writes.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple
from unittest.mock import MagicMock

import pytest

from modules.inventory.dtos import ProductSnapshot, VariantSnapshot
from modules.inventory.exceptions import InventoryError, ProductNotFound, VariantNotFound
from modules.inventory.gateways.interfaces import IInventoryGateway
from modules.orders.dtos import (
    Address,
    CustomerInfo,
    OrderItem,
    PaymentInfo,
    PlaceOrderDTO,
)
from modules.orders.integrations.cart import SubmittedCart
from modules.orders.reconciler import StockReconciler
from modules.orders.repositories import OrderCacheRepository
from modules.orders.services import OrderService
from shared.infrastructure.bus import InMemoryEventBus

StockKey = Tuple[str, Optional[str]]


class FakeInventoryGateway(IInventoryGateway):
    def __init__(self) -> None:
        self.products: Dict[str, Dict] = {}
        self.reads: List[str] = []
        self.writes: List[Tuple[str, Optional[str], int]] = []
        self.fail_reads: Set[str] = set()
        self.fail_writes: Set[StockKey] = set()

    def add_product(self, product_id: str, stock: int = 0, variants=None) -> None:
        self.products[product_id] = {"stock": stock, "variants": dict(variants or {})}
        if variants:
            self._sync(product_id)

    def stock(self, product_id: str, variant_id: Optional[str] = None) -> int:
        product = self.products[product_id]
        if variant_id:
            return product["variants"][variant_id]
        return product["stock"]

    @property
    def calls(self) -> int:
        return len(self.reads) + len(self.writes)

    def get_product(self, product_id: str) -> Optional[ProductSnapshot]:
        self.reads.append(product_id)
        if product_id in self.fail_reads:
            raise InventoryError(f"read of {product_id} failed")
        product = self.products.get(product_id)
        if product is None:
            return None
        return self._snapshot(product_id)

    def set_product_stock(self, product_id: str, new_stock: int) -> ProductSnapshot:
        self._record_write(product_id, None, new_stock)
        self.products[product_id]["stock"] = new_stock
        return self._snapshot(product_id)

    def set_variant_stock(
        self, product_id: str, variant_id: str, new_stock: int
    ) -> ProductSnapshot:
        self._record_write(product_id, variant_id, new_stock)
        if variant_id not in self.products[product_id]["variants"]:
            raise VariantNotFound(variant_id)
        self.products[product_id]["variants"][variant_id] = new_stock
        self._sync(product_id)
        return self._snapshot(product_id)

    def _record_write(
        self, product_id: str, variant_id: Optional[str], new_stock: int
    ) -> None:
        self.writes.append((product_id, variant_id, new_stock))
        if (product_id, variant_id) in self.fail_writes:
            raise InventoryError(f"write of {product_id}/{variant_id} failed")
        if product_id not in self.products:
            raise ProductNotFound(product_id)

    def _sync(self, product_id: str) -> None:
        product = self.products[product_id]
        product["stock"] = sum(max(0, s) for s in product["variants"].values())

    def _snapshot(self, product_id: str) -> ProductSnapshot:
        product = self.products[product_id]
        return ProductSnapshot(
            id=product_id,
            name=product_id,
            stock=product["stock"],
            is_available=product["stock"] > 0,
            variants=[
                VariantSnapshot(id=vid, label=vid, stock=s, is_available=s > 0)
                for vid, s in product["variants"].items()
            ],
        )


def build_item(
    product_id: str = "p1",
    qty: int = 1,
    unit_price: str = "10.00",
    variant_id: Optional[str] = None,
    title: Optional[str] = None,
    variant_label: Optional[str] = None,
) -> OrderItem:
    return OrderItem(
        product_id=product_id,
        variant_id=variant_id,
        title=title or f"Print {product_id}",
        unit_price=Decimal(unit_price),
        qty=qty,
        image_url=f"/img/{product_id}.jpg",
        variant_label=variant_label,
    )


@pytest.fixture(name="make_item")
def _make_item():
    return build_item


@pytest.fixture()
def gateway():
    return FakeInventoryGateway()


@pytest.fixture()
def reconciler(gateway):
    return StockReconciler(gateway)


@pytest.fixture()
def repository():
    return OrderCacheRepository()


@pytest.fixture()
def notifier():
    return MagicMock()


@pytest.fixture()
def loyalty():
    program = MagicMock()
    program.earn_points.return_value = 12
    return program


@pytest.fixture()
def bus():
    return InMemoryEventBus()


@pytest.fixture()
def service(repository, reconciler, notifier, bus, loyalty):
    return OrderService(
        order_repository=repository,
        reconciler=reconciler,
        notifier=notifier,
        event_bus=bus,
        loyalty=loyalty,
    )


@pytest.fixture()
def place_dto():
    return PlaceOrderDTO(
        customer=CustomerInfo(
            first_name="Ada",
            last_name="Lovelace",
            email="ada@example.com",
            address=Address(
                street="1 Analytical St", city="London", zip="N1", country="UK"
            ),
        ),
        payment=PaymentInfo(method="card", last4="4242", brand="visa"),
        shipping=Decimal("4.90"),
    )


@pytest.fixture()
def cart_factory():
    def _make(*items: OrderItem, taxes: str = "0.00") -> SubmittedCart:
        return SubmittedCart(items, taxes=Decimal(taxes))

    return _make
