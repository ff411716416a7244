"""Integration tests for ProductDjangoGateway.

Covers:
- Snapshots for products with and without variants.
- Product writes mirror availability.
- Variant writes recompute the derived product counter.
- Rejected writes: negative stock, product counter of a variant product,
  unknown product or variant.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.db import DatabaseError

from modules.inventory.exceptions import (
    InvalidStock,
    InventoryError,
    ProductNotFound,
    VariantNotFound,
)
from modules.inventory.gateways import ProductDjangoGateway
from modules.inventory.models import Product, ProductVariant

pytestmark = pytest.mark.integration


@pytest.fixture()
def gateway():
    return ProductDjangoGateway()


@pytest.fixture()
def frame():
    return Product.objects.create(
        sku="frm-001", name="Oak frame", price=Decimal("24.90"), stock_quantity=5
    )


@pytest.fixture()
def print_product():
    product = Product.objects.create(
        sku="PRT-001", name="Harbour", price=Decimal("45.00")
    )
    a4 = ProductVariant.objects.create(product=product, label="A4", stock_quantity=3)
    a3 = ProductVariant.objects.create(product=product, label="A3", stock_quantity=0)
    product.sync_from_variants()
    product.save(update_fields=["stock_quantity", "is_available"])
    return product, a4, a3


class TestModels:
    def test_sku_normalized_and_availability_mirrored(self, frame):
        assert frame.sku == "FRM-001"
        assert frame.is_available is True

    def test_out_of_stock_product_unavailable(self):
        product = Product.objects.create(sku="X-1", name="X", price=Decimal("1.00"))
        assert product.is_available is False

    def test_sync_from_variants(self, print_product):
        product, _, _ = print_product
        product.refresh_from_db()
        assert product.stock_quantity == 3
        assert product.is_available is True


class TestGetProduct:
    def test_snapshot_of_simple_product(self, gateway, frame):
        snapshot = gateway.get_product(str(frame.id))

        assert snapshot.id == str(frame.id)
        assert snapshot.stock == 5
        assert snapshot.is_available is True
        assert snapshot.variants == []

    def test_snapshot_of_variant_product(self, gateway, print_product):
        product, a4, a3 = print_product

        snapshot = gateway.get_product(str(product.id))

        assert snapshot.variant(str(a4.id)).stock == 3
        assert snapshot.variant(str(a3.id)).is_available is False
        assert snapshot.variant(str(uuid4())) is None

    def test_unknown_or_malformed_id(self, gateway):
        assert gateway.get_product(str(uuid4())) is None
        assert gateway.get_product("not-a-uuid") is None

    def test_database_error_becomes_inventory_error(self, gateway, frame):
        with patch.object(Product.objects, "prefetch_related", side_effect=DatabaseError):
            with pytest.raises(InventoryError):
                gateway.get_product(str(frame.id))


class TestSetProductStock:
    def test_writes_stock_and_availability(self, gateway, frame):
        snapshot = gateway.set_product_stock(str(frame.id), 0)

        frame.refresh_from_db()
        assert frame.stock_quantity == 0
        assert frame.is_available is False
        assert snapshot.is_available is False

    def test_back_in_stock(self, gateway, frame):
        gateway.set_product_stock(str(frame.id), 0)
        gateway.set_product_stock(str(frame.id), 2)

        frame.refresh_from_db()
        assert frame.is_available is True

    def test_negative_rejected(self, gateway, frame):
        with pytest.raises(InvalidStock):
            gateway.set_product_stock(str(frame.id), -1)

    def test_variant_product_rejected(self, gateway, print_product):
        product, _, _ = print_product
        with pytest.raises(InvalidStock):
            gateway.set_product_stock(str(product.id), 10)

    def test_unknown_product(self, gateway):
        with pytest.raises(ProductNotFound):
            gateway.set_product_stock(str(uuid4()), 1)

    def test_failed_re_read_becomes_inventory_error(self, gateway, frame):
        with patch.object(Product.objects, "prefetch_related", side_effect=DatabaseError):
            with pytest.raises(InventoryError):
                gateway.set_product_stock(str(frame.id), 2)

        frame.refresh_from_db()
        assert frame.stock_quantity == 2


class TestSetVariantStock:
    def test_recomputes_product_counter(self, gateway, print_product):
        product, a4, a3 = print_product

        snapshot = gateway.set_variant_stock(str(product.id), str(a3.id), 4)

        assert snapshot.stock == 7
        assert snapshot.variant(str(a3.id)).is_available is True
        product.refresh_from_db()
        assert product.stock_quantity == 7

    def test_all_variants_empty_makes_product_unavailable(self, gateway, print_product):
        product, a4, _ = print_product

        gateway.set_variant_stock(str(product.id), str(a4.id), 0)

        product.refresh_from_db()
        assert product.stock_quantity == 0
        assert product.is_available is False

    def test_unknown_variant(self, gateway, print_product, frame):
        product, _, _ = print_product
        with pytest.raises(VariantNotFound):
            gateway.set_variant_stock(str(product.id), str(uuid4()), 1)

    def test_failed_re_read_becomes_inventory_error(self, gateway, print_product):
        product, a4, _ = print_product
        with patch.object(Product.objects, "prefetch_related", side_effect=DatabaseError):
            with pytest.raises(InventoryError):
                gateway.set_variant_stock(str(product.id), str(a4.id), 1)

    def test_variant_of_another_product(self, gateway, print_product, frame):
        _, a4, _ = print_product
        with pytest.raises(VariantNotFound):
            gateway.set_variant_stock(str(frame.id), str(a4.id), 1)
