"""Django ORM implementation of the Inventory Gateway.

Each write runs in its own ``transaction.atomic()`` block and locks the
product row (``SELECT FOR UPDATE``) so the product/variant counters of a
single write stay consistent with each other.  Database errors are
translated into ``InventoryError``; the ORM never leaks past the gateway.
"""

from __future__ import annotations

from typing import Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from modules.inventory.dtos import ProductSnapshot, VariantSnapshot
from modules.inventory.exceptions import (
    InvalidStock,
    InventoryError,
    ProductNotFound,
    VariantNotFound,
)
from modules.inventory.gateways.interfaces import IInventoryGateway
from modules.inventory.models import Product, ProductVariant

logger = structlog.get_logger(__name__)


class ProductDjangoGateway(IInventoryGateway):
    """Concrete Inventory Gateway backed by the catalogue tables."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_product(self, product_id: str) -> Optional[ProductSnapshot]:
        """Return a snapshot of the product, or ``None`` for unknown/invalid IDs."""
        try:
            product = (
                Product.objects.prefetch_related("variants")
                .filter(id=product_id)
                .first()
            )
        except (ValueError, ValidationError):
            return None
        except DatabaseError as exc:
            logger.error("inventory.read_failed", product_id=str(product_id))
            raise InventoryError(f"Could not read product {product_id}.") from exc
        return _to_snapshot(product) if product else None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def set_product_stock(self, product_id: str, new_stock: int) -> ProductSnapshot:
        if new_stock < 0:
            raise InvalidStock(f"Stock for product {product_id} cannot be negative.")
        try:
            with transaction.atomic():
                product = self._lock_product(product_id)
                if product.variants.exists():
                    raise InvalidStock(
                        f"Product {product_id} has variants; "
                        "write the variant stock instead."
                    )
                product.stock_quantity = new_stock
                product.save(update_fields=["stock_quantity", "is_available"])
        except DatabaseError as exc:
            logger.error("inventory.write_failed", product_id=str(product_id))
            raise InventoryError(f"Could not write product {product_id}.") from exc

        logger.info(
            "inventory.product_stock_set",
            product_id=str(product_id),
            stock=new_stock,
            is_available=product.is_available,
        )
        return self._refresh(product)

    def set_variant_stock(
        self, product_id: str, variant_id: str, new_stock: int
    ) -> ProductSnapshot:
        if new_stock < 0:
            raise InvalidStock(f"Stock for variant {variant_id} cannot be negative.")
        try:
            with transaction.atomic():
                product = self._lock_product(product_id)
                variant = self._get_variant(product, variant_id)
                variant.stock_quantity = new_stock
                variant.save(update_fields=["stock_quantity", "is_available"])

                product.sync_from_variants()
                product.save(update_fields=["stock_quantity", "is_available"])
        except DatabaseError as exc:
            logger.error(
                "inventory.write_failed",
                product_id=str(product_id),
                variant_id=str(variant_id),
            )
            raise InventoryError(
                f"Could not write variant {variant_id} of product {product_id}."
            ) from exc

        logger.info(
            "inventory.variant_stock_set",
            product_id=str(product_id),
            variant_id=str(variant_id),
            stock=new_stock,
            product_stock=product.stock_quantity,
        )
        return self._refresh(product)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _lock_product(product_id: str) -> Product:
        try:
            product = Product.objects.select_for_update().filter(id=product_id).first()
        except (ValueError, ValidationError):
            product = None
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found.")
        return product

    @staticmethod
    def _get_variant(product: Product, variant_id: str) -> ProductVariant:
        try:
            variant = product.variants.filter(id=variant_id).first()
        except (ValueError, ValidationError):
            variant = None
        if variant is None:
            raise VariantNotFound(
                f"Variant {variant_id} not found for product {product.id}."
            )
        return variant

    @staticmethod
    def _refresh(product: Product) -> ProductSnapshot:
        try:
            fresh = Product.objects.prefetch_related("variants").get(id=product.id)
            return _to_snapshot(fresh)
        except (DatabaseError, Product.DoesNotExist) as exc:
            logger.error("inventory.refresh_failed", product_id=str(product.id))
            raise InventoryError(f"Could not re-read product {product.id}.") from exc


def _to_snapshot(product: Product) -> ProductSnapshot:
    return ProductSnapshot(
        id=str(product.id),
        name=product.name,
        stock=product.stock_quantity,
        is_available=product.is_available,
        variants=[
            VariantSnapshot(
                id=str(v.id),
                label=v.label,
                stock=v.stock_quantity,
                is_available=v.is_available,
            )
            for v in product.variants.all()
        ],
    )
