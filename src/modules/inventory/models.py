"""Catalogue stock models.

Business rules implemented:
- Stock quantities are never negative.
- ``is_available`` always mirrors ``stock_quantity > 0``.
- A product with variants carries the sum of its variant stocks; its own
  counter is derived and never written directly.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel

logger = structlog.get_logger(__name__)


class Product(BaseModel):
    """Sellable product with an optional set of variants (print formats, sizes)."""

    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock_quantity = models.PositiveIntegerField(default=0)
    is_available = models.BooleanField(default=False)

    class Meta:
        db_table = "inventory_products"
        ordering = ["name"]

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.sku:
            self.sku = self.sku.strip().upper()
        self.is_available = self.stock_quantity > 0
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product_created",
                product_id=str(self.id),
                sku=self.sku,
                stock=self.stock_quantity,
            )

    def sync_from_variants(self) -> None:
        """Recompute the derived stock counter from the variants."""
        total = sum(max(0, v.stock_quantity) for v in self.variants.all())
        self.stock_quantity = total
        self.is_available = total > 0

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"


class ProductVariant(BaseModel):
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="variants",
    )
    label = models.CharField(max_length=64)
    stock_quantity = models.PositiveIntegerField(default=0)
    is_available = models.BooleanField(default=False)

    class Meta:
        db_table = "inventory_product_variants"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "label"],
                name="inventory_variant_label_unique",
            ),
        ]

    def save(self, *args, **kwargs) -> None:
        self.is_available = self.stock_quantity > 0
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product.sku} / {self.label}"
