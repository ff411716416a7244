"""Inventory Gateway contract.

The order engine consumes stock exclusively through this interface.  It
offers plain reads and absolute writes only: there is no compare-and-set
and no multi-key transaction, which is why the stock reconciler validates
the whole batch before writing anything.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from modules.inventory.dtos import ProductSnapshot


class IInventoryGateway(ABC):
    """Read/write access to product and variant stock counters."""

    @abstractmethod
    def get_product(self, product_id: str) -> Optional[ProductSnapshot]:
        """Return the product with its variants, or ``None`` if unknown.

        Raises:
            InventoryError: the store could not be read.
        """

    @abstractmethod
    def set_product_stock(self, product_id: str, new_stock: int) -> ProductSnapshot:
        """Overwrite a product's stock; availability becomes ``new_stock > 0``.

        Raises:
            ProductNotFound: unknown product.
            InvalidStock: negative stock, or the product has variants.
            InventoryError: the store could not be written.
        """

    @abstractmethod
    def set_variant_stock(
        self, product_id: str, variant_id: str, new_stock: int
    ) -> ProductSnapshot:
        """Overwrite a variant's stock and recompute the product totals.

        Raises:
            ProductNotFound: unknown product.
            VariantNotFound: unknown variant.
            InvalidStock: negative stock.
            InventoryError: the store could not be written.
        """
