"""Inventory Gateway exceptions.

Every failure raised by a gateway implementation is an ``InventoryError``,
so callers can treat the gateway as a single failure domain.
"""

from __future__ import annotations


class InventoryError(Exception):
    """A read or write against the stock store failed."""


class ProductNotFound(InventoryError):
    """The referenced product does not exist."""


class VariantNotFound(InventoryError):
    """The referenced variant does not exist on the product."""


class InvalidStock(InventoryError):
    """The requested stock write is not allowed (negative value, wrong level)."""
