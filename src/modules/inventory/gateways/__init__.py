"""Inventory Gateway package."""

from modules.inventory.gateways.django_gateway import ProductDjangoGateway
from modules.inventory.gateways.interfaces import IInventoryGateway

__all__ = ["IInventoryGateway", "ProductDjangoGateway"]
