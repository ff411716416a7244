"""Order repositories package."""

from modules.orders.repositories.cache_repository import OrderCacheRepository
from modules.orders.repositories.interfaces import IOrderRepository

__all__ = ["IOrderRepository", "OrderCacheRepository"]
