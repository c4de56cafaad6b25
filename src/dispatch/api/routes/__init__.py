"""Route group exports."""

from . import analytics, dispatch, health, orders, routes, warehouses

__all__ = ["analytics", "dispatch", "health", "orders", "routes", "warehouses"]
