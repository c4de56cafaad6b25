"""Volumetric capacity derived on demand from the current order set.

Nothing here is stored: every figure is recomputed from the orders passed in,
so the ledger can never drift from the pedidos table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from ...models.domain import Order, OrderLine, OrderStatus, Product, Warehouse

# Unit volume assumed for products missing from the catalog. Orders are never
# blocked by catalog gaps.
DEFAULT_UNIT_VOLUME_M3 = 0.5

# Orders that still consume warehouse capacity.
CAPACITY_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.ASSIGNED})


class Loaded(Protocol):
    volume_m3: Optional[float]


class Vehicle(Protocol):
    capacity_m3: float


@dataclass(slots=True)
class WarehouseCapacity:
    warehouse: str
    total_m3: float
    committed_m3: float
    available_m3: float
    utilization_pct: float
    over_capacity: bool


def _lookup(catalog: Mapping[str, Product], name: str) -> Product | None:
    product = catalog.get(name)
    if product is None:
        product = catalog.get(" ".join(str(name).split()))
    return product


def volume_of(
    lines: Iterable[OrderLine],
    catalog: Mapping[str, Product],
    default_volume: float = DEFAULT_UNIT_VOLUME_M3,
) -> float:
    """Sum ``quantity * unit_volume`` over the lines, in m3."""
    total = 0.0
    for line in lines:
        product = _lookup(catalog, line.product)
        unit_volume = product.unit_volume_m3 if product is not None and product.active else default_volume
        total += unit_volume * line.quantity
    return round(total, 4)


def weight_of(lines: Iterable[OrderLine], catalog: Mapping[str, Product]) -> float | None:
    """Total weight in kg, or None when no line has a catalogued weight."""
    total = 0.0
    known = False
    for line in lines:
        product = _lookup(catalog, line.product)
        if product is None or product.unit_weight_kg is None:
            continue
        known = True
        total += product.unit_weight_kg * line.quantity
    return round(total, 4) if known else None


def committed_volume(warehouse: str, orders: Iterable[Order]) -> float:
    return round(
        sum(
            order.volume_m3 or 0.0
            for order in orders
            if order.warehouse == warehouse and order.status in CAPACITY_STATUSES
        ),
        4,
    )


def available_capacity(warehouse: Warehouse, orders: Iterable[Order]) -> float:
    """Total capacity minus the volume of pending/assigned orders. May be negative."""
    return round(warehouse.capacity_m3 - committed_volume(warehouse.name, orders), 4)


def warehouse_capacity(warehouse: Warehouse, orders: Sequence[Order]) -> WarehouseCapacity:
    committed = committed_volume(warehouse.name, orders)
    available = round(warehouse.capacity_m3 - committed, 4)
    utilization = (committed / warehouse.capacity_m3 * 100.0) if warehouse.capacity_m3 > 0 else 0.0
    return WarehouseCapacity(
        warehouse=warehouse.name,
        total_m3=warehouse.capacity_m3,
        committed_m3=committed,
        available_m3=available,
        utilization_pct=round(utilization, 1),
        over_capacity=available < 0,
    )


def route_volume(order_ids: Iterable[int], orders_by_id: Mapping[int, Loaded]) -> float:
    """Volume of the listed orders, in m3. Orders or request orders both work."""
    return round(sum(orders_by_id[order_id].volume_m3 or 0.0 for order_id in order_ids), 4)


def fits_truck(truck: Vehicle, volume_m3: float) -> bool:
    return volume_m3 <= truck.capacity_m3
