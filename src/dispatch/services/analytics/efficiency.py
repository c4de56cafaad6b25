"""Weekly delivery efficiency report per warehouse."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from ...config import settings
from ...models.domain import Order, OrderStatus, Route, RouteStatus, Truck, Warehouse
from ...persistence.repository import Repository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WarehouseEfficiency:
    delivered: int
    on_time: int
    punctuality_pct: float
    km_per_order: float
    truck_utilization_pct: float
    avg_route_hours: float
    completed_routes: int
    total_distance_km: float


@dataclass(slots=True)
class EfficiencyReport:
    week: str
    period_start: date
    period_end: date
    total_delivered: int
    avg_punctuality_pct: float
    warehouses_analyzed: int
    by_warehouse: dict[str, WarehouseEfficiency] = field(default_factory=dict)
    alerts: list[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def week_bounds(reference: date) -> tuple[date, date]:
    """Sunday to Saturday week containing ``reference``."""
    start = reference - timedelta(days=(reference.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def _round1(value: float) -> float:
    return round(value, 1)


def _on_time(order: Order, routes_by_id: dict[int, Route]) -> bool:
    if order.deadline is None:
        return True
    route = routes_by_id.get(order.route_id) if order.route_id is not None else None
    if route is not None:
        return route.scheduled_date <= order.deadline
    if order.created_at is not None:
        return order.created_at.date() <= order.deadline
    return True


def _warehouse_efficiency(
    warehouse: Warehouse,
    orders: list[Order],
    routes: list[Route],
    trucks: list[Truck],
    alerts: list[str],
) -> WarehouseEfficiency:
    routes_by_id = {route.route_id: route for route in routes}
    delivered = [order for order in orders if order.status is OrderStatus.DELIVERED]
    on_time = sum(1 for order in delivered if _on_time(order, routes_by_id))
    punctuality = (on_time / len(delivered) * 100.0) if delivered else 100.0

    total_distance = sum(route.total_distance_km for route in routes)
    km_per_order = total_distance / len(delivered) if delivered else 0.0

    total_capacity = sum(truck.capacity_m3 for truck in trucks) or 1.0
    used_volume = sum(route.volume_m3 for route in routes)
    utilization = used_volume / total_capacity * 100.0
    avg_hours = sum(route.estimated_hours for route in routes) / len(routes) if routes else 0.0

    if punctuality < settings.low_punctuality_threshold:
        alerts.append(f"Bodega {warehouse.name}: {len(delivered) - on_time} pedidos entregados tarde")
    if utilization < settings.low_utilization_threshold:
        underused = [
            truck
            for truck in trucks
            if sum(route.volume_m3 for route in routes if route.truck_id == truck.truck_id) < truck.capacity_m3 * 0.5
        ]
        if underused:
            alerts.append(f"Bodega {warehouse.name}: {len(underused)} camiones con utilización baja")

    return WarehouseEfficiency(
        delivered=len(delivered),
        on_time=on_time,
        punctuality_pct=_round1(punctuality),
        km_per_order=_round1(km_per_order),
        truck_utilization_pct=_round1(utilization),
        avg_route_hours=_round1(avg_hours),
        completed_routes=sum(1 for route in routes if route.status is RouteStatus.COMPLETED),
        total_distance_km=_round1(total_distance),
    )


def efficiency_report(repository: Repository, reference: date | None = None) -> EfficiencyReport:
    start, end = week_bounds(reference or date.today())
    iso_year, iso_week, _ = (start + timedelta(days=1)).isocalendar()
    warehouses = repository.list_warehouses(active_only=True)
    logger.info(f"Building efficiency report for {start.isoformat()} to {end.isoformat()}")

    alerts: list[str] = []
    by_warehouse: dict[str, WarehouseEfficiency] = {}
    for warehouse in warehouses:
        trucks = repository.list_trucks(warehouse_id=warehouse.warehouse_id)
        routes = repository.list_routes(
            truck_ids=[truck.truck_id for truck in trucks],
            date_from=start,
            date_to=end,
        )
        orders = [
            order
            for order in repository.list_orders(warehouse=warehouse.name)
            if order.created_at is not None and start <= order.created_at.date() <= end
        ]
        by_warehouse[warehouse.name] = _warehouse_efficiency(warehouse, orders, routes, trucks, alerts)

    total_delivered = sum(item.delivered for item in by_warehouse.values())
    avg_punctuality = (
        sum(item.punctuality_pct for item in by_warehouse.values()) / len(by_warehouse) if by_warehouse else 100.0
    )
    return EfficiencyReport(
        week=f"{iso_year}-W{iso_week:02d}",
        period_start=start,
        period_end=end,
        total_delivered=total_delivered,
        avg_punctuality_pct=_round1(avg_punctuality),
        warehouses_analyzed=len(by_warehouse),
        by_warehouse=by_warehouse,
        alerts=alerts,
    )
