"""Builds optimizer requests and validates what comes back before anything is committed."""

from __future__ import annotations

import logging
from datetime import date
from typing import Sequence

from ...config import settings
from ...models.domain import Order, Priority, Truck, Warehouse
from ..capacity.ledger import fits_truck, route_volume
from .client import Optimizer
from .models import (
    OptimizedRoute,
    RejectedRoute,
    RequestOrder,
    RequestTruck,
    RouteRequest,
    RouteResponse,
    RouteSummary,
    parse_response,
)

logger = logging.getLogger(__name__)

UNROUTED_REASON = "No incluido por el optimizador"


def _priority_level(order: Order) -> int:
    return (order.priority or Priority.NORMAL).level


def build_request(
    warehouse: Warehouse,
    orders: Sequence[Order],
    trucks: Sequence[Truck],
    planning_date: date,
) -> RouteRequest:
    """Deterministic snapshot of the orders and trucks to plan.

    Orders are sorted critical first, then by deadline and id; trucks by code.
    """
    sorted_orders = sorted(
        orders,
        key=lambda order: (-_priority_level(order), order.deadline or date.max, order.order_id),
    )
    return RouteRequest(
        warehouse=warehouse.name,
        planning_date=planning_date,
        base_address=warehouse.base_address,
        operating_start=settings.operating_start,
        operating_end=settings.operating_end,
        orders=[
            RequestOrder(
                order_id=order.order_id,
                customer_name=order.customer_name,
                address=order.address,
                city=order.city,
                volume_m3=order.volume_m3 or 0.0,
                priority_level=_priority_level(order),
                deadline=order.deadline,
            )
            for order in sorted_orders
        ],
        trucks=[
            RequestTruck(code=truck.code, capacity_m3=truck.capacity_m3)
            for truck in sorted(trucks, key=lambda truck: truck.code)
        ],
    )


class OptimizationBroker:
    def __init__(self, optimizer: Optimizer) -> None:
        self.optimizer = optimizer

    def optimize(self, request: RouteRequest) -> RouteResponse:
        """Call the optimizer once and return only routes that respect references and capacity.

        ``OptimizerUnavailableError`` and ``OptimizerResponseError`` propagate to the
        caller; a route that breaks a reference or capacity rule is dropped on its
        own and its orders are reported unassigned.
        """
        if not request.orders:
            return RouteResponse(routes=[], unassigned=[], reason="No hay pedidos pendientes")
        if not request.trucks:
            return RouteResponse(
                routes=[],
                unassigned=[order.order_id for order in request.orders],
                reason="No hay camiones disponibles",
                unassigned_reasons={order.order_id: "No hay camiones disponibles" for order in request.orders},
            )

        raw = self.optimizer.optimize(request)
        response = parse_response(raw)
        return self.validate(request, response)

    def validate(self, request: RouteRequest, response: RouteResponse) -> RouteResponse:
        orders_by_id = {order.order_id: order for order in request.orders}
        trucks_by_code = {truck.code: truck for truck in request.trucks}

        accepted: list[OptimizedRoute] = []
        rejected: list[RejectedRoute] = []
        routed: set[int] = set()
        used_trucks: set[str] = set()

        for route in response.routes:
            reason = self._route_violation(route, orders_by_id, trucks_by_code, routed, used_trucks)
            if reason:
                logger.warning(f"Rejected route for truck {route.truck_code} ({request.warehouse}): {reason}")
                rejected.append(
                    RejectedRoute(
                        truck_code=route.truck_code,
                        order_ids=[oid for oid in route.order_ids if oid in orders_by_id],
                        reason=reason,
                    )
                )
                continue

            truck = trucks_by_code[route.truck_code]
            volume = route_volume(route.order_ids, orders_by_id)
            route.summary = RouteSummary(
                total_orders=len(route.stops),
                volume_used_m3=volume,
                capacity_pct=round(volume / truck.capacity_m3 * 100.0, 1) if truck.capacity_m3 else 0.0,
                distance_km=route.summary.distance_km,
                hours=route.summary.hours,
            )
            accepted.append(route)
            routed.update(route.order_ids)
            used_trucks.add(route.truck_code)

        unassigned_reasons: dict[int, str] = {}
        for order_id in response.unassigned:
            if order_id not in orders_by_id:
                logger.warning(f"Optimizer listed unknown order {order_id} as unassigned; ignoring")
                continue
            if order_id in routed:
                logger.warning(f"Order {order_id} is both routed and unassigned; keeping it routed")
                continue
            unassigned_reasons.setdefault(order_id, response.reason or UNROUTED_REASON)
        for rejection in rejected:
            for order_id in rejection.order_ids:
                if order_id not in routed:
                    unassigned_reasons[order_id] = f"Ruta rechazada ({rejection.truck_code}): {rejection.reason}"
        for order_id in orders_by_id:
            if order_id not in routed and order_id not in unassigned_reasons:
                unassigned_reasons[order_id] = UNROUTED_REASON

        unassigned = [order.order_id for order in request.orders if order.order_id in unassigned_reasons]
        return RouteResponse(
            routes=accepted,
            unassigned=unassigned,
            reason=response.reason,
            rejected=rejected,
            unassigned_reasons={order_id: unassigned_reasons[order_id] for order_id in unassigned},
        )

    @staticmethod
    def _route_violation(
        route: OptimizedRoute,
        orders_by_id: dict[int, RequestOrder],
        trucks_by_code: dict[str, RequestTruck],
        routed: set[int],
        used_trucks: set[str],
    ) -> str | None:
        truck = trucks_by_code.get(route.truck_code)
        if truck is None:
            return f"camión desconocido '{route.truck_code}'"
        if route.truck_code in used_trucks:
            return f"camión '{route.truck_code}' ya tiene una ruta en este lote"
        if not route.stops:
            return "ruta sin pedidos"
        order_ids = route.order_ids
        unknown = [oid for oid in order_ids if oid not in orders_by_id]
        if unknown:
            return f"pedidos desconocidos {unknown}"
        if len(set(order_ids)) != len(order_ids):
            return "pedidos repetidos dentro de la ruta"
        duplicated = [oid for oid in order_ids if oid in routed]
        if duplicated:
            return f"pedidos {duplicated} ya asignados a otra ruta"
        volume = route_volume(order_ids, orders_by_id)
        if not fits_truck(truck, volume):
            return f"volumen {volume} m3 excede capacidad {truck.capacity_m3} m3"
        return None
