"""Route and delivery state machine.

Route:  planificada -> en_curso <-> pausada, en_curso -> completada (terminal).
Order:  pendiente -> asignado -> en_ruta -> entregado | fallido (terminal).

Every transition validates first and writes one ``UnitOfWork``, so a rejected
transition leaves the stored records untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence

from ...config import settings
from ...errors import CapacityExceededError, InvalidTransitionError, NotFoundError
from ...models.domain import (
    DeliveryStop,
    DispatchMode,
    Order,
    OrderStatus,
    Route,
    RouteStatus,
    Truck,
    TruckStatus,
)
from ...persistence.repository import Repository, UnitOfWork
from ..capacity.ledger import fits_truck, route_volume
from ..locks import KeyedLocks

logger = logging.getLogger(__name__)

DELIVERABLE_STATUSES = frozenset({OrderStatus.ASSIGNED, OrderStatus.EN_ROUTE})
OPEN_ROUTE_STATUSES = frozenset({RouteStatus.PLANNED, RouteStatus.IN_PROGRESS, RouteStatus.PAUSED})

DELIVERED_NOTE = "Entregado exitosamente"
CLOSURE_NOTE = "Ruta finalizada - entrega confirmada"


@dataclass(slots=True)
class RouteStatistics:
    total_orders: int
    delivered: int
    failed: int
    pending: int


@dataclass(slots=True)
class TransitionResult:
    route: Route
    action: str
    statistics: RouteStatistics
    order_id: Optional[int] = None
    changed: bool = True


def recompute_etas(
    stops: Sequence[DeliveryStop],
    now: datetime,
    buffer_minutes: int | None = None,
    service_minutes: int | None = None,
) -> list[DeliveryStop]:
    """Linear re-estimate of the remaining stops, in their existing order.

    The first open stop is due ``now + buffer``; each following one adds the
    average service time. Completed stops keep their last estimate.
    """
    buffer = settings.eta_dispatch_buffer_minutes if buffer_minutes is None else buffer_minutes
    service = settings.eta_service_minutes if service_minutes is None else service_minutes
    elapsed = buffer
    updated: list[DeliveryStop] = []
    for stop in sorted(stops, key=lambda item: item.sequence):
        if stop.completed:
            updated.append(replace(stop))
            continue
        eta = now + timedelta(minutes=elapsed)
        updated.append(replace(stop, eta=eta.strftime("%H:%M")))
        elapsed += service
    return updated


class RouteLifecycle:
    def __init__(
        self,
        repository: Repository,
        clock: Callable[[], datetime] | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.repository = repository
        self.clock = clock or datetime.now
        self.locks = locks or KeyedLocks()

    # -- creation -----------------------------------------------------------

    def commit_route(
        self,
        truck_id: int,
        stops: Sequence[DeliveryStop],
        dispatch_mode: DispatchMode,
        scheduled_date: date | None = None,
        distance_km: float = 0.0,
        estimated_hours: float = 0.0,
        notes: str | None = None,
    ) -> Route:
        """Create a ``planificada`` route and assign its orders and truck in one write."""
        if not stops:
            raise ValueError("A route needs at least one stop.")
        order_ids = [stop.order_id for stop in stops]
        if len(set(order_ids)) != len(order_ids):
            raise ValueError("A route cannot visit the same order twice.")

        truck = self.repository.get_truck(truck_id)
        with self.locks.hold(("warehouse", truck.warehouse_id)):
            truck = self.repository.get_truck(truck_id)
            if not truck.active or truck.status is not TruckStatus.AVAILABLE:
                raise InvalidTransitionError("Camión", truck.truck_id, truck.status.value, "commit_route")
            open_routes = self.repository.list_routes(truck_ids=[truck.truck_id], statuses=OPEN_ROUTE_STATUSES)
            if open_routes:
                raise InvalidTransitionError("Camión", truck.truck_id, "con ruta abierta", "commit_route")

            orders = [self.repository.get_order(order_id) for order_id in order_ids]
            warehouse_names = {
                warehouse.name
                for warehouse in self.repository.list_warehouses(active_only=False)
                if warehouse.warehouse_id == truck.warehouse_id
            }
            for order in orders:
                if order.status is not OrderStatus.PENDING:
                    raise InvalidTransitionError("Pedido", order.order_id, order.status.value, "commit_route")
                if order.warehouse not in warehouse_names:
                    raise ValueError(
                        f"Pedido {order.order_id} pertenece a la bodega {order.warehouse}, "
                        f"no a la del camión {truck.code}"
                    )

            volume = route_volume(order_ids, {order.order_id: order for order in orders})
            if not fits_truck(truck, volume):
                raise CapacityExceededError(
                    f"Volumen {volume} m3 excede la capacidad de {truck.code} ({truck.capacity_m3} m3)"
                )

            ordered_stops = sorted((replace(stop, completed=False) for stop in stops), key=lambda item: item.sequence)
            route = Route(
                route_id=0,
                truck_id=truck.truck_id,
                scheduled_date=scheduled_date or self.clock().date(),
                status=RouteStatus.PLANNED,
                stops=ordered_stops,
                total_distance_km=distance_km,
                estimated_hours=estimated_hours,
                volume_m3=volume,
                started_at=ordered_stops[0].eta,
                notes=notes or f"Ruta generada automáticamente - {len(stops)} pedidos",
            )
            assigned = [
                replace(
                    order,
                    status=OrderStatus.ASSIGNED,
                    notes=f"Asignado a ruta - Camión {truck.code}",
                )
                for order in orders
            ]
            truck_status = TruckStatus.EN_ROUTE if dispatch_mode is DispatchMode.IMMEDIATE else TruckStatus.PLANNED
            work = UnitOfWork(
                route=route,
                new_route=True,
                orders=assigned,
                trucks=[replace(truck, status=truck_status)],
                previous_orders=orders,
                previous_trucks=[truck],
            )
            stored = self.repository.apply(work)
            logger.info(
                f"Committed route {stored.route_id} for truck {truck.code}: "
                f"{len(stops)} orders, {volume} m3, truck {truck_status.value}"
            )
            return stored

    # -- route transitions --------------------------------------------------

    def start_route(self, route_id: int) -> TransitionResult:
        with self.locks.hold(("route", route_id)):
            route = self.repository.get_route(route_id)
            if route.status is RouteStatus.IN_PROGRESS:
                return self._result(route, "iniciar_ruta", changed=False)
            if route.status is not RouteStatus.PLANNED:
                raise InvalidTransitionError("Ruta", route_id, route.status.value, "iniciar_ruta")

            truck = self.repository.get_truck(route.truck_id)
            orders = self.repository.list_orders(route_id=route_id)
            started = replace(
                route,
                status=RouteStatus.IN_PROGRESS,
                started_at=self.clock().strftime("%H:%M:%S"),
            )
            moving = [
                replace(order, status=OrderStatus.EN_ROUTE)
                for order in orders
                if order.status is OrderStatus.ASSIGNED
            ]
            self._apply(started, route, moving, orders, [replace(truck, status=TruckStatus.EN_ROUTE)], [truck])
            logger.info(f"Route {route_id} started")
            return self._result(started, "iniciar_ruta")

    def pause_route(self, route_id: int, notes: str | None = None) -> TransitionResult:
        return self._toggle(route_id, RouteStatus.IN_PROGRESS, RouteStatus.PAUSED, "pausar_ruta", notes)

    def resume_route(self, route_id: int) -> TransitionResult:
        return self._toggle(route_id, RouteStatus.PAUSED, RouteStatus.IN_PROGRESS, "reanudar_ruta", None)

    def finish_route(self, route_id: int, notes: str | None = None) -> TransitionResult:
        """Close an ``en_curso`` route.

        Stops still open are confirmed as delivered: closing a route means the
        driver completed them. The truck goes back to ``disponible``.
        """
        with self.locks.hold(("route", route_id)):
            route = self.repository.get_route(route_id)
            if route.status is not RouteStatus.IN_PROGRESS:
                raise InvalidTransitionError("Ruta", route_id, route.status.value, "finalizar_ruta")

            truck = self.repository.get_truck(route.truck_id)
            orders = self.repository.list_orders(route_id=route_id)
            open_ids = {stop.order_id for stop in route.stops if not stop.completed}
            confirmed = [
                replace(order, status=OrderStatus.DELIVERED, notes=CLOSURE_NOTE)
                for order in orders
                if order.order_id in open_ids and not order.status.is_terminal
            ]
            finished = replace(
                route,
                status=RouteStatus.COMPLETED,
                finished_at=self.clock().strftime("%H:%M:%S"),
                stops=[replace(stop, completed=True) for stop in route.stops],
                notes=notes or route.notes,
            )
            self._apply(finished, route, confirmed, orders, [replace(truck, status=TruckStatus.AVAILABLE)], [truck])
            logger.info(f"Route {route_id} finished, {len(confirmed)} open stops confirmed as delivered")
            return self._result(finished, "finalizar_ruta")

    # -- delivery outcomes --------------------------------------------------

    def mark_delivered(self, route_id: int, order_id: int, notes: str | None = None) -> TransitionResult:
        return self._close_stop(
            route_id, order_id, OrderStatus.DELIVERED, notes or DELIVERED_NOTE, "pedido_entregado", route_note=notes
        )

    def mark_failed(self, route_id: int, order_id: int, reason: str) -> TransitionResult:
        if reason is None or not reason.strip():
            raise ValueError("Una entrega fallida requiere un motivo.")
        return self._close_stop(
            route_id, order_id, OrderStatus.FAILED, reason.strip(), "pedido_fallido", route_note=reason.strip()
        )

    def statistics(self, route_id: int) -> RouteStatistics:
        return self._statistics(self.repository.list_orders(route_id=route_id))

    # -- internals ----------------------------------------------------------

    def _close_stop(
        self,
        route_id: int,
        order_id: int,
        outcome: OrderStatus,
        note: str,
        action: str,
        route_note: str | None = None,
    ) -> TransitionResult:
        # Caller supplied observations are also copied onto the route record.
        with self.locks.hold(("route", route_id)):
            route = self.repository.get_route(route_id)
            if route.status not in OPEN_ROUTE_STATUSES:
                raise InvalidTransitionError("Ruta", route_id, route.status.value, action)
            stop = route.stop_for(order_id)
            order = self.repository.get_order(order_id)
            if stop is None or order.route_id != route_id:
                raise NotFoundError(f"Pedido {order_id} no pertenece a la ruta {route_id}")
            if order.status not in DELIVERABLE_STATUSES:
                raise InvalidTransitionError("Pedido", order_id, order.status.value, action)

            stops = [replace(item, completed=True) if item.order_id == order_id else item for item in route.stops]
            updated = replace(route, stops=recompute_etas(stops, self.clock()), notes=route_note or route.notes)
            closed = replace(order, status=outcome, notes=note)
            self._apply(updated, route, [closed], [order], [], [])
            logger.info(f"Order {order_id} on route {route_id} marked {outcome.value}")
            return self._result(updated, action, order_id=order_id)

    def _toggle(
        self,
        route_id: int,
        source: RouteStatus,
        target: RouteStatus,
        action: str,
        notes: str | None,
    ) -> TransitionResult:
        with self.locks.hold(("route", route_id)):
            route = self.repository.get_route(route_id)
            if route.status is not source:
                raise InvalidTransitionError("Ruta", route_id, route.status.value, action)
            updated = replace(route, status=target, notes=notes or route.notes)
            self._apply(updated, route, [], [], [], [])
            logger.info(f"Route {route_id} {source.value} -> {target.value}")
            return self._result(updated, action)

    def _apply(
        self,
        route: Route,
        previous_route: Route,
        orders: list[Order],
        previous_orders: list[Order],
        trucks: list[Truck],
        previous_trucks: list[Truck],
    ) -> None:
        self.repository.apply(
            UnitOfWork(
                route=route,
                orders=orders,
                trucks=trucks,
                previous_route=previous_route,
                previous_orders=previous_orders,
                previous_trucks=previous_trucks,
            )
        )

    def _result(self, route: Route, action: str, order_id: int | None = None, changed: bool = True) -> TransitionResult:
        return TransitionResult(
            route=route,
            action=action,
            statistics=self.statistics(route.route_id),
            order_id=order_id,
            changed=changed,
        )

    @staticmethod
    def _statistics(orders: Sequence[Order]) -> RouteStatistics:
        return RouteStatistics(
            total_orders=len(orders),
            delivered=sum(1 for order in orders if order.status is OrderStatus.DELIVERED),
            failed=sum(1 for order in orders if order.status is OrderStatus.FAILED),
            pending=sum(1 for order in orders if order.status in DELIVERABLE_STATUSES),
        )
