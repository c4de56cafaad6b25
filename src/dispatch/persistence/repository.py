"""Storage interface for the dispatch engine and its in-process implementation."""

from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from ..errors import InvalidTransitionError, NotFoundError
from ..models.domain import Order, OrderStatus, Product, Route, RouteStatus, Truck, TruckStatus, Warehouse


@dataclass(slots=True)
class UnitOfWork:
    """Set of record writes that must land together or not at all.

    When ``new_route`` is set the route is inserted first and its id is copied
    onto every order in ``orders`` before they are written.
    """

    route: Optional[Route] = None
    new_route: bool = False
    orders: list[Order] = field(default_factory=list)
    trucks: list[Truck] = field(default_factory=list)
    # Pre-change copies, used by stores that compensate instead of rolling back.
    previous_orders: list[Order] = field(default_factory=list)
    previous_trucks: list[Truck] = field(default_factory=list)
    previous_route: Optional[Route] = None


class Repository(ABC):
    """Read/write access to pedidos, bodegas, camiones, rutas_entrega and productos_volumen."""

    @abstractmethod
    def get_order(self, order_id: int) -> Order: ...

    @abstractmethod
    def list_orders(
        self,
        warehouse: str | None = None,
        statuses: Iterable[OrderStatus] | None = None,
        route_id: int | None = None,
    ) -> list[Order]: ...

    @abstractmethod
    def save_order(self, order: Order, expected_status: OrderStatus | None = None) -> Order:
        """Overwrite an order. With ``expected_status`` the write only lands if the
        stored order still has that status, otherwise InvalidTransitionError."""

    @abstractmethod
    def list_warehouses(self, active_only: bool = True) -> list[Warehouse]: ...

    @abstractmethod
    def get_warehouse(self, name: str) -> Warehouse: ...

    @abstractmethod
    def list_trucks(
        self,
        warehouse_id: int | None = None,
        status: TruckStatus | None = None,
        active_only: bool = True,
    ) -> list[Truck]: ...

    @abstractmethod
    def get_truck(self, truck_id: int) -> Truck: ...

    @abstractmethod
    def get_route(self, route_id: int) -> Route: ...

    @abstractmethod
    def list_routes(
        self,
        truck_ids: Iterable[int] | None = None,
        statuses: Iterable[RouteStatus] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[Route]: ...

    @abstractmethod
    def list_products(self) -> list[Product]: ...

    @abstractmethod
    def apply(self, work: UnitOfWork) -> Optional[Route]:
        """Persist every record in ``work`` atomically and return the stored route."""


class InMemoryRepository(Repository):
    """Thread-safe dictionary store. Reads return copies so callers cannot mutate state."""

    def __init__(
        self,
        orders: Iterable[Order] = (),
        warehouses: Iterable[Warehouse] = (),
        trucks: Iterable[Truck] = (),
        routes: Iterable[Route] = (),
        products: Iterable[Product] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._orders = {order.order_id: copy.deepcopy(order) for order in orders}
        self._warehouses = {warehouse.name: copy.deepcopy(warehouse) for warehouse in warehouses}
        self._trucks = {truck.truck_id: copy.deepcopy(truck) for truck in trucks}
        self._routes = {route.route_id: copy.deepcopy(route) for route in routes}
        self._products = {product.name: copy.deepcopy(product) for product in products}
        self._next_route_id = max(self._routes, default=0) + 1

    def get_order(self, order_id: int) -> Order:
        with self._lock:
            try:
                return copy.deepcopy(self._orders[order_id])
            except KeyError as exc:
                raise NotFoundError(f"Pedido {order_id} no encontrado") from exc

    def list_orders(self, warehouse=None, statuses=None, route_id=None) -> list[Order]:
        status_set = set(statuses) if statuses is not None else None
        with self._lock:
            return [
                copy.deepcopy(order)
                for order in sorted(self._orders.values(), key=lambda item: item.order_id)
                if (warehouse is None or order.warehouse == warehouse)
                and (status_set is None or order.status in status_set)
                and (route_id is None or order.route_id == route_id)
            ]

    def save_order(self, order: Order, expected_status: OrderStatus | None = None) -> Order:
        with self._lock:
            if expected_status is not None:
                current = self._orders.get(order.order_id)
                if current is None:
                    raise NotFoundError(f"Pedido {order.order_id} no encontrado")
                if current.status is not expected_status:
                    raise InvalidTransitionError("Pedido", order.order_id, current.status.value, "save")
            self._orders[order.order_id] = copy.deepcopy(order)
            return copy.deepcopy(order)

    def list_warehouses(self, active_only: bool = True) -> list[Warehouse]:
        with self._lock:
            return [
                copy.deepcopy(warehouse)
                for warehouse in self._warehouses.values()
                if warehouse.active or not active_only
            ]

    def get_warehouse(self, name: str) -> Warehouse:
        with self._lock:
            try:
                return copy.deepcopy(self._warehouses[name])
            except KeyError as exc:
                raise NotFoundError(f"Bodega {name} no encontrada") from exc

    def list_trucks(self, warehouse_id=None, status=None, active_only=True) -> list[Truck]:
        with self._lock:
            return [
                copy.deepcopy(truck)
                for truck in sorted(self._trucks.values(), key=lambda item: item.code)
                if (warehouse_id is None or truck.warehouse_id == warehouse_id)
                and (status is None or truck.status is status)
                and (truck.active or not active_only)
            ]

    def get_truck(self, truck_id: int) -> Truck:
        with self._lock:
            try:
                return copy.deepcopy(self._trucks[truck_id])
            except KeyError as exc:
                raise NotFoundError(f"Camión {truck_id} no encontrado") from exc

    def get_route(self, route_id: int) -> Route:
        with self._lock:
            try:
                return copy.deepcopy(self._routes[route_id])
            except KeyError as exc:
                raise NotFoundError(f"Ruta {route_id} no encontrada") from exc

    def list_routes(self, truck_ids=None, statuses=None, date_from=None, date_to=None) -> list[Route]:
        truck_set = set(truck_ids) if truck_ids is not None else None
        status_set = set(statuses) if statuses is not None else None
        with self._lock:
            return [
                copy.deepcopy(route)
                for route in sorted(self._routes.values(), key=lambda item: item.route_id)
                if (truck_set is None or route.truck_id in truck_set)
                and (status_set is None or route.status in status_set)
                and (date_from is None or route.scheduled_date >= date_from)
                and (date_to is None or route.scheduled_date <= date_to)
            ]

    def list_products(self) -> list[Product]:
        with self._lock:
            return [copy.deepcopy(product) for product in self._products.values()]

    def apply(self, work: UnitOfWork) -> Optional[Route]:
        with self._lock:
            for order in work.orders:
                if order.order_id not in self._orders:
                    raise NotFoundError(f"Pedido {order.order_id} no encontrado")
            for truck in work.trucks:
                if truck.truck_id not in self._trucks:
                    raise NotFoundError(f"Camión {truck.truck_id} no encontrado")
            if work.route is not None and not work.new_route and work.route.route_id not in self._routes:
                raise NotFoundError(f"Ruta {work.route.route_id} no encontrada")

            stored_route: Optional[Route] = None
            if work.route is not None:
                route = copy.deepcopy(work.route)
                if work.new_route:
                    route.route_id = self._next_route_id
                    self._next_route_id += 1
                self._routes[route.route_id] = route
                stored_route = copy.deepcopy(route)
            for order in work.orders:
                stored = copy.deepcopy(order)
                if work.new_route and stored_route is not None:
                    stored.route_id = stored_route.route_id
                self._orders[stored.order_id] = stored
            for truck in work.trucks:
                self._trucks[truck.truck_id] = copy.deepcopy(truck)
            return stored_route
