"""Supabase-backed repository for pedidos, bodegas, camiones, rutas_entrega and productos_volumen."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Iterable, Optional

from supabase import Client

from ..config import settings
from ..errors import InvalidTransitionError, NotFoundError, PersistenceError
from ..models.domain import (
    DeliveryStop,
    Order,
    OrderLine,
    OrderStatus,
    Priority,
    Product,
    Route,
    RouteStatus,
    Truck,
    TruckStatus,
    Warehouse,
)
from .repository import Repository, UnitOfWork

logger = logging.getLogger(__name__)

ORDERS_TABLE = "pedidos"
WAREHOUSES_TABLE = "bodegas"
TRUCKS_TABLE = "camiones"
ROUTES_TABLE = "rutas_entrega"
PRODUCTS_TABLE = "productos_volumen"


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _float(value: Any, default: float = 0.0) -> float:
    return float(value) if value is not None else default


def _int_or_none(value: Any) -> Optional[int]:
    return int(value) if value is not None else None


def order_from_row(row: dict[str, Any]) -> Order:
    items = []
    for item in row.get("items") or []:
        if not isinstance(item, dict):
            continue
        product = item.get("producto") or item.get("nombre") or ""
        items.append(OrderLine(product=str(product).strip(), quantity=_float(item.get("cantidad"), 0.0)))
    return Order(
        order_id=int(row["id"]),
        customer_name=row.get("nombre_cliente") or "",
        address=row.get("direccion_entrega") or "",
        items=items,
        city=row.get("ciudad_entrega"),
        status=OrderStatus(row.get("estado") or OrderStatus.PENDING.value),
        volume_m3=row.get("volumen_total_m3"),
        weight_kg=row.get("peso_total_kg"),
        priority=Priority.from_level(row.get("prioridad")),
        deadline=_parse_date(row.get("fecha_limite_entrega")),
        warehouse=row.get("bodega_asignada"),
        route_id=row.get("ruta_entrega_id"),
        notes=row.get("observaciones_logistica"),
        created_at=_parse_datetime(row.get("fecha_creacion")),
    )


def order_to_row(order: Order) -> dict[str, Any]:
    """Fields the engine owns; customer data written by the intake channel is left alone."""
    return {
        "ciudad_entrega": order.city,
        "estado": order.status.value,
        "volumen_total_m3": order.volume_m3,
        "peso_total_kg": order.weight_kg,
        "prioridad": order.priority.level if order.priority else None,
        "fecha_limite_entrega": order.deadline.isoformat() if order.deadline else None,
        "bodega_asignada": order.warehouse,
        "ruta_entrega_id": order.route_id,
        "observaciones_logistica": order.notes,
    }


def warehouse_from_row(row: dict[str, Any]) -> Warehouse:
    capacity = row.get("capacidad_total_m3")
    return Warehouse(
        warehouse_id=int(row["id"]),
        name=row["nombre"],
        department=row.get("departamento") or row["nombre"],
        base_address=row.get("direccion_base") or "",
        capacity_m3=_float(capacity, settings.default_warehouse_capacity_m3),
        max_delivery_days=_int_or_none(row.get("max_dias_entrega")),
        active=row.get("activo") is not False,
    )


def truck_from_row(row: dict[str, Any]) -> Truck:
    return Truck(
        truck_id=int(row["id"]),
        code=row["codigo"],
        warehouse_id=int(row["bodega_id"]),
        capacity_m3=_float(row.get("capacidad_maxima_m3")),
        status=TruckStatus(row.get("estado") or TruckStatus.AVAILABLE.value),
        driver_name=row.get("conductor_nombre"),
        driver_phone=row.get("conductor_telefono"),
        active=row.get("activo") is not False,
    )


def stop_from_json(item: dict[str, Any]) -> DeliveryStop:
    order_id = item.get("id", item.get("pedido_id"))
    return DeliveryStop(
        order_id=int(order_id),
        sequence=int(item.get("orden") or 0),
        eta=str(item.get("hora_estimada") or "N/A"),
        completed=bool(item.get("completado", False)),
    )


def stop_to_json(stop: DeliveryStop) -> dict[str, Any]:
    return {"id": stop.order_id, "orden": stop.sequence, "hora_estimada": stop.eta, "completado": stop.completed}


def route_from_row(row: dict[str, Any]) -> Route:
    stops = [stop_from_json(item) for item in row.get("ruta_optimizada") or [] if isinstance(item, dict)]
    return Route(
        route_id=int(row["id"]),
        truck_id=int(row["camion_id"]),
        scheduled_date=_parse_date(row["fecha_programada"]),
        status=RouteStatus(row.get("estado") or RouteStatus.PLANNED.value),
        stops=sorted(stops, key=lambda stop: stop.sequence),
        total_distance_km=_float(row.get("distancia_total_km")),
        estimated_hours=_float(row.get("tiempo_estimado_horas")),
        volume_m3=_float(row.get("volumen_total_m3")),
        started_at=row.get("hora_inicio"),
        finished_at=row.get("hora_fin_estimada"),
        notes=row.get("observaciones"),
    )


def route_to_row(route: Route) -> dict[str, Any]:
    return {
        "camion_id": route.truck_id,
        "fecha_programada": route.scheduled_date.isoformat(),
        "estado": route.status.value,
        "hora_inicio": route.started_at,
        "hora_fin_estimada": route.finished_at,
        "distancia_total_km": route.total_distance_km,
        "tiempo_estimado_horas": route.estimated_hours,
        "volumen_total_m3": route.volume_m3,
        "ruta_optimizada": [stop_to_json(stop) for stop in route.stops],
        "observaciones": route.notes,
    }


def product_from_row(row: dict[str, Any]) -> Product:
    return Product(
        name=row["nombre_producto"],
        unit_volume_m3=_float(row.get("volumen_unitario_m3")),
        unit_weight_kg=row.get("peso_unitario_kg"),
        category=row.get("categoria"),
        active=row.get("activo") is not False,
    )


class SupabaseRepository(Repository):
    def __init__(self, client: Client) -> None:
        self.client = client

    def _single(self, table: str, column: str, value: Any, label: str) -> dict[str, Any]:
        response = self.client.table(table).select("*").eq(column, value).limit(1).execute()
        if not response.data:
            raise NotFoundError(f"{label} {value} no encontrado")
        return response.data[0]

    def get_order(self, order_id: int) -> Order:
        return order_from_row(self._single(ORDERS_TABLE, "id", order_id, "Pedido"))

    def list_orders(self, warehouse=None, statuses=None, route_id=None) -> list[Order]:
        query = self.client.table(ORDERS_TABLE).select("*")
        if warehouse is not None:
            query = query.eq("bodega_asignada", warehouse)
        if statuses is not None:
            query = query.in_("estado", [status.value for status in statuses])
        if route_id is not None:
            query = query.eq("ruta_entrega_id", route_id)
        response = query.order("id").execute()
        return [order_from_row(row) for row in response.data or []]

    def save_order(self, order: Order, expected_status: OrderStatus | None = None) -> Order:
        query = self.client.table(ORDERS_TABLE).update(order_to_row(order)).eq("id", order.order_id)
        if expected_status is not None:
            query = query.eq("estado", expected_status.value)
        response = query.execute()
        if not response.data:
            if expected_status is not None:
                current = self.get_order(order.order_id)
                raise InvalidTransitionError("Pedido", order.order_id, current.status.value, "save")
            raise NotFoundError(f"Pedido {order.order_id} no encontrado")
        return order_from_row(response.data[0])

    def list_warehouses(self, active_only: bool = True) -> list[Warehouse]:
        query = self.client.table(WAREHOUSES_TABLE).select("*")
        if active_only:
            query = query.eq("activo", True)
        response = query.order("nombre").execute()
        return [warehouse_from_row(row) for row in response.data or []]

    def get_warehouse(self, name: str) -> Warehouse:
        return warehouse_from_row(self._single(WAREHOUSES_TABLE, "nombre", name, "Bodega"))

    def list_trucks(self, warehouse_id=None, status=None, active_only=True) -> list[Truck]:
        query = self.client.table(TRUCKS_TABLE).select("*")
        if warehouse_id is not None:
            query = query.eq("bodega_id", warehouse_id)
        if status is not None:
            query = query.eq("estado", status.value)
        if active_only:
            query = query.eq("activo", True)
        response = query.order("codigo").execute()
        return [truck_from_row(row) for row in response.data or []]

    def get_truck(self, truck_id: int) -> Truck:
        return truck_from_row(self._single(TRUCKS_TABLE, "id", truck_id, "Camión"))

    def get_route(self, route_id: int) -> Route:
        return route_from_row(self._single(ROUTES_TABLE, "id", route_id, "Ruta"))

    def list_routes(self, truck_ids=None, statuses=None, date_from=None, date_to=None) -> list[Route]:
        query = self.client.table(ROUTES_TABLE).select("*")
        if truck_ids is not None:
            truck_ids = list(truck_ids)
            if not truck_ids:
                return []
            query = query.in_("camion_id", truck_ids)
        if statuses is not None:
            query = query.in_("estado", [status.value for status in statuses])
        if date_from is not None:
            query = query.gte("fecha_programada", date_from.isoformat())
        if date_to is not None:
            query = query.lte("fecha_programada", date_to.isoformat())
        response = query.order("id").execute()
        return [route_from_row(row) for row in response.data or []]

    def list_products(self) -> list[Product]:
        response = self.client.table(PRODUCTS_TABLE).select("*").eq("activo", True).execute()
        return [product_from_row(row) for row in response.data or []]

    def apply(self, work: UnitOfWork) -> Optional[Route]:
        """Write the unit of work in order: route, orders, trucks.

        PostgREST has no multi-statement transaction, so a failure part way
        restores the rows already written from the pre-change copies.
        """
        inserted_route_id: Optional[int] = None
        route_written = False
        written_orders: list[int] = []
        written_trucks: list[int] = []
        stored_route: Optional[Route] = None
        try:
            if work.route is not None:
                row = route_to_row(work.route)
                if work.new_route:
                    response = self.client.table(ROUTES_TABLE).insert(row).execute()
                    stored_route = route_from_row(response.data[0])
                    inserted_route_id = stored_route.route_id
                else:
                    response = self.client.table(ROUTES_TABLE).update(row).eq("id", work.route.route_id).execute()
                    stored_route = route_from_row(response.data[0]) if response.data else work.route
                    route_written = True
            for order in work.orders:
                row = order_to_row(order)
                if inserted_route_id is not None:
                    row["ruta_entrega_id"] = inserted_route_id
                self.client.table(ORDERS_TABLE).update(row).eq("id", order.order_id).execute()
                written_orders.append(order.order_id)
            for truck in work.trucks:
                self.client.table(TRUCKS_TABLE).update({"estado": truck.status.value}).eq("id", truck.truck_id).execute()
                written_trucks.append(truck.truck_id)
            return stored_route
        except Exception as exc:
            logger.error(f"Unit of work failed, restoring previous state: {exc}")
            self._compensate(work, inserted_route_id, route_written, written_orders, written_trucks)
            raise PersistenceError(f"Failed to persist changes: {exc}") from exc

    def _compensate(
        self,
        work: UnitOfWork,
        inserted_route_id: Optional[int],
        route_written: bool,
        written_orders: Iterable[int],
        written_trucks: Iterable[int],
    ) -> None:
        previous_orders = {order.order_id: order for order in work.previous_orders}
        previous_trucks = {truck.truck_id: truck for truck in work.previous_trucks}
        try:
            for order_id in written_orders:
                if order_id in previous_orders:
                    self.client.table(ORDERS_TABLE).update(order_to_row(previous_orders[order_id])).eq(
                        "id", order_id
                    ).execute()
            for truck_id in written_trucks:
                if truck_id in previous_trucks:
                    self.client.table(TRUCKS_TABLE).update({"estado": previous_trucks[truck_id].status.value}).eq(
                        "id", truck_id
                    ).execute()
            if inserted_route_id is not None:
                # The route never became visible as committed; removing it is the rollback.
                self.client.table(ROUTES_TABLE).delete().eq("id", inserted_route_id).execute()
            elif route_written and work.previous_route is not None:
                self.client.table(ROUTES_TABLE).update(route_to_row(work.previous_route)).eq(
                    "id", work.previous_route.route_id
                ).execute()
        except Exception as exc:
            logger.exception(f"Compensation failed, manual review required: {exc}")
