"""Optimizer request/response contracts."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, List

from ...errors import OptimizerResponseError
from ...models.domain import DeliveryStop


@dataclass(slots=True)
class RequestOrder:
    order_id: int
    customer_name: str
    address: str
    city: str | None
    volume_m3: float
    priority_level: int
    deadline: date | None


@dataclass(slots=True)
class RequestTruck:
    code: str
    capacity_m3: float


@dataclass(slots=True)
class RouteRequest:
    """Snapshot sent to the optimizer for one warehouse and planning date."""

    warehouse: str
    planning_date: date
    base_address: str
    operating_start: str
    operating_end: str
    orders: List[RequestOrder]
    trucks: List[RequestTruck]

    def contract(self) -> dict[str, Any]:
        """Wire body: ``{bodega, fecha_planificacion, camiones_disponibles, pedidos_incluir}``."""
        return {
            "bodega": self.warehouse,
            "fecha_planificacion": self.planning_date.isoformat(),
            "camiones_disponibles": [truck.code for truck in self.trucks],
            "pedidos_incluir": [order.order_id for order in self.orders],
        }

    def payload(self) -> dict[str, Any]:
        """Contract plus the order/truck detail an HTTP optimizer needs to plan without a DB."""
        body = self.contract()
        body.update(
            {
                "direccion_base": self.base_address,
                "horario_operativo": {"inicio": self.operating_start, "fin": self.operating_end},
                "pedidos": [
                    {
                        "id": order.order_id,
                        "nombre_cliente": order.customer_name,
                        "direccion_entrega": order.address,
                        "ciudad_entrega": order.city,
                        "volumen_total_m3": order.volume_m3,
                        "prioridad": order.priority_level,
                        "fecha_limite_entrega": order.deadline.isoformat() if order.deadline else None,
                    }
                    for order in self.orders
                ],
                "camiones": [
                    {"codigo": truck.code, "capacidad_maxima_m3": truck.capacity_m3} for truck in self.trucks
                ],
            }
        )
        return body


@dataclass(slots=True)
class RouteSummary:
    total_orders: int
    volume_used_m3: float
    capacity_pct: float
    distance_km: float
    hours: float


@dataclass(slots=True)
class OptimizedRoute:
    truck_code: str
    stops: List[DeliveryStop]
    summary: RouteSummary

    @property
    def order_ids(self) -> list[int]:
        return [stop.order_id for stop in self.stops]


@dataclass(slots=True)
class RejectedRoute:
    truck_code: str
    order_ids: List[int]
    reason: str


@dataclass(slots=True)
class RouteResponse:
    routes: List[OptimizedRoute]
    unassigned: List[int]
    reason: str
    rejected: List[RejectedRoute] = field(default_factory=list)
    unassigned_reasons: dict[int, str] = field(default_factory=dict)


def _require(mapping: Any, key: str, context: str) -> Any:
    if not isinstance(mapping, dict):
        raise OptimizerResponseError(f"{context} must be an object")
    if key not in mapping:
        raise OptimizerResponseError(f"{context} is missing required key '{key}'")
    return mapping[key]


def _as_number(value: Any, context: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise OptimizerResponseError(f"{context} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise OptimizerResponseError(f"{context} must be finite, got {value!r}")
    return float(value)


def _as_order_id(value: Any, context: str) -> int:
    if isinstance(value, bool):
        raise OptimizerResponseError(f"{context} must be an order id, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise OptimizerResponseError(f"{context} must be an order id, got {value!r}")


def parse_response(raw: Any) -> RouteResponse:
    """Check the structural shape of an optimizer answer and convert it to typed records.

    Raises ``OptimizerResponseError`` on any missing key or wrong type; reference
    and capacity checks are left to the broker.
    """
    raw_routes = _require(raw, "rutas_optimizadas", "response")
    raw_unassigned = _require(raw, "pedidos_no_asignados", "response")
    reason = _require(raw, "razon", "response")
    if not isinstance(raw_routes, list):
        raise OptimizerResponseError("rutas_optimizadas must be a list", raw)
    if not isinstance(raw_unassigned, list):
        raise OptimizerResponseError("pedidos_no_asignados must be a list", raw)
    if not isinstance(reason, str):
        raise OptimizerResponseError("razon must be a string", raw)

    routes: list[OptimizedRoute] = []
    for index, raw_route in enumerate(raw_routes):
        context = f"rutas_optimizadas[{index}]"
        truck_code = _require(raw_route, "camion_codigo", context)
        raw_stops = _require(raw_route, "pedidos", context)
        raw_summary = _require(raw_route, "resumen", context)
        if not isinstance(truck_code, str) or not truck_code:
            raise OptimizerResponseError(f"{context}.camion_codigo must be a non-empty string", raw)
        if not isinstance(raw_stops, list):
            raise OptimizerResponseError(f"{context}.pedidos must be a list", raw)

        stops = []
        for stop_index, raw_stop in enumerate(raw_stops):
            stop_context = f"{context}.pedidos[{stop_index}]"
            eta = _require(raw_stop, "hora_estimada", stop_context)
            stops.append(
                DeliveryStop(
                    order_id=_as_order_id(_require(raw_stop, "id", stop_context), f"{stop_context}.id"),
                    sequence=int(_as_number(_require(raw_stop, "orden", stop_context), f"{stop_context}.orden")),
                    eta=str(eta),
                )
            )
        stops.sort(key=lambda stop: stop.sequence)

        summary_context = f"{context}.resumen"
        summary = RouteSummary(
            total_orders=int(_as_number(_require(raw_summary, "total_pedidos", summary_context), summary_context)),
            volume_used_m3=_as_number(_require(raw_summary, "volumen_utilizado", summary_context), summary_context),
            capacity_pct=_as_number(_require(raw_summary, "porcentaje_capacidad", summary_context), summary_context),
            distance_km=_as_number(_require(raw_summary, "distancia_km", summary_context), summary_context),
            hours=_as_number(_require(raw_summary, "tiempo_horas", summary_context), summary_context),
        )
        routes.append(OptimizedRoute(truck_code=truck_code, stops=stops, summary=summary))

    unassigned = [_as_order_id(value, "pedidos_no_asignados[]") for value in raw_unassigned]
    return RouteResponse(routes=routes, unassigned=unassigned, reason=reason)
