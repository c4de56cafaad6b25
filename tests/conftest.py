from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable

import pytest

from src.dispatch.errors import OptimizerUnavailableError
from src.dispatch.models.domain import (
    Order,
    OrderLine,
    OrderStatus,
    Priority,
    Product,
    Truck,
    Warehouse,
)
from src.dispatch.persistence.repository import InMemoryRepository
from src.dispatch.services.optimization.client import Optimizer

# Monday; the Antioquia window (1 business day) ends on Tuesday 2024-06-04.
PLANNING_DATE = date(2024, 6, 3)


def make_warehouses() -> list[Warehouse]:
    return [
        Warehouse(1, "Antioquia", "Antioquia", "Calle 50 #45-30, Medellín", 1000.0, 1),
        Warehouse(2, "Huila", "Huila", "Carrera 5 #10-20, Neiva", 500.0, 4),
        Warehouse(3, "Bolívar", "Bolívar", "Avenida Pedro de Heredia, Cartagena", 800.0, 4),
    ]


def make_trucks() -> list[Truck]:
    return [
        Truck(11, "ANT-001", 1, 10.0, driver_name="Carlos Pérez"),
        Truck(12, "ANT-002", 1, 20.0, driver_name="Luisa Gómez"),
        Truck(21, "HUI-001", 2, 15.0),
    ]


def make_products() -> list[Product]:
    return [
        Product("Nevera", 1.2, 65.0, "Electrodomésticos"),
        Product("Televisor", 0.3, 12.5, "Electrónica"),
        Product("Lavadora", 0.8, None, "Electrodomésticos"),
    ]


def make_order(
    order_id: int,
    warehouse: str | None = "Antioquia",
    volume: float | None = 1.0,
    status: OrderStatus = OrderStatus.PENDING,
    deadline: date | None = date(2024, 6, 4),
    priority: Priority | None = Priority.NORMAL,
    address: str = "Calle 10 #20, Medellín",
    items: list[OrderLine] | None = None,
    route_id: int | None = None,
    created_at: datetime | None = None,
) -> Order:
    return Order(
        order_id=order_id,
        customer_name=f"Cliente {order_id}",
        address=address,
        items=items if items is not None else [OrderLine("Nevera", 1)],
        city=None,
        status=status,
        volume_m3=volume,
        priority=priority,
        deadline=deadline,
        warehouse=warehouse,
        route_id=route_id,
        created_at=created_at,
    )


def optimizer_answer(*routes: tuple[str, list[int]], unassigned: list[int] | None = None, reason: str = "Rutas por cercanía") -> dict[str, Any]:
    """Raw optimizer document with one route per ``(truck_code, order_ids)`` pair."""
    return {
        "rutas_optimizadas": [
            {
                "camion_codigo": truck_code,
                "pedidos": [
                    {"id": order_id, "orden": index, "hora_estimada": f"{8 + index:02d}:00"}
                    for index, order_id in enumerate(order_ids, start=1)
                ],
                "resumen": {
                    "total_pedidos": len(order_ids),
                    "volumen_utilizado": 0.0,
                    "porcentaje_capacidad": 0.0,
                    "distancia_km": 12.5,
                    "tiempo_horas": 3.0,
                },
            }
            for truck_code, order_ids in routes
        ],
        "pedidos_no_asignados": list(unassigned or []),
        "razon": reason,
    }


class ScriptedOptimizer(Optimizer):
    """Replays answers in order; an exception instance in the script is raised instead."""

    def __init__(self, *script: Any) -> None:
        self.script = list(script)
        self.requests = []

    def optimize(self, request):
        self.requests.append(request)
        if not self.script:
            raise OptimizerUnavailableError("script exhausted")
        answer = self.script.pop(0)
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(request)
        return answer


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository(
        warehouses=make_warehouses(),
        trucks=make_trucks(),
        products=make_products(),
    )


@pytest.fixture
def catalog() -> dict[str, Product]:
    return {product.name: product for product in make_products()}


@pytest.fixture
def order_factory() -> Callable[..., Order]:
    return make_order


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2024, 6, 3, 9, 0, 0)
