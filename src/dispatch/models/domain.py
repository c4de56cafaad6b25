"""Domain models for orders, warehouses, trucks and delivery routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    PENDING = "pendiente"
    ASSIGNED = "asignado"
    EN_ROUTE = "en_ruta"
    DELIVERED = "entregado"
    FAILED = "fallido"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.FAILED)


class RouteStatus(str, Enum):
    PLANNED = "planificada"
    IN_PROGRESS = "en_curso"
    PAUSED = "pausada"
    COMPLETED = "completada"


class TruckStatus(str, Enum):
    AVAILABLE = "disponible"
    EN_ROUTE = "en_ruta"
    PLANNED = "planificado"
    MAINTENANCE = "mantenimiento"


class Priority(str, Enum):
    NORMAL = "normal"
    CRITICAL = "critica"

    @property
    def level(self) -> int:
        """Numeric level stored in the pedidos table (1 normal, 3 urgent)."""
        return 3 if self is Priority.CRITICAL else 1

    @classmethod
    def from_level(cls, value: int | str | None) -> Optional["Priority"]:
        if value is None or value == "":
            return None
        if isinstance(value, str) and not value.strip().isdigit():
            return cls(value.strip().lower())
        return cls.CRITICAL if int(value) >= 3 else cls.NORMAL


class DispatchMode(str, Enum):
    """Whether a committed route leaves now (truck en_ruta) or is scheduled (truck planificado)."""

    IMMEDIATE = "inmediato"
    SCHEDULED = "programado"


@dataclass(slots=True)
class OrderLine:
    product: str
    quantity: float


@dataclass(slots=True)
class Order:
    """A customer delivery order as stored in the pedidos table."""

    order_id: int
    customer_name: str
    address: str
    items: list[OrderLine] = field(default_factory=list)
    city: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    volume_m3: Optional[float] = None
    weight_kg: Optional[float] = None
    priority: Optional[Priority] = None
    deadline: Optional[date] = None
    warehouse: Optional[str] = None
    route_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class Warehouse:
    """Regional dispatch node (bodega)."""

    warehouse_id: int
    name: str
    department: str
    base_address: str
    capacity_m3: float
    max_delivery_days: Optional[int]
    active: bool = True


@dataclass(slots=True)
class Truck:
    truck_id: int
    code: str
    warehouse_id: int
    capacity_m3: float
    status: TruckStatus = TruckStatus.AVAILABLE
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    active: bool = True


@dataclass(slots=True)
class Product:
    name: str
    unit_volume_m3: float
    unit_weight_kg: Optional[float] = None
    category: Optional[str] = None
    active: bool = True


@dataclass(slots=True)
class DeliveryStop:
    order_id: int
    sequence: int
    eta: str
    completed: bool = False


@dataclass(slots=True)
class Route:
    """A truck's ordered delivery plan for one operating day (rutas_entrega)."""

    route_id: int
    truck_id: int
    scheduled_date: date
    status: RouteStatus = RouteStatus.PLANNED
    stops: list[DeliveryStop] = field(default_factory=list)
    total_distance_km: float = 0.0
    estimated_hours: float = 0.0
    volume_m3: float = 0.0
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    notes: Optional[str] = None

    def stop_for(self, order_id: int) -> Optional[DeliveryStop]:
        for stop in self.stops:
            if stop.order_id == order_id:
                return stop
        return None

    @property
    def is_terminal(self) -> bool:
        return self.status is RouteStatus.COMPLETED
