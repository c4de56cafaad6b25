"""Order API schemas. Field names follow the pedidos table."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Order


class OrderItemModel(BaseModel):
    producto: str
    cantidad: float


class OrderModel(BaseModel):
    id: int
    nombre_cliente: str
    direccion_entrega: str
    ciudad_entrega: Optional[str] = None
    estado: str
    volumen_total_m3: Optional[float] = None
    peso_total_kg: Optional[float] = None
    prioridad: Optional[int] = Field(None, description="1 normal, 3 urgente")
    fecha_limite_entrega: Optional[date] = None
    bodega_asignada: Optional[str] = None
    ruta_entrega_id: Optional[int] = None
    observaciones_logistica: Optional[str] = None
    items: List[OrderItemModel] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, order: Order) -> "OrderModel":
        return cls(
            id=order.order_id,
            nombre_cliente=order.customer_name,
            direccion_entrega=order.address,
            ciudad_entrega=order.city,
            estado=order.status.value,
            volumen_total_m3=order.volume_m3,
            peso_total_kg=order.weight_kg,
            prioridad=order.priority.level if order.priority else None,
            fecha_limite_entrega=order.deadline,
            bodega_asignada=order.warehouse,
            ruta_entrega_id=order.route_id,
            observaciones_logistica=order.notes,
            items=[OrderItemModel(producto=line.product, cantidad=line.quantity) for line in order.items],
        )


class IntakeResponse(BaseModel):
    success: bool = True
    pedido: OrderModel
    ciudad: str
    bodega: str
    volumen_m3: float
    fecha_limite: date
    prioridad: int
    capacidad_disponible_m3: float
    capacidad_suficiente: bool
