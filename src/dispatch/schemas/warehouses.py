"""Warehouse and capacity API schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from ..models.domain import Warehouse


class WarehouseModel(BaseModel):
    id: int
    nombre: str
    departamento: str
    direccion_base: str
    capacidad_total_m3: float
    max_dias_entrega: Optional[int] = None
    activo: bool

    @classmethod
    def from_domain(cls, warehouse: Warehouse) -> "WarehouseModel":
        return cls(
            id=warehouse.warehouse_id,
            nombre=warehouse.name,
            departamento=warehouse.department,
            direccion_base=warehouse.base_address,
            capacidad_total_m3=warehouse.capacity_m3,
            max_dias_entrega=warehouse.max_delivery_days,
            activo=warehouse.active,
        )


class CapacityModel(BaseModel):
    bodega: str
    capacidad_total_m3: float
    volumen_comprometido_m3: float
    capacidad_disponible_m3: float
    porcentaje_utilizacion: float
    sobre_capacidad: bool
