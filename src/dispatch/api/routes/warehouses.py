"""Warehouse and capacity endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status

from ...dependencies import get_repository
from ...persistence.repository import Repository
from ...schemas.warehouses import CapacityModel, WarehouseModel
from ...services.capacity.ledger import warehouse_capacity
from ..errors import to_http_exception

router = APIRouter(prefix="/warehouses", tags=["warehouses"])


@router.get("", response_model=List[WarehouseModel], status_code=status.HTTP_200_OK)
def list_warehouses(
    include_inactive: bool = Query(default=False),
    repository: Repository = Depends(get_repository),
) -> List[WarehouseModel]:
    try:
        warehouses = repository.list_warehouses(active_only=not include_inactive)
    except Exception as exc:
        raise to_http_exception(exc, "list warehouses") from exc
    return [WarehouseModel.from_domain(warehouse) for warehouse in warehouses]


@router.get("/{name}/capacity", response_model=CapacityModel, status_code=status.HTTP_200_OK)
def get_capacity(name: str, repository: Repository = Depends(get_repository)) -> CapacityModel:
    """Volume committed by pending and assigned orders against the warehouse capacity."""
    try:
        warehouse = repository.get_warehouse(name)
        snapshot = warehouse_capacity(warehouse, repository.list_orders(warehouse=name))
    except Exception as exc:
        raise to_http_exception(exc, f"compute capacity for {name}") from exc
    return CapacityModel(
        bodega=snapshot.warehouse,
        capacidad_total_m3=snapshot.total_m3,
        volumen_comprometido_m3=snapshot.committed_m3,
        capacidad_disponible_m3=snapshot.available_m3,
        porcentaje_utilizacion=snapshot.utilization_pct,
        sobre_capacidad=snapshot.over_capacity,
    )
