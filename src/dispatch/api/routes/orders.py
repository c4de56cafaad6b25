"""Order intake endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...data.catalog_repository import get_catalog
from ...dependencies import get_lifecycle, get_priority_policy, get_repository
from ...models.domain import OrderStatus
from ...persistence.repository import Repository
from ...schemas.orders import IntakeResponse, OrderModel
from ...services.intake.priority import PriorityPolicy
from ...services.intake.service import intake_order
from ...services.routes.lifecycle import RouteLifecycle
from ..errors import to_http_exception

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/{order_id}/intake", response_model=IntakeResponse, status_code=status.HTTP_200_OK)
def intake(
    order_id: int,
    repository: Repository = Depends(get_repository),
    policy: PriorityPolicy = Depends(get_priority_policy),
    lifecycle: RouteLifecycle = Depends(get_lifecycle),
) -> IntakeResponse:
    """Resolve warehouse, volume, deadline and priority for a newly created order."""
    try:
        order = repository.get_order(order_id)
        result = intake_order(
            order, repository, get_catalog(repository), policy=policy, locks=lifecycle.locks
        )
    except Exception as exc:
        raise to_http_exception(exc, f"process order {order_id}") from exc
    return IntakeResponse(
        pedido=OrderModel.from_domain(result.order),
        ciudad=result.city,
        bodega=result.warehouse,
        volumen_m3=result.volume_m3,
        fecha_limite=result.deadline,
        prioridad=result.priority.level,
        capacidad_disponible_m3=result.available_capacity_m3,
        capacidad_suficiente=result.capacity_sufficient,
    )


@router.get("", response_model=List[OrderModel], status_code=status.HTTP_200_OK)
def list_orders(
    bodega: str | None = Query(default=None, description="Optional warehouse filter"),
    estado: str | None = Query(default=None, description="Optional status filter"),
    ruta_id: int | None = Query(default=None, description="Optional route filter"),
    repository: Repository = Depends(get_repository),
) -> List[OrderModel]:
    try:
        statuses = [OrderStatus(estado)] if estado else None
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown status '{estado}'") from exc
    try:
        orders = repository.list_orders(warehouse=bodega, statuses=statuses, route_id=ruta_id)
    except Exception as exc:
        raise to_http_exception(exc, "list orders") from exc
    return [OrderModel.from_domain(order) for order in orders]
