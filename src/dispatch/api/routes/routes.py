"""Delivery route endpoints: creation, state transitions and delivery outcomes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...dependencies import get_lifecycle, get_repository
from ...models.domain import DeliveryStop
from ...persistence.repository import Repository
from ...schemas.routes import (
    CommitRouteRequest,
    FailedDeliveryRequest,
    NotesRequest,
    RouteDetailResponse,
    RouteModel,
    StatisticsModel,
    TransitionResponse,
)
from ...services.routes.lifecycle import RouteLifecycle
from ..errors import to_http_exception

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("", response_model=RouteModel, status_code=status.HTTP_201_CREATED)
def create_route(payload: CommitRouteRequest, lifecycle: RouteLifecycle = Depends(get_lifecycle)) -> RouteModel:
    """Commit a manually planned route for a truck."""
    stops = [DeliveryStop(order_id=stop.id, sequence=stop.orden, eta=stop.hora_estimada) for stop in payload.pedidos]
    try:
        route = lifecycle.commit_route(
            payload.camion_id,
            stops,
            dispatch_mode=payload.modo_despacho,
            scheduled_date=payload.fecha_programada,
            distance_km=payload.distancia_km,
            estimated_hours=payload.tiempo_horas,
            notes=payload.observaciones,
        )
    except Exception as exc:
        raise to_http_exception(exc, "create route") from exc
    return RouteModel.from_domain(route)


@router.get("/{route_id}", response_model=RouteDetailResponse, status_code=status.HTTP_200_OK)
def get_route(
    route_id: int,
    repository: Repository = Depends(get_repository),
    lifecycle: RouteLifecycle = Depends(get_lifecycle),
) -> RouteDetailResponse:
    try:
        route = repository.get_route(route_id)
        stats = lifecycle.statistics(route_id)
    except Exception as exc:
        raise to_http_exception(exc, f"load route {route_id}") from exc
    return RouteDetailResponse(ruta=RouteModel.from_domain(route), estadisticas=StatisticsModel.from_domain(stats))


@router.post("/{route_id}/start", response_model=TransitionResponse, status_code=status.HTTP_200_OK)
def start_route(route_id: int, lifecycle: RouteLifecycle = Depends(get_lifecycle)) -> TransitionResponse:
    try:
        result = lifecycle.start_route(route_id)
    except Exception as exc:
        raise to_http_exception(exc, f"start route {route_id}") from exc
    return TransitionResponse.from_result(result)


@router.post("/{route_id}/pause", response_model=TransitionResponse, status_code=status.HTTP_200_OK)
def pause_route(
    route_id: int,
    payload: NotesRequest | None = None,
    lifecycle: RouteLifecycle = Depends(get_lifecycle),
) -> TransitionResponse:
    try:
        result = lifecycle.pause_route(route_id, notes=payload.observaciones if payload else None)
    except Exception as exc:
        raise to_http_exception(exc, f"pause route {route_id}") from exc
    return TransitionResponse.from_result(result)


@router.post("/{route_id}/resume", response_model=TransitionResponse, status_code=status.HTTP_200_OK)
def resume_route(route_id: int, lifecycle: RouteLifecycle = Depends(get_lifecycle)) -> TransitionResponse:
    try:
        result = lifecycle.resume_route(route_id)
    except Exception as exc:
        raise to_http_exception(exc, f"resume route {route_id}") from exc
    return TransitionResponse.from_result(result)


@router.post("/{route_id}/finish", response_model=TransitionResponse, status_code=status.HTTP_200_OK)
def finish_route(
    route_id: int,
    payload: NotesRequest | None = None,
    lifecycle: RouteLifecycle = Depends(get_lifecycle),
) -> TransitionResponse:
    try:
        result = lifecycle.finish_route(route_id, notes=payload.observaciones if payload else None)
    except Exception as exc:
        raise to_http_exception(exc, f"finish route {route_id}") from exc
    return TransitionResponse.from_result(result)


@router.post(
    "/{route_id}/stops/{order_id}/delivered",
    response_model=TransitionResponse,
    status_code=status.HTTP_200_OK,
)
def mark_delivered(
    route_id: int,
    order_id: int,
    payload: NotesRequest | None = None,
    lifecycle: RouteLifecycle = Depends(get_lifecycle),
) -> TransitionResponse:
    try:
        result = lifecycle.mark_delivered(route_id, order_id, notes=payload.observaciones if payload else None)
    except Exception as exc:
        raise to_http_exception(exc, f"mark order {order_id} delivered") from exc
    return TransitionResponse.from_result(result)


@router.post(
    "/{route_id}/stops/{order_id}/failed",
    response_model=TransitionResponse,
    status_code=status.HTTP_200_OK,
)
def mark_failed(
    route_id: int,
    order_id: int,
    payload: FailedDeliveryRequest,
    lifecycle: RouteLifecycle = Depends(get_lifecycle),
) -> TransitionResponse:
    try:
        result = lifecycle.mark_failed(route_id, order_id, payload.motivo)
    except Exception as exc:
        raise to_http_exception(exc, f"mark order {order_id} failed") from exc
    return TransitionResponse.from_result(result)
