"""Delivery route API schemas. Field names follow the rutas_entrega table."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import DispatchMode, Route
from ..services.routes.lifecycle import RouteStatistics, TransitionResult


class StopModel(BaseModel):
    id: int
    orden: int = Field(..., ge=1)
    hora_estimada: str
    completado: bool = False


class RouteModel(BaseModel):
    id: int
    camion_id: int
    fecha_programada: date
    estado: str
    hora_inicio: Optional[str] = None
    hora_fin_estimada: Optional[str] = None
    distancia_total_km: float
    tiempo_estimado_horas: float
    volumen_total_m3: float
    ruta_optimizada: List[StopModel]
    observaciones: Optional[str] = None

    @classmethod
    def from_domain(cls, route: Route) -> "RouteModel":
        return cls(
            id=route.route_id,
            camion_id=route.truck_id,
            fecha_programada=route.scheduled_date,
            estado=route.status.value,
            hora_inicio=route.started_at,
            hora_fin_estimada=route.finished_at,
            distancia_total_km=route.total_distance_km,
            tiempo_estimado_horas=route.estimated_hours,
            volumen_total_m3=route.volume_m3,
            ruta_optimizada=[
                StopModel(id=stop.order_id, orden=stop.sequence, hora_estimada=stop.eta, completado=stop.completed)
                for stop in route.stops
            ],
            observaciones=route.notes,
        )


class StatisticsModel(BaseModel):
    total_pedidos: int
    entregados: int
    fallidos: int
    pendientes: int

    @classmethod
    def from_domain(cls, stats: RouteStatistics) -> "StatisticsModel":
        return cls(
            total_pedidos=stats.total_orders,
            entregados=stats.delivered,
            fallidos=stats.failed,
            pendientes=stats.pending,
        )


class RouteDetailResponse(BaseModel):
    ruta: RouteModel
    estadisticas: StatisticsModel


class TransitionResponse(BaseModel):
    success: bool = True
    accion: str
    cambio: bool
    pedido_id: Optional[int] = None
    ruta: RouteModel
    estadisticas: StatisticsModel

    @classmethod
    def from_result(cls, result: TransitionResult) -> "TransitionResponse":
        return cls(
            accion=result.action,
            cambio=result.changed,
            pedido_id=result.order_id,
            ruta=RouteModel.from_domain(result.route),
            estadisticas=StatisticsModel.from_domain(result.statistics),
        )


class CommitStopModel(BaseModel):
    id: int
    orden: int = Field(..., ge=1)
    hora_estimada: str = "N/A"


class CommitRouteRequest(BaseModel):
    camion_id: int
    pedidos: List[CommitStopModel] = Field(..., min_length=1)
    modo_despacho: DispatchMode = DispatchMode.IMMEDIATE
    fecha_programada: Optional[date] = None
    distancia_km: float = Field(0.0, ge=0)
    tiempo_horas: float = Field(0.0, ge=0)
    observaciones: Optional[str] = None


class NotesRequest(BaseModel):
    observaciones: Optional[str] = None


class FailedDeliveryRequest(BaseModel):
    motivo: str = Field(..., description="Reason the delivery could not be completed.")
