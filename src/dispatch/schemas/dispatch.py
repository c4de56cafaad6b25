"""Dispatch run, preview and approval schemas."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import DeliveryStop, DispatchMode
from ..services.dispatch.orchestrator import DispatchPreview, DispatchReport
from ..services.optimization.models import OptimizedRoute, RouteSummary


class UnassignedModel(BaseModel):
    id: int
    motivo: str


def unassigned_models(reasons: dict[int, str]) -> List[UnassignedModel]:
    return [UnassignedModel(id=order_id, motivo=reason) for order_id, reason in reasons.items()]


class DispatchRunRequest(BaseModel):
    bodega: Optional[str] = Field(None, description="Single warehouse to dispatch; all active ones when omitted.")
    fecha: Optional[date] = None
    modo_despacho: DispatchMode = DispatchMode.IMMEDIATE


class DispatchReportModel(BaseModel):
    bodega: str
    estado: str
    pedidos_considerados: int
    rutas_creadas: List[int]
    pedidos_asignados: List[int]
    pedidos_no_asignados: List[UnassignedModel]
    razon: str
    intentos: int

    @classmethod
    def from_domain(cls, report: DispatchReport) -> "DispatchReportModel":
        return cls(
            bodega=report.warehouse,
            estado=report.status,
            pedidos_considerados=report.orders_considered,
            rutas_creadas=list(report.routes_created),
            pedidos_asignados=list(report.orders_assigned),
            pedidos_no_asignados=unassigned_models(report.unassigned),
            razon=report.reason,
            intentos=report.attempts,
        )


class DispatchRunResponse(BaseModel):
    fecha: date
    reportes: List[DispatchReportModel]


class PlannedStopModel(BaseModel):
    id: int
    orden: int = Field(..., ge=1)
    hora_estimada: str


class RouteSummaryModel(BaseModel):
    total_pedidos: int
    volumen_utilizado: float
    porcentaje_capacidad: float
    distancia_km: float
    tiempo_horas: float


class OptimizedRouteModel(BaseModel):
    camion_codigo: str
    pedidos: List[PlannedStopModel] = Field(..., min_length=1)
    resumen: RouteSummaryModel

    @classmethod
    def from_domain(cls, route: OptimizedRoute) -> "OptimizedRouteModel":
        return cls(
            camion_codigo=route.truck_code,
            pedidos=[
                PlannedStopModel(id=stop.order_id, orden=stop.sequence, hora_estimada=stop.eta)
                for stop in route.stops
            ],
            resumen=RouteSummaryModel(
                total_pedidos=route.summary.total_orders,
                volumen_utilizado=route.summary.volume_used_m3,
                porcentaje_capacidad=route.summary.capacity_pct,
                distancia_km=route.summary.distance_km,
                tiempo_horas=route.summary.hours,
            ),
        )

    def to_domain(self) -> OptimizedRoute:
        return OptimizedRoute(
            truck_code=self.camion_codigo,
            stops=sorted(
                (DeliveryStop(order_id=stop.id, sequence=stop.orden, eta=stop.hora_estimada) for stop in self.pedidos),
                key=lambda stop: stop.sequence,
            ),
            summary=RouteSummary(
                total_orders=self.resumen.total_pedidos,
                volume_used_m3=self.resumen.volumen_utilizado,
                capacity_pct=self.resumen.porcentaje_capacidad,
                distance_km=self.resumen.distancia_km,
                hours=self.resumen.tiempo_horas,
            ),
        )


class RejectedRouteModel(BaseModel):
    camion_codigo: str
    pedidos: List[int]
    motivo: str


class PreviewResponse(BaseModel):
    bodega: str
    rutas_optimizadas: List[OptimizedRouteModel]
    pedidos_no_asignados: List[UnassignedModel]
    rutas_rechazadas: List[RejectedRouteModel]
    razon: str
    pedidos_considerados: int
    intentos: int

    @classmethod
    def from_domain(cls, preview: DispatchPreview) -> "PreviewResponse":
        response = preview.response
        return cls(
            bodega=preview.warehouse,
            rutas_optimizadas=[OptimizedRouteModel.from_domain(route) for route in response.routes],
            pedidos_no_asignados=unassigned_models(response.unassigned_reasons),
            rutas_rechazadas=[
                RejectedRouteModel(camion_codigo=item.truck_code, pedidos=list(item.order_ids), motivo=item.reason)
                for item in response.rejected
            ],
            razon=response.reason,
            pedidos_considerados=preview.orders_considered,
            intentos=preview.attempts,
        )


class ApproveRequest(BaseModel):
    bodega: str
    fecha: Optional[date] = None
    rutas_optimizadas: List[OptimizedRouteModel] = Field(..., min_length=1)
    modo_despacho: DispatchMode = DispatchMode.SCHEDULED
