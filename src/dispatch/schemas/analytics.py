"""Weekly efficiency report schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List

from pydantic import BaseModel

from ..services.analytics.efficiency import EfficiencyReport


class WarehouseEfficiencyModel(BaseModel):
    pedidos_entregados: int
    entregas_a_tiempo: int
    puntualidad_porcentaje: float
    km_por_pedido: float
    utilizacion_camiones: float
    tiempo_promedio_ruta_horas: float
    rutas_completadas: int
    distancia_total_km: float


class EfficiencyResponse(BaseModel):
    semana: str
    periodo_inicio: date
    periodo_fin: date
    total_pedidos_entregados: int
    promedio_puntualidad: float
    bodegas_analizadas: int
    metricas_por_bodega: Dict[str, WarehouseEfficiencyModel]
    alertas: List[str]
    fecha_generacion: datetime

    @classmethod
    def from_domain(cls, report: EfficiencyReport) -> "EfficiencyResponse":
        return cls(
            semana=report.week,
            periodo_inicio=report.period_start,
            periodo_fin=report.period_end,
            total_pedidos_entregados=report.total_delivered,
            promedio_puntualidad=report.avg_punctuality_pct,
            bodegas_analizadas=report.warehouses_analyzed,
            metricas_por_bodega={
                name: WarehouseEfficiencyModel(
                    pedidos_entregados=item.delivered,
                    entregas_a_tiempo=item.on_time,
                    puntualidad_porcentaje=item.punctuality_pct,
                    km_por_pedido=item.km_per_order,
                    utilizacion_camiones=item.truck_utilization_pct,
                    tiempo_promedio_ruta_horas=item.avg_route_hours,
                    rutas_completadas=item.completed_routes,
                    distancia_total_km=item.total_distance_km,
                )
                for name, item in report.by_warehouse.items()
            },
            alertas=list(report.alerts),
            fecha_generacion=report.generated_at,
        )
