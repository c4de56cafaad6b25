"""Prompt construction for the LLM-backed route optimizer."""

from __future__ import annotations

from .models import RouteRequest

RESPONSE_SCHEMA = """{
  "rutas_optimizadas": [
    {
      "camion_codigo": "string",
      "pedidos": [
        {"id": number, "orden": number, "hora_estimada": "HH:MM"}
      ],
      "resumen": {
        "total_pedidos": number,
        "volumen_utilizado": number,
        "porcentaje_capacidad": number,
        "distancia_km": number,
        "tiempo_horas": number
      }
    }
  ],
  "pedidos_no_asignados": [number],
  "razon": "string"
}"""


def build_prompt(request: RouteRequest) -> str:
    orders = "\n".join(
        f"ID: {order.order_id}, Cliente: {order.customer_name}, Dirección: {order.address}, "
        f"Ciudad: {order.city or 'N/A'}, Volumen: {order.volume_m3}m³, Prioridad: {order.priority_level}, "
        f"Fecha límite: {order.deadline.isoformat() if order.deadline else 'N/A'}"
        for order in request.orders
    )
    trucks = "\n".join(f"Código: {truck.code}, Capacidad: {truck.capacity_m3}m³" for truck in request.trucks)

    return f"""OPTIMIZA rutas de entrega para {request.warehouse} el {request.planning_date.isoformat()}:

RESTRICCIONES:
- Horario operativo: {request.operating_start} - {request.operating_end}
- Tiempo descarga por pedido: 15-30 min según tamaño
- Base de operaciones: {request.base_address}
- El volumen de los pedidos de una ruta NUNCA puede superar la capacidad del camión
- Usa únicamente los IDs de pedido y códigos de camión listados

PEDIDOS PENDIENTES:
{orders}

CAMIONES DISPONIBLES:
{trucks}

OBJETIVOS (en orden de prioridad):
1. Entregar todos los pedidos críticos (prioridad 3)
2. No exceder fechas límite de entrega
3. Maximizar utilización de capacidad (80-95% óptimo)
4. Minimizar distancia total recorrida
5. Balancear carga entre camiones

Todo pedido que no quede en una ruta debe aparecer en "pedidos_no_asignados".

RESPONDE SOLO EN JSON con esta estructura exacta:
{RESPONSE_SCHEMA}"""
