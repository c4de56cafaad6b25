"""Per-warehouse batch dispatch: pending orders -> optimizer -> committed routes."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Sequence

from ...config import settings
from ...errors import OptimizerResponseError, OptimizerUnavailableError, PersistenceError
from ...models.domain import DispatchMode, OrderStatus, TruckStatus, Warehouse
from ...persistence.repository import Repository
from ..locks import KeyedLocks
from ..optimization.broker import OptimizationBroker, build_request
from ..optimization.models import OptimizedRoute, RouteResponse
from ..routes.lifecycle import RouteLifecycle
from ..warehouses.resolver import add_business_days, lead_days_for

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchReport:
    warehouse: str
    status: str
    orders_considered: int = 0
    routes_created: list[int] = field(default_factory=list)
    orders_assigned: list[int] = field(default_factory=list)
    unassigned: dict[int, str] = field(default_factory=dict)
    reason: str = ""
    attempts: int = 0


@dataclass(slots=True)
class DispatchPreview:
    warehouse: str
    response: RouteResponse
    trucks_by_code: dict[str, int]
    orders_considered: int = 0
    attempts: int = 1


class DailyDispatchOrchestrator:
    def __init__(
        self,
        repository: Repository,
        broker: OptimizationBroker,
        lifecycle: RouteLifecycle,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.repository = repository
        self.broker = broker
        self.lifecycle = lifecycle
        self.max_retries = max_retries if max_retries is not None else settings.optimizer_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.optimizer_backoff_seconds
        self._sleep = sleep
        self._warehouse_locks = locks or KeyedLocks()

    def run_for_warehouse(
        self,
        warehouse: Warehouse,
        as_of: date | None = None,
        dispatch_mode: DispatchMode = DispatchMode.IMMEDIATE,
    ) -> DispatchReport:
        """Plan and commit today's routes for one warehouse.

        Runs for the same warehouse are serialised. Only ``pendiente`` orders
        are ever sent, so re-running after a successful run commits nothing new.
        """
        planning_date = as_of or date.today()
        with self._warehouse_locks.hold(("dispatch", warehouse.name)):
            preview = self._plan(warehouse, planning_date)
            if isinstance(preview, DispatchReport):
                return preview
            return self._commit(warehouse, planning_date, preview, dispatch_mode)

    def preview(self, warehouse: Warehouse, as_of: date | None = None) -> DispatchPreview | DispatchReport:
        """Run the optimizer for a warehouse without committing anything."""
        with self._warehouse_locks.hold(("dispatch", warehouse.name)):
            return self._plan(warehouse, as_of or date.today())

    def approve(
        self,
        warehouse: Warehouse,
        routes: Sequence[OptimizedRoute],
        as_of: date | None = None,
        dispatch_mode: DispatchMode = DispatchMode.SCHEDULED,
    ) -> DispatchReport:
        """Commit routes previously reviewed by an operator."""
        planning_date = as_of or date.today()
        with self._warehouse_locks.hold(("dispatch", warehouse.name)):
            trucks = {truck.code: truck.truck_id for truck in self.repository.list_trucks(warehouse_id=warehouse.warehouse_id)}
            report = DispatchReport(warehouse=warehouse.name, status="ok", reason="Rutas aprobadas manualmente")
            for route in routes:
                self._commit_one(report, route, trucks, planning_date, dispatch_mode, "Ruta optimizada manualmente")
            if report.unassigned and not report.routes_created:
                report.status = "failed"
            return report

    def run_all(
        self,
        as_of: date | None = None,
        max_workers: int | None = None,
        dispatch_mode: DispatchMode = DispatchMode.IMMEDIATE,
    ) -> list[DispatchReport]:
        """Dispatch every active warehouse in parallel; warehouses share no mutable state."""
        warehouses = self.repository.list_warehouses(active_only=True)
        reports: list[DispatchReport] = []
        workers = max_workers or settings.dispatch_max_workers
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self.run_for_warehouse, warehouse, as_of, dispatch_mode): warehouse
                for warehouse in warehouses
            }
            for future in as_completed(futures):
                warehouse = futures[future]
                try:
                    reports.append(future.result())
                except Exception as exc:
                    logger.exception(f"Dispatch run failed for {warehouse.name}: {exc}")
                    reports.append(DispatchReport(warehouse=warehouse.name, status="error", reason=str(exc)))
        return sorted(reports, key=lambda report: report.warehouse)

    # -- internals ----------------------------------------------------------

    def _plan(self, warehouse: Warehouse, planning_date: date) -> DispatchPreview | DispatchReport:
        window_end = add_business_days(planning_date, lead_days_for(warehouse))
        orders = [
            order
            for order in self.repository.list_orders(warehouse=warehouse.name, statuses=[OrderStatus.PENDING])
            if order.deadline is not None and order.deadline <= window_end
        ]
        if not orders:
            logger.info(f"No pending orders for {warehouse.name}")
            return DispatchReport(warehouse=warehouse.name, status="skipped", reason="No hay pedidos pendientes")

        trucks = self.repository.list_trucks(warehouse_id=warehouse.warehouse_id, status=TruckStatus.AVAILABLE)
        if not trucks:
            logger.info(f"No available trucks for {warehouse.name}")
            reason = "No hay camiones disponibles"
            return DispatchReport(
                warehouse=warehouse.name,
                status="skipped",
                orders_considered=len(orders),
                unassigned={order.order_id: reason for order in orders},
                reason=reason,
            )

        request = build_request(warehouse, orders, trucks, planning_date)
        attempt = 0
        while True:
            attempt += 1
            try:
                response = self.broker.optimize(request)
                break
            except OptimizerUnavailableError as exc:
                if attempt > self.max_retries:
                    logger.error(f"Optimizer unavailable for {warehouse.name} after {attempt} attempts: {exc}")
                    reason = f"Optimizador no disponible: {exc}"
                    return DispatchReport(
                        warehouse=warehouse.name,
                        status="retry_exhausted",
                        orders_considered=len(orders),
                        unassigned={order.order_id: reason for order in orders},
                        reason=reason,
                        attempts=attempt,
                    )
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    f"Optimizer unavailable for {warehouse.name}, retrying in {wait_time:.1f}s "
                    f"(attempt {attempt}/{self.max_retries}): {exc}"
                )
                self._sleep(wait_time)
            except OptimizerResponseError as exc:
                logger.error(f"Optimization failed for {warehouse.name}: {exc}")
                reason = f"Optimización fallida: {exc}"
                return DispatchReport(
                    warehouse=warehouse.name,
                    status="failed",
                    orders_considered=len(orders),
                    unassigned={order.order_id: reason for order in orders},
                    reason=reason,
                    attempts=attempt,
                )

        logger.info(
            f"Optimizer proposed {len(response.routes)} valid routes for {warehouse.name} "
            f"({len(response.rejected)} rejected, {len(response.unassigned)} orders unassigned)"
        )
        return DispatchPreview(
            warehouse=warehouse.name,
            response=response,
            trucks_by_code={truck.code: truck.truck_id for truck in trucks},
            orders_considered=len(orders),
            attempts=attempt,
        )

    def _commit(
        self,
        warehouse: Warehouse,
        planning_date: date,
        preview: DispatchPreview,
        dispatch_mode: DispatchMode,
    ) -> DispatchReport:
        response = preview.response
        report = DispatchReport(
            warehouse=warehouse.name,
            status="ok",
            orders_considered=preview.orders_considered,
            unassigned=dict(response.unassigned_reasons),
            reason=response.reason,
            attempts=preview.attempts,
        )
        for route in response.routes:
            self._commit_one(
                report,
                route,
                preview.trucks_by_code,
                planning_date,
                dispatch_mode,
                f"Ruta generada automáticamente - {route.summary.total_orders} pedidos",
            )
        logger.info(
            f"Dispatch for {warehouse.name}: {len(report.routes_created)} routes, "
            f"{len(report.orders_assigned)} orders assigned, {len(report.unassigned)} unassigned"
        )
        return report

    def _commit_one(
        self,
        report: DispatchReport,
        route: OptimizedRoute,
        trucks_by_code: dict[str, int],
        planning_date: date,
        dispatch_mode: DispatchMode,
        notes: str,
    ) -> None:
        truck_id = trucks_by_code.get(route.truck_code)
        if truck_id is None:
            reason = f"Camión {route.truck_code} no pertenece a la bodega"
            report.unassigned.update({order_id: reason for order_id in route.order_ids})
            return
        try:
            stored = self.lifecycle.commit_route(
                truck_id,
                route.stops,
                dispatch_mode=dispatch_mode,
                scheduled_date=planning_date,
                distance_km=route.summary.distance_km,
                estimated_hours=route.summary.hours,
                notes=notes,
            )
        except (ValueError, LookupError, PersistenceError) as exc:
            logger.warning(f"Could not commit route for truck {route.truck_code}: {exc}")
            report.unassigned.update({order_id: f"No se pudo confirmar la ruta: {exc}" for order_id in route.order_ids})
            return
        report.routes_created.append(stored.route_id)
        report.orders_assigned.extend(route.order_ids)
