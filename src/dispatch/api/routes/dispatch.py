"""Daily dispatch endpoints: automatic runs, manual preview and approval."""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...dependencies import get_orchestrator, get_repository
from ...persistence.repository import Repository
from ...schemas.dispatch import (
    ApproveRequest,
    DispatchReportModel,
    DispatchRunRequest,
    DispatchRunResponse,
    PreviewResponse,
    unassigned_models,
)
from ...services.dispatch.orchestrator import DailyDispatchOrchestrator, DispatchReport
from ..errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dispatch", tags=["dispatch"])

# Preview outcomes that mean the optimizer could not produce a plan.
_PREVIEW_FAILURES = {
    "retry_exhausted": status.HTTP_503_SERVICE_UNAVAILABLE,
    "failed": status.HTTP_502_BAD_GATEWAY,
}


@router.post("/run", response_model=DispatchRunResponse, status_code=status.HTTP_200_OK)
def run_dispatch(
    payload: DispatchRunRequest | None = None,
    repository: Repository = Depends(get_repository),
    orchestrator: DailyDispatchOrchestrator = Depends(get_orchestrator),
) -> DispatchRunResponse:
    """Plan and commit routes for one warehouse, or for every active warehouse."""
    payload = payload or DispatchRunRequest()
    planning_date = payload.fecha or date.today()
    try:
        if payload.bodega:
            warehouse = repository.get_warehouse(payload.bodega)
            reports = [orchestrator.run_for_warehouse(warehouse, planning_date, payload.modo_despacho)]
        else:
            reports = orchestrator.run_all(planning_date, dispatch_mode=payload.modo_despacho)
    except Exception as exc:
        raise to_http_exception(exc, "run dispatch") from exc
    return DispatchRunResponse(
        fecha=planning_date,
        reportes=[DispatchReportModel.from_domain(report) for report in reports],
    )


@router.post("/{warehouse}/preview", response_model=PreviewResponse, status_code=status.HTTP_200_OK)
def preview_dispatch(
    warehouse: str,
    fecha: date | None = Query(default=None, description="Planning date, today when omitted"),
    repository: Repository = Depends(get_repository),
    orchestrator: DailyDispatchOrchestrator = Depends(get_orchestrator),
) -> PreviewResponse:
    """Ask the optimizer for routes without committing them."""
    try:
        record = repository.get_warehouse(warehouse)
        outcome = orchestrator.preview(record, fecha or date.today())
    except Exception as exc:
        raise to_http_exception(exc, f"preview dispatch for {warehouse}") from exc

    if not isinstance(outcome, DispatchReport):
        return PreviewResponse.from_domain(outcome)
    if outcome.status in _PREVIEW_FAILURES:
        raise HTTPException(status_code=_PREVIEW_FAILURES[outcome.status], detail=outcome.reason)
    return PreviewResponse(
        bodega=outcome.warehouse,
        rutas_optimizadas=[],
        pedidos_no_asignados=unassigned_models(outcome.unassigned),
        rutas_rechazadas=[],
        razon=outcome.reason,
        pedidos_considerados=outcome.orders_considered,
        intentos=outcome.attempts,
    )


@router.post("/approve", response_model=DispatchReportModel, status_code=status.HTTP_200_OK)
def approve_dispatch(
    payload: ApproveRequest,
    repository: Repository = Depends(get_repository),
    orchestrator: DailyDispatchOrchestrator = Depends(get_orchestrator),
) -> DispatchReportModel:
    """Commit routes an operator reviewed from a preview."""
    try:
        warehouse = repository.get_warehouse(payload.bodega)
        report = orchestrator.approve(
            warehouse,
            [route.to_domain() for route in payload.rutas_optimizadas],
            payload.fecha or date.today(),
            payload.modo_despacho,
        )
    except Exception as exc:
        raise to_http_exception(exc, f"approve routes for {payload.bodega}") from exc
    logger.info(f"Approved {len(report.routes_created)} routes for {payload.bodega}")
    return DispatchReportModel.from_domain(report)
