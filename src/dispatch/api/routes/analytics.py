"""Efficiency analytics endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from ...dependencies import get_repository
from ...persistence.repository import Repository
from ...schemas.analytics import EfficiencyResponse
from ...services.analytics.efficiency import efficiency_report
from ..errors import to_http_exception

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/efficiency", response_model=EfficiencyResponse, status_code=status.HTTP_200_OK)
def get_efficiency(
    fecha: date | None = Query(default=None, description="Any day of the week to report on"),
    repository: Repository = Depends(get_repository),
) -> EfficiencyResponse:
    try:
        report = efficiency_report(repository, reference=fecha)
    except Exception as exc:
        raise to_http_exception(exc, "build efficiency report") from exc
    return EfficiencyResponse.from_domain(report)
