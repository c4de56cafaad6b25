"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_optimizer_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.optimization.client import check_health as optimizer_health_check
    return optimizer_health_check


@router.get("/health/optimizer", status_code=status.HTTP_200_OK)
def health_optimizer() -> dict:
    """Report whether the route optimizer is configured."""
    from ...config import settings

    try:
        optimizer_health_check = _get_optimizer_health_check()
        return {
            "service": "optimizer",
            "provider": settings.optimizer_provider,
            "healthy": optimizer_health_check(),
        }
    except Exception as e:
        return {"service": "optimizer", "healthy": False, "error": str(e)}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check database connection and warehouse table status."""
    from ...db.supabase import get_supabase_client

    supabase = get_supabase_client()
    if not supabase:
        return {
            "configured": False,
            "message": "Supabase not configured. Set DISPATCH_SUPABASE_URL and DISPATCH_SUPABASE_KEY environment variables.",
        }

    try:
        response = supabase.table("bodegas").select("id").execute()
        warehouses = len(response.data or [])
        return {
            "configured": True,
            "connected": True,
            "warehouses_count": warehouses,
            "message": f"Database connected. Found {warehouses} warehouses.",
        }
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
