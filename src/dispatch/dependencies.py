"""Service wiring for the API layer.

Each factory is cached so the process shares one repository and one set of
per-warehouse/per-route locks. Tests replace them through
``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends

from .api.errors import to_http_exception
from .db.supabase import get_supabase_client
from .errors import ConfigurationError
from .persistence.repository import InMemoryRepository, Repository
from .persistence.supabase_repository import SupabaseRepository
from .services.dispatch.orchestrator import DailyDispatchOrchestrator
from .services.intake.priority import PriorityPolicy, RandomPriorityPolicy
from .services.optimization.broker import OptimizationBroker
from .services.optimization.client import build_optimizer
from .services.routes.lifecycle import RouteLifecycle

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_repository() -> Repository:
    client = get_supabase_client()
    if client is None:
        logger.warning("Supabase not configured, using an empty in-memory repository")
        return InMemoryRepository()
    return SupabaseRepository(client)


@lru_cache(maxsize=1)
def get_priority_policy() -> PriorityPolicy:
    return RandomPriorityPolicy()


def get_broker() -> OptimizationBroker:
    # Built per request so a missing API key surfaces as a configuration error at call time.
    try:
        return OptimizationBroker(build_optimizer())
    except ConfigurationError as exc:
        raise to_http_exception(exc, "build optimizer") from exc


@lru_cache(maxsize=1)
def _lifecycle(repository: Repository) -> RouteLifecycle:
    return RouteLifecycle(repository)


def get_lifecycle(repository: Repository = Depends(get_repository)) -> RouteLifecycle:
    return _lifecycle(repository)


def get_orchestrator(
    repository: Repository = Depends(get_repository),
    broker: OptimizationBroker = Depends(get_broker),
    lifecycle: RouteLifecycle = Depends(get_lifecycle),
) -> DailyDispatchOrchestrator:
    return DailyDispatchOrchestrator(repository, broker, lifecycle, locks=lifecycle.locks)
