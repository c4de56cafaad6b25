"""Order intake: resolve warehouse, volume, deadline and priority for a new order."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Mapping

from ...config import settings
from ...errors import ConfigurationError, InvalidTransitionError, NotFoundError, UnassignableOrderError
from ...models.domain import Order, OrderStatus, Priority, Product, Warehouse
from ...persistence.repository import Repository
from ..capacity.ledger import available_capacity, volume_of, weight_of
from ..locks import KeyedLocks
from ..warehouses.resolver import compute_deadline, resolve_warehouse
from .priority import PriorityPolicy, RandomPriorityPolicy

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IntakeResult:
    order: Order
    city: str
    warehouse: str
    volume_m3: float
    deadline: date
    priority: Priority
    available_capacity_m3: float
    capacity_sufficient: bool


def _warehouse_record(repository: Repository, name: str) -> Warehouse | None:
    try:
        return repository.get_warehouse(name)
    except NotFoundError:
        logger.warning(f"Warehouse '{name}' not found in storage, using static lead time table")
        return None


def intake_order(
    order: Order,
    repository: Repository,
    catalog: Mapping[str, Product],
    policy: PriorityPolicy | None = None,
    today: date | None = None,
    locks: KeyedLocks | None = None,
) -> IntakeResult:
    """Resolve and persist the logistics fields of a pending order.

    Routing is not triggered here; the order stays ``pendiente`` until a
    dispatch run picks it up. The stored order is re-read under the
    warehouse lock that route commits take, and the write only lands while
    it is still pending.
    """
    if order.status is not OrderStatus.PENDING:
        raise InvalidTransitionError("Pedido", order.order_id, order.status.value, "intake")

    policy = policy or RandomPriorityPolicy()
    received_on = today or date.today()
    locks = locks or KeyedLocks()

    try:
        city, warehouse_name = resolve_warehouse(order.address, order.city)
        record = _warehouse_record(repository, warehouse_name)
    except ConfigurationError as exc:
        logger.error(f"Order {order.order_id} could not be resolved: {exc}")
        raise UnassignableOrderError(order.order_id, str(exc)) from exc

    lead_time_source = record or warehouse_name
    if record is None:
        record = Warehouse(
            warehouse_id=0,
            name=warehouse_name,
            department=warehouse_name,
            base_address="",
            capacity_m3=settings.default_warehouse_capacity_m3,
            max_delivery_days=None,
        )

    with locks.hold(("warehouse", record.warehouse_id)):
        current = repository.get_order(order.order_id)
        if current.status is not OrderStatus.PENDING:
            raise InvalidTransitionError("Pedido", current.order_id, current.status.value, "intake")

        try:
            deadline = current.deadline or compute_deadline(lead_time_source, received_on)
        except ConfigurationError as exc:
            logger.error(f"Order {order.order_id} has no usable delivery lead time: {exc}")
            raise UnassignableOrderError(order.order_id, str(exc)) from exc
        volume = volume_of(current.items, catalog)
        weight = weight_of(current.items, catalog)
        priority = current.priority or policy.assign(current)

        resolved = replace(
            current,
            city=city,
            warehouse=warehouse_name,
            volume_m3=volume,
            weight_kg=weight,
            deadline=deadline,
            priority=priority,
        )

        others = [
            existing
            for existing in repository.list_orders(warehouse=warehouse_name)
            if existing.order_id != order.order_id
        ]
        available = available_capacity(record, others)

        saved = repository.save_order(resolved, expected_status=OrderStatus.PENDING)

    logger.info(
        f"Order {order.order_id} resolved to {warehouse_name} ({city}): "
        f"{volume} m3, deadline {deadline.isoformat()}, priority {priority.value}"
    )
    if available < volume:
        logger.warning(
            f"Warehouse {warehouse_name} short on capacity for order {order.order_id}: "
            f"{available} m3 available, {volume} m3 required"
        )
    return IntakeResult(
        order=saved,
        city=city,
        warehouse=warehouse_name,
        volume_m3=volume,
        deadline=deadline,
        priority=priority,
        available_capacity_m3=available,
        capacity_sufficient=available >= volume,
    )
