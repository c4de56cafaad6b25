from datetime import date

import pytest

from src.dispatch.errors import InvalidTransitionError, UnassignableOrderError
from src.dispatch.models.domain import DeliveryStop, DispatchMode, OrderLine, OrderStatus, Priority
from src.dispatch.services.intake.priority import FixedPriorityPolicy, RandomPriorityPolicy
from src.dispatch.services.intake.service import intake_order
from src.dispatch.services.routes.lifecycle import RouteLifecycle
from src.dispatch.services.warehouses import resolver

from conftest import make_order

WEDNESDAY = date(2024, 6, 5)


def _new_order(order_id: int, address: str, **kwargs):
    return make_order(
        order_id,
        warehouse=None,
        volume=None,
        deadline=None,
        priority=None,
        address=address,
        **kwargs,
    )


def test_intake_resolves_warehouse_volume_and_deadline(repository, catalog) -> None:
    order = _new_order(1, "Calle 10 #20, Envigado", items=[OrderLine("Nevera", 1)])
    repository.save_order(order)

    result = intake_order(order, repository, catalog, policy=FixedPriorityPolicy(), today=WEDNESDAY)

    assert result.city == "Envigado"
    assert result.warehouse == "Antioquia"
    assert result.volume_m3 == 1.2
    assert result.deadline == date(2024, 6, 6)
    assert result.capacity_sufficient is True

    stored = repository.get_order(1)
    assert stored.status is OrderStatus.PENDING
    assert stored.warehouse == "Antioquia"
    assert stored.volume_m3 == 1.2
    assert stored.weight_kg == 65.0
    assert stored.priority is Priority.NORMAL
    assert stored.route_id is None


def test_intake_keeps_explicit_priority_and_deadline(repository, catalog) -> None:
    order = _new_order(2, "Carrera 4, Neiva")
    order.priority = Priority.CRITICAL
    order.deadline = date(2024, 6, 20)
    repository.save_order(order)

    result = intake_order(order, repository, catalog, policy=FixedPriorityPolicy(), today=WEDNESDAY)

    assert result.warehouse == "Huila"
    assert result.priority is Priority.CRITICAL
    assert result.deadline == date(2024, 6, 20)


def test_intake_reports_insufficient_capacity_without_blocking(repository, catalog) -> None:
    repository.save_order(make_order(50, warehouse="Huila", volume=499.5))
    order = _new_order(3, "Calle 1, Pitalito", items=[OrderLine("Nevera", 1)])
    repository.save_order(order)

    result = intake_order(order, repository, catalog, policy=FixedPriorityPolicy(), today=WEDNESDAY)

    assert result.available_capacity_m3 == 0.5
    assert result.capacity_sufficient is False
    assert repository.get_order(3).warehouse == "Huila"


def test_intake_rejects_orders_that_are_no_longer_pending(repository, catalog) -> None:
    order = make_order(4, status=OrderStatus.ASSIGNED)
    repository.save_order(order)

    with pytest.raises(InvalidTransitionError):
        intake_order(order, repository, catalog, today=WEDNESDAY)


def test_unresolvable_order_is_flagged_for_triage(repository, catalog, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(resolver.settings, "default_city", "Bogotá")
    order = _new_order(5, "Dirección desconocida")
    repository.save_order(order)

    with pytest.raises(UnassignableOrderError) as excinfo:
        intake_order(order, repository, catalog, today=WEDNESDAY)

    assert excinfo.value.order_id == 5
    assert repository.get_order(5).warehouse is None


def test_random_priority_policy_is_reproducible_with_seed() -> None:
    order = make_order(1)
    policy_a = RandomPriorityPolicy(0.5, seed=7)
    policy_b = RandomPriorityPolicy(0.5, seed=7)

    assert [policy_a.assign(order) for _ in range(20)] == [policy_b.assign(order) for _ in range(20)]


def test_random_priority_policy_bounds() -> None:
    order = make_order(1)

    assert RandomPriorityPolicy(0.0, seed=1).assign(order) is Priority.NORMAL
    assert RandomPriorityPolicy(1.0, seed=1).assign(order) is Priority.CRITICAL
    with pytest.raises(ValueError):
        RandomPriorityPolicy(1.5)


def test_intake_of_a_stale_copy_cannot_undo_a_route_assignment(repository, catalog) -> None:
    repository.save_order(make_order(1, warehouse="Antioquia", volume=1.2))
    lifecycle = RouteLifecycle(repository)
    stale = repository.get_order(1)
    route = lifecycle.commit_route(11, [DeliveryStop(1, 1, "09:00")], DispatchMode.IMMEDIATE)

    with pytest.raises(InvalidTransitionError):
        intake_order(stale, repository, catalog, policy=FixedPriorityPolicy(), today=WEDNESDAY, locks=lifecycle.locks)

    stored = repository.get_order(1)
    assert stored.status is OrderStatus.ASSIGNED
    assert stored.route_id == route.route_id


def test_intake_resolves_from_the_stored_order(repository, catalog) -> None:
    repository.save_order(_new_order(6, "Carrera 4, Neiva", items=[OrderLine("Televisor", 2)]))
    stale = _new_order(6, "Carrera 4, Neiva", items=[OrderLine("Nevera", 5)])

    result = intake_order(stale, repository, catalog, policy=FixedPriorityPolicy(), today=WEDNESDAY)

    assert result.volume_m3 == 0.6
    assert repository.get_order(6).volume_m3 == 0.6
