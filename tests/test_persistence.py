from dataclasses import replace
from datetime import date

import pytest

from src.dispatch.errors import InvalidTransitionError, NotFoundError
from src.dispatch.models.domain import OrderStatus, Route, TruckStatus
from src.dispatch.persistence.repository import InMemoryRepository, UnitOfWork

from conftest import make_order, make_trucks


def test_reads_return_copies(repository: InMemoryRepository) -> None:
    repository.save_order(make_order(1))

    order = repository.get_order(1)
    order.status = OrderStatus.DELIVERED

    assert repository.get_order(1).status is OrderStatus.PENDING


def test_apply_inserts_route_and_links_orders(repository: InMemoryRepository) -> None:
    repository.save_order(make_order(1))
    order = replace(repository.get_order(1), status=OrderStatus.ASSIGNED)
    truck = replace(repository.get_truck(11), status=TruckStatus.EN_ROUTE)

    stored = repository.apply(
        UnitOfWork(route=Route(0, 11, date(2024, 6, 3)), new_route=True, orders=[order], trucks=[truck])
    )

    assert stored.route_id == 1
    assert repository.get_order(1).route_id == 1
    assert repository.get_truck(11).status is TruckStatus.EN_ROUTE


def test_apply_writes_nothing_when_a_record_is_missing(repository: InMemoryRepository) -> None:
    repository.save_order(make_order(1))
    order = replace(repository.get_order(1), status=OrderStatus.ASSIGNED)
    ghost_truck = replace(make_trucks()[0], truck_id=999)

    with pytest.raises(NotFoundError):
        repository.apply(
            UnitOfWork(route=Route(0, 11, date(2024, 6, 3)), new_route=True, orders=[order], trucks=[ghost_truck])
        )

    assert repository.get_order(1).status is OrderStatus.PENDING
    assert repository.list_routes() == []


def test_list_filters(repository: InMemoryRepository) -> None:
    repository.save_order(make_order(1))
    repository.save_order(make_order(2, warehouse="Huila"))
    repository.save_order(make_order(3, status=OrderStatus.ASSIGNED, route_id=4))

    assert [order.order_id for order in repository.list_orders(warehouse="Antioquia")] == [1, 3]
    assert [order.order_id for order in repository.list_orders(statuses=[OrderStatus.ASSIGNED])] == [3]
    assert [order.order_id for order in repository.list_orders(route_id=4)] == [3]
    assert [truck.code for truck in repository.list_trucks(warehouse_id=1)] == ["ANT-001", "ANT-002"]
    assert [truck.truck_id for truck in repository.list_trucks(warehouse_id=2)] == [21]
    with pytest.raises(NotFoundError):
        repository.get_warehouse("Cundinamarca")


def test_conditional_save_refuses_orders_that_moved_on(repository: InMemoryRepository) -> None:
    repository.save_order(make_order(1, status=OrderStatus.ASSIGNED, route_id=3))
    stale = make_order(1, warehouse="Huila")

    with pytest.raises(InvalidTransitionError):
        repository.save_order(stale, expected_status=OrderStatus.PENDING)
    with pytest.raises(NotFoundError):
        repository.save_order(make_order(2), expected_status=OrderStatus.PENDING)

    stored = repository.get_order(1)
    assert stored.status is OrderStatus.ASSIGNED
    assert stored.warehouse == "Antioquia"
