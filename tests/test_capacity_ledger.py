from src.dispatch.models.domain import OrderLine, OrderStatus, Product, Truck, Warehouse
from src.dispatch.services.capacity.ledger import (
    DEFAULT_UNIT_VOLUME_M3,
    available_capacity,
    committed_volume,
    fits_truck,
    route_volume,
    volume_of,
    warehouse_capacity,
    weight_of,
)

from conftest import make_order


def test_single_fridge_uses_catalog_unit_volume(catalog) -> None:
    assert volume_of([OrderLine("Nevera", 1)], catalog) == 1.2


def test_volume_sums_quantities_across_lines(catalog) -> None:
    lines = [OrderLine("Nevera", 2), OrderLine("Televisor", 3)]

    assert volume_of(lines, catalog) == 3.3


def test_unknown_and_inactive_products_use_default_volume(catalog) -> None:
    catalog = dict(catalog)
    catalog["Horno"] = Product("Horno", 0.4, active=False)
    lines = [OrderLine("Sofá", 2), OrderLine("Horno", 1)]

    assert volume_of(lines, catalog) == 3 * DEFAULT_UNIT_VOLUME_M3


def test_weight_is_none_without_catalogued_weights(catalog) -> None:
    assert weight_of([OrderLine("Lavadora", 1), OrderLine("Sofá", 1)], catalog) is None
    assert weight_of([OrderLine("Nevera", 1), OrderLine("Televisor", 2)], catalog) == 90.0


def test_only_pending_and_assigned_orders_consume_capacity() -> None:
    orders = [
        make_order(1, volume=2.0),
        make_order(2, volume=3.0, status=OrderStatus.ASSIGNED),
        make_order(3, volume=5.0, status=OrderStatus.EN_ROUTE),
        make_order(4, volume=7.0, status=OrderStatus.DELIVERED),
        make_order(5, volume=1.0, warehouse="Huila"),
        make_order(6, volume=None),
    ]

    assert committed_volume("Antioquia", orders) == 5.0


def test_available_capacity_may_go_negative() -> None:
    warehouse = Warehouse(1, "Antioquia", "Antioquia", "", 4.0, 1)
    orders = [make_order(1, volume=3.0), make_order(2, volume=2.5)]

    assert available_capacity(warehouse, orders) == -1.5
    snapshot = warehouse_capacity(warehouse, orders)
    assert snapshot.over_capacity is True
    assert snapshot.utilization_pct == 137.5


def test_truck_fit_compares_route_volume_with_capacity() -> None:
    truck = Truck(1, "ANT-001", 1, 10.0)
    orders = {1: make_order(1, volume=6.0), 2: make_order(2, volume=4.0), 3: make_order(3, volume=1.0)}

    assert route_volume([1, 2], orders) == 10.0
    assert fits_truck(truck, route_volume([1, 2], orders)) is True
    assert fits_truck(truck, route_volume([1, 2, 3], orders)) is False


def test_route_volume_treats_unresolved_orders_as_empty() -> None:
    orders = {1: make_order(1, volume=None), 2: make_order(2, volume=2.5)}

    assert route_volume([1, 2], orders) == 2.5


def test_product_names_are_matched_after_whitespace_normalization(catalog) -> None:
    assert volume_of([OrderLine("Nevera ", 1)], catalog) == 1.2
    assert volume_of([OrderLine("  Televisor", 2)], catalog) == 0.6
    assert weight_of([OrderLine("Nevera\t", 2)], catalog) == 130.0
