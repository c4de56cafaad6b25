from datetime import date, datetime

from src.dispatch.models.domain import OrderStatus, Route, RouteStatus
from src.dispatch.persistence.repository import InMemoryRepository
from src.dispatch.services.analytics.efficiency import efficiency_report, week_bounds

from conftest import make_order, make_trucks, make_warehouses


def test_week_runs_sunday_to_saturday() -> None:
    assert week_bounds(date(2024, 6, 5)) == (date(2024, 6, 2), date(2024, 6, 8))
    assert week_bounds(date(2024, 6, 2)) == (date(2024, 6, 2), date(2024, 6, 8))
    assert week_bounds(date(2024, 6, 8)) == (date(2024, 6, 2), date(2024, 6, 8))


def test_efficiency_report_per_warehouse() -> None:
    created = datetime(2024, 6, 3, 10, 0)
    routes = [
        Route(1, 11, date(2024, 6, 4), RouteStatus.COMPLETED, total_distance_km=40.0, estimated_hours=4.0, volume_m3=8.0),
        Route(2, 12, date(2024, 6, 6), RouteStatus.COMPLETED, total_distance_km=20.0, estimated_hours=2.0, volume_m3=4.0),
    ]
    orders = [
        make_order(1, status=OrderStatus.DELIVERED, route_id=1, created_at=created),
        make_order(2, status=OrderStatus.DELIVERED, route_id=1, created_at=created),
        make_order(3, status=OrderStatus.DELIVERED, route_id=2, created_at=created),
        make_order(4, status=OrderStatus.FAILED, route_id=2, created_at=created),
        # Created the previous week, not counted.
        make_order(5, status=OrderStatus.DELIVERED, route_id=1, created_at=datetime(2024, 5, 30)),
    ]
    repository = InMemoryRepository(
        orders=orders,
        warehouses=make_warehouses(),
        trucks=make_trucks(),
        routes=routes,
    )

    report = efficiency_report(repository, reference=date(2024, 6, 5))

    assert report.week == "2024-W23"
    assert report.warehouses_analyzed == 3
    antioquia = report.by_warehouse["Antioquia"]
    assert antioquia.delivered == 3
    assert antioquia.on_time == 2
    assert antioquia.punctuality_pct == 66.7
    assert antioquia.km_per_order == 20.0
    assert antioquia.truck_utilization_pct == 40.0
    assert antioquia.avg_route_hours == 3.0
    assert antioquia.completed_routes == 2
    assert report.total_delivered == 3
    assert any("Antioquia" in alert and "tarde" in alert for alert in report.alerts)
    assert any("Antioquia" in alert and "utilización baja" in alert for alert in report.alerts)
    assert report.by_warehouse["Huila"].punctuality_pct == 100.0
