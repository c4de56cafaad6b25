from datetime import date
from types import SimpleNamespace

import pytest

from src.dispatch.errors import InvalidTransitionError, NotFoundError, PersistenceError
from src.dispatch.models.domain import DeliveryStop, DispatchMode, OrderStatus, Priority, RouteStatus, TruckStatus
from src.dispatch.persistence.repository import UnitOfWork
from src.dispatch.persistence.supabase_repository import (
    SupabaseRepository,
    order_from_row,
    route_from_row,
    route_to_row,
)
from src.dispatch.services.routes.lifecycle import RouteLifecycle
from src.dispatch.services.warehouses.resolver import compute_deadline


class FakeQuery:
    """Tiny stand-in for the PostgREST query builder over a list of dict rows."""

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self.db = db
        self.table_name = table
        self.filters = []
        self.operation = "select"
        self.payload = None

    def select(self, *columns):
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) >= value)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) <= value)
        return self

    def order(self, column):
        return self

    def limit(self, count):
        return self

    def insert(self, row):
        self.operation, self.payload = "insert", row
        return self

    def update(self, row):
        self.operation, self.payload = "update", row
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def execute(self):
        self.db.calls.append((self.table_name, self.operation))
        if (self.table_name, self.operation) in self.db.fail_on:
            raise RuntimeError(f"{self.table_name} {self.operation} failed")
        rows = self.db.tables[self.table_name]
        if self.operation == "insert":
            row = dict(self.payload, id=max((item["id"] for item in rows), default=0) + 1)
            rows.append(row)
            return SimpleNamespace(data=[dict(row)])
        matched = [row for row in rows if all(check(row) for check in self.filters)]
        if self.operation == "update":
            for row in matched:
                row.update(self.payload)
        elif self.operation == "delete":
            for row in matched:
                rows.remove(row)
        return SimpleNamespace(data=[dict(row) for row in matched])


class FakeSupabase:
    def __init__(self, tables) -> None:
        self.tables = tables
        self.calls = []
        self.fail_on = set()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


def _order_row(order_id: int, **overrides) -> dict:
    row = {
        "id": order_id,
        "nombre_cliente": f"Cliente {order_id}",
        "direccion_entrega": "Calle 10 #20, Envigado",
        "items": [{"nombre": "Nevera", "cantidad": 1}],
        "ciudad_entrega": "Envigado",
        "estado": "pendiente",
        "volumen_total_m3": 1.2,
        "prioridad": 1,
        "fecha_limite_entrega": "2024-06-04",
        "bodega_asignada": "Antioquia",
        "ruta_entrega_id": None,
        "fecha_creacion": "2024-06-03T10:00:00Z",
    }
    row.update(overrides)
    return row


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase(
        {
            "pedidos": [_order_row(1), _order_row(2, prioridad=3)],
            "bodegas": [
                {
                    "id": 1,
                    "nombre": "Antioquia",
                    "departamento": "Antioquia",
                    "direccion_base": "Calle 50, Medellín",
                    "capacidad_total_m3": None,
                    "max_dias_entrega": 1,
                    "activo": True,
                }
            ],
            "camiones": [
                {"id": 11, "codigo": "ANT-001", "bodega_id": 1, "capacidad_maxima_m3": 10, "estado": "disponible", "activo": True}
            ],
            "rutas_entrega": [],
            "productos_volumen": [
                {"nombre_producto": "Nevera", "volumen_unitario_m3": 1.2, "peso_unitario_kg": 65, "activo": True}
            ],
        }
    )


def test_order_row_mapping_accepts_legacy_item_keys() -> None:
    order = order_from_row(_order_row(7, prioridad=3))

    assert order.items[0].product == "Nevera"
    assert order.priority is Priority.CRITICAL
    assert order.deadline == date(2024, 6, 4)
    assert order.created_at.year == 2024


def test_route_row_round_trip_keeps_stop_order() -> None:
    row = {
        "id": 5,
        "camion_id": 11,
        "fecha_programada": "2024-06-03",
        "estado": "en_curso",
        "ruta_optimizada": [
            {"id": 2, "orden": 2, "hora_estimada": "09:45", "completado": False},
            {"pedido_id": 1, "orden": 1, "hora_estimada": "09:00", "completado": True},
        ],
    }

    route = route_from_row(row)

    assert route.status is RouteStatus.IN_PROGRESS
    assert [stop.order_id for stop in route.stops] == [1, 2]
    assert route_to_row(route)["ruta_optimizada"][0] == {"id": 1, "orden": 1, "hora_estimada": "09:00", "completado": True}


def test_reads_map_tables_to_domain(fake_db: FakeSupabase) -> None:
    repository = SupabaseRepository(fake_db)

    assert repository.get_warehouse("Antioquia").capacity_m3 == 1000.0
    assert [order.order_id for order in repository.list_orders(warehouse="Antioquia", statuses=[OrderStatus.PENDING])] == [1, 2]
    assert repository.get_truck(11).capacity_m3 == 10.0
    assert repository.list_products()[0].unit_weight_kg == 65
    assert repository.list_routes(truck_ids=[]) == []
    with pytest.raises(NotFoundError):
        repository.get_order(99)


def test_commit_route_writes_route_orders_and_truck(fake_db: FakeSupabase) -> None:
    lifecycle = RouteLifecycle(SupabaseRepository(fake_db))

    route = lifecycle.commit_route(
        11,
        [DeliveryStop(1, 1, "09:00"), DeliveryStop(2, 2, "09:45")],
        DispatchMode.IMMEDIATE,
        scheduled_date=date(2024, 6, 3),
    )

    assert route.route_id == 1
    assert fake_db.tables["rutas_entrega"][0]["ruta_optimizada"][1]["id"] == 2
    assert {row["estado"] for row in fake_db.tables["pedidos"]} == {"asignado"}
    assert {row["ruta_entrega_id"] for row in fake_db.tables["pedidos"]} == {1}
    assert fake_db.tables["camiones"][0]["estado"] == TruckStatus.EN_ROUTE.value


def test_failed_unit_of_work_is_compensated(fake_db: FakeSupabase) -> None:
    repository = SupabaseRepository(fake_db)
    fake_db.fail_on.add(("camiones", "update"))
    lifecycle = RouteLifecycle(repository)

    with pytest.raises(PersistenceError):
        lifecycle.commit_route(11, [DeliveryStop(1, 1, "09:00")], DispatchMode.IMMEDIATE)

    assert fake_db.tables["rutas_entrega"] == []
    assert fake_db.tables["pedidos"][0]["estado"] == "pendiente"
    assert fake_db.tables["pedidos"][0]["ruta_entrega_id"] is None
    assert fake_db.tables["camiones"][0]["estado"] == "disponible"
    assert ("rutas_entrega", "delete") in fake_db.calls


def test_unit_of_work_without_route_updates_truck_only(fake_db: FakeSupabase) -> None:
    repository = SupabaseRepository(fake_db)
    truck = repository.get_truck(11)
    truck.status = TruckStatus.MAINTENANCE

    assert repository.apply(UnitOfWork(trucks=[truck])) is None
    assert fake_db.tables["camiones"][0]["estado"] == "mantenimiento"


def test_conditional_save_only_updates_pending_orders(fake_db: FakeSupabase) -> None:
    repository = SupabaseRepository(fake_db)
    fake_db.tables["pedidos"][0]["estado"] = "asignado"
    order = repository.get_order(1)
    order.status = OrderStatus.PENDING
    order.warehouse = "Huila"

    with pytest.raises(InvalidTransitionError):
        repository.save_order(order, expected_status=OrderStatus.PENDING)

    assert fake_db.tables["pedidos"][0]["estado"] == "asignado"
    assert fake_db.tables["pedidos"][0]["bodega_asignada"] == "Antioquia"
    assert repository.save_order(repository.get_order(2), expected_status=OrderStatus.PENDING).order_id == 2


def test_missing_lead_time_is_not_read_as_zero(fake_db: FakeSupabase) -> None:
    fake_db.tables["bodegas"][0]["max_dias_entrega"] = None

    warehouse = SupabaseRepository(fake_db).get_warehouse("Antioquia")

    assert warehouse.max_delivery_days is None
    assert compute_deadline(warehouse, date(2024, 6, 8)) == date(2024, 6, 10)
