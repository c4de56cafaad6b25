from datetime import date

import pytest

from src.dispatch.errors import ConfigurationError
from src.dispatch.models.domain import Warehouse
from src.dispatch.services.warehouses import resolver
from src.dispatch.services.warehouses.resolver import (
    add_business_days,
    compute_deadline,
    detect_city,
    lead_days_for,
    resolve_warehouse,
)


def test_address_in_envigado_resolves_to_antioquia_next_business_day() -> None:
    city, warehouse = resolve_warehouse("Calle 10 #20, Envigado")

    assert city == "Envigado"
    assert warehouse == "Antioquia"
    # Wednesday -> Thursday
    assert compute_deadline(warehouse, date(2024, 6, 5)) == date(2024, 6, 6)


def test_explicit_city_wins_over_address() -> None:
    city, warehouse = resolve_warehouse("Calle 10 #20, Envigado", explicit_city="Neiva")

    assert (city, warehouse) == ("Neiva", "Huila")


def test_city_detection_ignores_accents_and_case() -> None:
    assert detect_city("cra 3 # 4-5, MEDELLIN") == "Medellín"
    assert detect_city("Barrio Centro, itagui") == "Itagüí"
    assert detect_city(None, explicit_city="garzon") == "Garzón"


def test_longer_city_name_matches_before_shorter_one() -> None:
    assert detect_city("Vereda El Pino, La Estrella") == "La Estrella"


def test_unknown_city_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(resolver.settings, "default_city", "Cartagena")

    assert detect_city("Avenida Siempre Viva 742, Springfield") is None
    assert resolve_warehouse("Avenida Siempre Viva 742, Springfield") == ("Cartagena", "Bolívar")


def test_unmapped_default_city_is_a_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(resolver.settings, "default_city", "Bogotá")

    with pytest.raises(ConfigurationError):
        resolve_warehouse("Sin dirección conocida")


def test_business_days_skip_weekends() -> None:
    friday = date(2024, 6, 7)

    assert add_business_days(friday, 1) == date(2024, 6, 10)
    assert add_business_days(friday, 4) == date(2024, 6, 13)
    assert add_business_days(friday, 0) == friday


def test_orders_received_on_weekend_count_from_monday() -> None:
    saturday = date(2024, 6, 8)

    assert compute_deadline("Antioquia", saturday) == date(2024, 6, 10)
    assert compute_deadline("Huila", saturday) == date(2024, 6, 13)


def test_negative_business_day_offset_is_rejected() -> None:
    with pytest.raises(ValueError):
        add_business_days(date(2024, 6, 3), -1)


def test_lead_days_come_from_warehouse_record_or_table() -> None:
    record = Warehouse(9, "Antioquia", "Antioquia", "", 1000.0, 2)

    assert lead_days_for(record) == 2
    assert lead_days_for("Bolívar") == 4
    assert lead_days_for("Nariño", overrides={"Nariño": 6}) == 6
    with pytest.raises(ConfigurationError):
        lead_days_for("Nariño")


@pytest.mark.parametrize(
    "warehouse",
    [
        Warehouse(1, "Antioquia", "Antioquia", "", 1000.0, 0),
        Warehouse(1, "Antioquia", "Antioquia", "", 1000.0, None),
        Warehouse(2, "Huila", "Huila", "", 500.0, -3),
        Warehouse(3, "Bolívar", "Bolívar", "", 800.0, 2),
        "Antioquia",
        "Huila",
    ],
)
@pytest.mark.parametrize(
    "received_on",
    [date(2024, 6, 7), date(2024, 6, 8), date(2024, 6, 9), date(2024, 6, 10)],
)
def test_deadline_is_a_later_business_day(warehouse, received_on: date) -> None:
    deadline = compute_deadline(warehouse, received_on)

    assert deadline > received_on
    assert deadline.weekday() < 5


def test_missing_lead_time_falls_back_to_table() -> None:
    record = Warehouse(1, "Antioquia", "Antioquia", "", 1000.0, 0)

    assert lead_days_for(record) == 1
    assert compute_deadline(record, date(2024, 6, 8)) == date(2024, 6, 10)


@pytest.mark.parametrize("days", [0, -1])
def test_non_positive_lead_time_without_fallback_is_rejected(days: int) -> None:
    record = Warehouse(7, "Nariño", "Nariño", "", 300.0, days)

    with pytest.raises(ConfigurationError):
        lead_days_for(record)
    with pytest.raises(ConfigurationError):
        compute_deadline("Nariño", date(2024, 6, 3), overrides={"Nariño": days})
