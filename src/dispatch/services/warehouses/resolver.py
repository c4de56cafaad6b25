"""City to warehouse resolution and business-day deadline calculation."""

from __future__ import annotations

import unicodedata
from datetime import date, timedelta
from typing import Mapping

from ...config import settings
from ...errors import ConfigurationError
from ...models.domain import Warehouse

CITY_TO_WAREHOUSE: dict[str, str] = {
    # Antioquia
    "Medellín": "Antioquia",
    "Envigado": "Antioquia",
    "Bello": "Antioquia",
    "Itagüí": "Antioquia",
    "Rionegro": "Antioquia",
    "Apartadó": "Antioquia",
    "Sabaneta": "Antioquia",
    "La Estrella": "Antioquia",
    # Huila
    "Neiva": "Huila",
    "Pitalito": "Huila",
    "Garzón": "Huila",
    "La Plata": "Huila",
    "Campoalegre": "Huila",
    "San Agustín": "Huila",
    # Bolívar
    "Cartagena": "Bolívar",
    "Barranquilla": "Bolívar",
    "Soledad": "Bolívar",
    "Malambo": "Bolívar",
    "Turbaco": "Bolívar",
}

# Maximum delivery lead time per warehouse, in business days.
WAREHOUSE_LEAD_DAYS: dict[str, int] = {
    "Antioquia": 1,
    "Huila": 4,
    "Bolívar": 4,
}


def _fold(text: str) -> str:
    return "".join(
        char for char in unicodedata.normalize("NFD", text.strip().lower())
        if unicodedata.category(char) != "Mn"
    )


_FOLDED_CITIES: dict[str, str] = {_fold(city): city for city in CITY_TO_WAREHOUSE}
# Longest names first so "La Estrella" wins over any shorter city it contains.
_CITIES_BY_LENGTH: tuple[str, ...] = tuple(sorted(_FOLDED_CITIES, key=lambda name: (-len(name), name)))


def detect_city(address: str | None, explicit_city: str | None = None) -> str | None:
    """Return the canonical city name for an explicit city or an address, or None."""
    if explicit_city:
        canonical = _FOLDED_CITIES.get(_fold(explicit_city))
        if canonical:
            return canonical
    if address:
        folded_address = _fold(address)
        for folded_city in _CITIES_BY_LENGTH:
            if folded_city in folded_address:
                return _FOLDED_CITIES[folded_city]
    return None


def resolve_warehouse(address: str | None, explicit_city: str | None = None) -> tuple[str, str]:
    """Map a delivery address to ``(city, warehouse)``.

    The explicit city is tried first, then a case and accent insensitive
    substring search over the address. Unknown addresses fall back to the
    configured default city.
    """
    city = detect_city(address, explicit_city)
    if city is None:
        city = detect_city(None, settings.default_city)
        if city is None:
            raise ConfigurationError(
                f"Default city '{settings.default_city}' is not present in the city table."
            )
    return city, CITY_TO_WAREHOUSE[city]


def is_business_day(day: date) -> bool:
    return day.weekday() < 5


def add_business_days(from_date: date, days: int) -> date:
    """Advance ``days`` business days from ``from_date``, skipping Saturdays and Sundays."""
    if days < 0:
        raise ValueError("Business day offset must be non-negative.")
    current = from_date
    added = 0
    while added < days:
        current += timedelta(days=1)
        if is_business_day(current):
            added += 1
    return current


def lead_days_for(warehouse: str | Warehouse, overrides: Mapping[str, int] | None = None) -> int:
    """Lead time in business days, always at least one.

    A warehouse record without a positive ``max_delivery_days`` falls back to
    the static table for its name.
    """
    if isinstance(warehouse, Warehouse):
        if warehouse.max_delivery_days is not None and warehouse.max_delivery_days >= 1:
            return warehouse.max_delivery_days
        warehouse = warehouse.name
    table = overrides if overrides is not None else WAREHOUSE_LEAD_DAYS
    try:
        days = table[warehouse]
    except KeyError as exc:
        raise ConfigurationError(f"Warehouse '{warehouse}' has no configured delivery lead time.") from exc
    if days < 1:
        raise ConfigurationError(f"Warehouse '{warehouse}' has a lead time of {days} business days.")
    return days


def compute_deadline(
    warehouse: str | Warehouse,
    from_date: date,
    overrides: Mapping[str, int] | None = None,
) -> date:
    """Delivery deadline for an order received on ``from_date``."""
    return add_business_days(from_date, lead_days_for(warehouse, overrides))
