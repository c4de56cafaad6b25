from pathlib import Path

import pytest
from openpyxl import Workbook

from src.dispatch.data.catalog_repository import get_catalog, load_catalog_file
from src.dispatch.persistence.repository import InMemoryRepository

from conftest import make_products


@pytest.fixture(autouse=True)
def clear_catalog_cache():
    load_catalog_file.cache_clear()
    yield
    load_catalog_file.cache_clear()


def _write_workbook(path: Path, rows: list[tuple]) -> Path:
    wb = Workbook()
    sheet = wb.active
    for row in rows:
        sheet.append(row)
    wb.save(path)
    return path


def test_workbook_catalog_is_loaded_when_database_is_empty(tmp_path: Path) -> None:
    source = _write_workbook(
        tmp_path / "productos.xlsx",
        [
            ("Producto", "VolumenM3", "PesoKg", "Categoria"),
            ("Nevera  No Frost", 1.2, 70, "Electrodomésticos"),
            ("Microondas", "0,05", None, None),
            ("Sin volumen", None, 3, None),
        ],
    )

    catalog = get_catalog(InMemoryRepository(), source=source)

    assert set(catalog) == {"Nevera No Frost", "Microondas"}
    assert catalog["Nevera No Frost"].unit_weight_kg == 70.0
    assert catalog["Microondas"].unit_volume_m3 == 0.05
    assert catalog["Microondas"].category is None


def test_database_catalog_takes_precedence(tmp_path: Path) -> None:
    source = _write_workbook(tmp_path / "productos.xlsx", [("Producto", "VolumenM3"), ("Nevera", 9.9)])

    catalog = get_catalog(InMemoryRepository(products=make_products()), source=source)

    assert catalog["Nevera"].unit_volume_m3 == 1.2


def test_missing_workbook_yields_empty_catalog(tmp_path: Path) -> None:
    assert get_catalog(None, source=tmp_path / "missing.xlsx") == {}


def test_workbook_without_volume_column_is_rejected(tmp_path: Path) -> None:
    source = _write_workbook(tmp_path / "productos.xlsx", [("Producto", "Peso"), ("Nevera", 60)])

    with pytest.raises(ValueError):
        load_catalog_file(source)
