"""Product catalog loader with database-first approach, falling back to an Excel workbook."""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Optional

from openpyxl import load_workbook

from ..config import settings
from ..models.domain import Product
from ..persistence.repository import Repository

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"Producto", "VolumenM3"}


def _normalize_product_name(name: str) -> str:
    return " ".join(str(name).split())


def _coerce_float(value: object) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "."))
    except ValueError as exc:
        raise ValueError(f"Unable to parse float from value '{value}'") from exc


@functools.lru_cache(maxsize=1)
def load_catalog_file(source: Optional[Path] = None) -> tuple[Product, ...]:
    """Load products from the catalog workbook (columns Producto, VolumenM3, PesoKg, Categoria)."""
    workbook_path = source or settings.product_catalog_file
    if not workbook_path.exists():
        raise FileNotFoundError(f"Product catalog workbook not found: {workbook_path}")

    wb = load_workbook(workbook_path, data_only=True, read_only=True)
    try:
        sheet = wb.active
        rows = sheet.iter_rows(min_row=1, values_only=True)
        header = next(rows, None)
        if header is None:
            raise ValueError(f"Product catalog workbook '{workbook_path}' is empty.")

        header_map = {name: idx for idx, name in enumerate(header) if name}
        missing_columns = REQUIRED_COLUMNS - set(header_map)
        if missing_columns:
            raise ValueError(f"Product catalog workbook missing columns: {', '.join(sorted(missing_columns))}")

        products: list[Product] = []
        for row in rows:
            name = row[header_map["Producto"]]
            volume = _coerce_float(row[header_map["VolumenM3"]])
            if not name or volume is None:
                continue
            weight = _coerce_float(row[header_map["PesoKg"]]) if "PesoKg" in header_map else None
            category = row[header_map["Categoria"]] if "Categoria" in header_map else None
            products.append(
                Product(
                    name=_normalize_product_name(name),
                    unit_volume_m3=volume,
                    unit_weight_kg=weight,
                    category=str(category).strip() if category else None,
                )
            )
        return tuple(products)
    finally:
        wb.close()


def get_catalog(repository: Repository | None = None, source: Optional[Path] = None) -> dict[str, Product]:
    """Active products keyed by name, from the database first and the workbook otherwise.

    A missing catalog is not fatal: every product then uses the default unit volume.
    """
    products: list[Product] = []
    if repository is not None:
        try:
            products = [product for product in repository.list_products() if product.active]
        except Exception as exc:
            logger.warning(f"Failed to load product catalog from database, falling back to file: {exc}")
            products = []
    if not products:
        try:
            products = list(load_catalog_file(source))
        except FileNotFoundError as exc:
            logger.warning(f"{exc}. All products will use the default unit volume.")
            products = []
    return {_normalize_product_name(product.name): product for product in products}
