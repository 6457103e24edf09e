"""
Пакетный импорт продукции из Excel.

Первая строка листа является заголовком и пропускается. Столбцы:
наименование, материал, тип продукции, минимальная стоимость, артикул.
Каждая строка импортируется отдельно: ошибочная строка пропускается
и учитывается в отчёте, остальные продолжают загружаться.
"""
import decimal
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Sequence

import pandas as pd
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import repository, schemas
from .database import Database
from .errors import RepositoryError

logger = logging.getLogger("app.importer")

MIN_COLUMNS = 5


class RowError(ValueError):
    pass


@dataclass
class ImportReport:
    imported: int = 0
    failed: int = 0


def read_xlsx(path, **kwargs) -> pd.DataFrame:
    return pd.read_excel(path, dtype=str, engine="openpyxl", **kwargs)


def normalize_cell(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str) and pd.isna(value):
        return ""
    return str(value).strip()


def to_decimal_ru(value: Any) -> decimal.Decimal:
    """'1 234,50' -> Decimal('1234.50'); RowError для пустого или нечислового значения."""
    cleaned = normalize_cell(value).replace(" ", "").replace("\xa0", "").replace(",", ".")
    if not cleaned:
        raise RowError("empty number")
    try:
        number = decimal.Decimal(cleaned)
    except decimal.InvalidOperation as exc:
        raise RowError(f"not a number: {value!r}") from exc
    if not number.is_finite():
        raise RowError(f"not a number: {value!r}")
    return number


def trim_row(cells: Sequence[Any]) -> List[str]:
    """Нормализует ячейки и отбрасывает пустые ячейки в конце строки."""
    row = [normalize_cell(cell) for cell in cells]
    while row and not row[-1]:
        row.pop()
    return row


def parse_row(db: Session, cells: Sequence[Any]) -> schemas.ProductCreate:
    row = trim_row(cells)
    if len(row) < MIN_COLUMNS:
        raise RowError(f"expected at least {MIN_COLUMNS} columns, got {len(row)}")

    name, material_name, type_name, raw_price, article = row[:MIN_COLUMNS]
    if not name:
        raise RowError("empty product name")

    price = to_decimal_ru(raw_price)
    if price < 0:
        raise RowError(f"negative price: {raw_price!r}")

    material_id = repository.find_material_id(db, material_name)
    if material_id is None:
        raise RowError(f"unknown material: {material_name!r}")

    type_id = repository.find_product_type_id(db, type_name)
    if type_id is None:
        raise RowError(f"unknown product type: {type_name!r}")

    return schemas.ProductCreate(
        product_name=name,
        material_id=material_id,
        type_id=type_id,
        min_price=price,
        article=article,
    )


def import_rows(db: Session, rows: Iterable[Sequence[Any]]) -> ImportReport:
    """
    Импортирует строки данных (без заголовка). Нумерация строк в логах
    совпадает с номерами строк листа (заголовок в строке 1).
    """
    report = ImportReport()
    for line_no, cells in enumerate(rows, start=2):
        try:
            data = parse_row(db, cells)
            repository.create_product_with_workshops(db, data, [])
        except (RowError, RepositoryError, ValidationError) as exc:
            logger.warning("Row %s skipped: %s", line_no, exc)
            report.failed += 1
            continue
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Row %s skipped: %s", line_no, exc)
            report.failed += 1
            continue
        report.imported += 1
    return report


def read_workbook_rows(path: Path) -> List[List[Any]]:
    df = read_xlsx(path, header=None)
    rows = df.values.tolist()
    # первая строка: заголовок
    return rows[1:]


def import_workbook(database: Database, path: Path) -> ImportReport:
    rows = read_workbook_rows(path)
    logger.info("Read %s data rows from %s", len(rows), path)
    db = database.session()
    try:
        return import_rows(db, rows)
    finally:
        db.close()
