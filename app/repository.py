import logging
from typing import Iterable, List, Optional

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import (
    NothingDeletedError,
    ProductCreateError,
    ProductDeleteError,
    TransactionCommitError,
    WorkshopLinkError,
)

logger = logging.getLogger("app.repository")


def _cause(exc: SQLAlchemyError) -> str:
    """Сообщение драйвера СУБД без обёртки SQLAlchemy."""
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc).strip()


# =========================================================
# Справочники
# =========================================================

def list_materials(db: Session) -> List[models.Material]:
    return db.query(models.Material).order_by(models.Material.name).all()


def list_product_types(db: Session) -> List[models.ProductType]:
    return db.query(models.ProductType).order_by(models.ProductType.name).all()


def list_workshops(db: Session) -> List[models.Workshop]:
    return db.query(models.Workshop).order_by(models.Workshop.name).all()


def find_material_id(db: Session, name: str) -> Optional[int]:
    """Точное совпадение названия без учёта регистра."""
    return (
        db.query(models.Material.id)
        .filter(func.lower(models.Material.name) == name.lower())
        .order_by(models.Material.id)
        .limit(1)
        .scalar()
    )


def find_product_type_id(db: Session, name: str) -> Optional[int]:
    return (
        db.query(models.ProductType.id)
        .filter(func.lower(models.ProductType.name) == name.lower())
        .order_by(models.ProductType.id)
        .limit(1)
        .scalar()
    )


# =========================================================
# Продукция со временем изготовления
# =========================================================

def _products_with_time_query(db: Session):
    return (
        db.query(
            models.Product.id.label("id"),
            models.Product.name.label("product_name"),
            models.Material.name.label("material_name"),
            models.ProductType.name.label("type_name"),
            models.Product.min_price.label("min_price"),
            models.Product.article.label("article"),
            func.coalesce(func.sum(models.ProductWorkshop.production_time), 0).label(
                "total_production_time"
            ),
        )
        .join(models.Material, models.Product.material_id == models.Material.id)
        .join(models.ProductType, models.Product.type_id == models.ProductType.id)
        .outerjoin(
            models.ProductWorkshop,
            models.ProductWorkshop.product_id == models.Product.id,
        )
        .group_by(
            models.Product.id,
            models.Product.name,
            models.Material.name,
            models.ProductType.name,
            models.Product.min_price,
            models.Product.article,
        )
    )


def _to_product_with_time(row) -> schemas.ProductWithTime:
    return schemas.ProductWithTime(
        id=row.id,
        product_name=row.product_name,
        material_name=row.material_name,
        type_name=row.type_name,
        min_price=float(row.min_price or 0),
        article=row.article or "",
        total_production_time=float(row.total_production_time or 0),
    )


def list_products_with_time(db: Session) -> List[schemas.ProductWithTime]:
    """
    Все продукты с названиями материала и типа и суммарным временем
    изготовления по всем цехам. Продукт без цехов получает время 0.
    Порядок: по возрастанию id.
    """
    rows = _products_with_time_query(db).order_by(models.Product.id).all()
    return [_to_product_with_time(row) for row in rows]


def get_product_with_time(db: Session, product_id: int) -> Optional[schemas.ProductWithTime]:
    """Один продукт по id; None, если такого продукта нет."""
    row = _products_with_time_query(db).filter(models.Product.id == product_id).first()
    if row is None:
        return None
    return _to_product_with_time(row)


# =========================================================
# Создание продукции
# =========================================================

def _product_from_input(data: schemas.ProductCreate) -> models.Product:
    return models.Product(
        name=data.product_name,
        material_id=data.material_id,
        type_id=data.type_id,
        min_price=data.min_price,
        article=data.article,
    )


def create_product(db: Session, data: schemas.ProductCreate) -> int:
    """Создаёт продукт без цехов и возвращает его id."""
    return create_product_with_workshops(db, data, [])


def create_product_with_workshops(
    db: Session,
    data: schemas.ProductCreate,
    workshops: Iterable[schemas.WorkshopTimeIn],
) -> int:
    """
    Создаёт продукт и его связи с цехами в одной транзакции.

    Либо сохраняются продукт и все переданные связи, либо ничего.
    При любой ошибке сессия откатывается до возврата управления:
    - ProductCreateError: не удалось вставить продукт
      (несуществующий материал/тип, нарушение ограничений);
    - WorkshopLinkError: не удалось добавить связь с цехом
      (повтор цеха, несуществующий цех), содержит workshop_id;
    - TransactionCommitError: ошибка фиксации транзакции.
    """
    product = _product_from_input(data)
    try:
        db.add(product)
        db.flush()
    except SQLAlchemyError as exc:
        db.rollback()
        raise ProductCreateError(_cause(exc)) from exc

    product_id = product.id

    for item in workshops:
        link = models.ProductWorkshop(
            product_id=product_id,
            workshop_id=item.workshop_id,
            production_time=item.production_time,
        )
        try:
            db.add(link)
            db.flush()
        except SQLAlchemyError as exc:
            db.rollback()
            raise WorkshopLinkError(item.workshop_id, _cause(exc)) from exc

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise TransactionCommitError(_cause(exc)) from exc

    logger.info("Product %s created", product_id)
    return product_id


# =========================================================
# Удаление продукции
# =========================================================

def delete_product(db: Session, product_id: int) -> None:
    """
    Удаляет продукт; связи с цехами удаляет СУБД (ON DELETE CASCADE).

    Проверка количества удалённых строк выполняется раньше проверки
    ошибки выполнения: если запрос упал и ничего не удалил,
    вызывающий получает NothingDeletedError.
    """
    rowcount = 0
    error: Optional[SQLAlchemyError] = None
    try:
        result = db.execute(
            delete(models.Product)
            .where(models.Product.id == product_id)
            .execution_options(synchronize_session=False)
        )
        rowcount = result.rowcount
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        error = exc

    if rowcount == 0:
        raise NothingDeletedError(product_id) from error
    if error is not None:
        raise ProductDeleteError(product_id, _cause(error)) from error

    logger.info("Product %s deleted", product_id)
