import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import repository, schemas
from .dependencies import get_db
from .errors import NothingDeletedError, RepositoryError

logger = logging.getLogger("app.api")

router = APIRouter(prefix="/api", tags=["api"])


# =========================================================
# Справочники
# =========================================================

@router.get("/materials", response_model=List[schemas.MaterialOut])
def list_materials(db: Session = Depends(get_db)):
    return repository.list_materials(db)


@router.get("/product-types", response_model=List[schemas.ProductTypeOut])
def list_product_types(db: Session = Depends(get_db)):
    return repository.list_product_types(db)


@router.get("/workshops", response_model=List[schemas.WorkshopOut])
def list_workshops(db: Session = Depends(get_db)):
    return repository.list_workshops(db)


# =========================================================
# Продукция
# =========================================================

@router.get("/products", response_model=schemas.ProductList)
def list_products(db: Session = Depends(get_db)):
    try:
        products = repository.list_products_with_time(db)
    except SQLAlchemyError:
        logger.exception("Failed to list products")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch product list",
        )
    return schemas.ProductList(products=products, count=len(products))


@router.get("/products/{product_id}", response_model=schemas.ProductWithTime)
def get_product(product_id: int, db: Session = Depends(get_db)):
    try:
        product = repository.get_product_with_time(db, product_id)
    except SQLAlchemyError:
        logger.exception("Failed to fetch product %s", product_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch product",
        )

    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


def _read_back(db: Session, product_id: int) -> schemas.ProductWithTime:
    try:
        product = repository.get_product_with_time(db, product_id)
    except SQLAlchemyError:
        logger.exception("Failed to read back created product %s", product_id)
        product = None

    if product is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Product created, but its data could not be read back",
        )
    return product


@router.post(
    "/products",
    response_model=schemas.ProductWithTime,
    status_code=status.HTTP_201_CREATED,
)
def create_product(body: schemas.ProductCreate, db: Session = Depends(get_db)):
    try:
        product_id = repository.create_product(db, body)
    except RepositoryError as exc:
        logger.error("Failed to create product: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create product: {exc}",
        )
    return _read_back(db, product_id)


@router.post(
    "/products/with-workshops",
    response_model=schemas.ProductWithTime,
    status_code=status.HTTP_201_CREATED,
)
def create_product_with_workshops(
    body: schemas.ProductWithWorkshopsCreate,
    db: Session = Depends(get_db),
):
    """
    Создание продукта вместе с цехами в одной транзакции.
    При ошибке на любом шаге в базе не остаётся ни продукта, ни связей.
    """
    try:
        product_id = repository.create_product_with_workshops(db, body, body.workshops)
    except RepositoryError as exc:
        logger.error("Failed to create product with workshops: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create product: {exc}",
        )
    return _read_back(db, product_id)


@router.delete("/products/{product_id}", response_model=schemas.Message)
def delete_product(product_id: int, db: Session = Depends(get_db)):
    try:
        repository.delete_product(db, product_id)
    except NothingDeletedError as exc:
        logger.warning("Nothing deleted: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Product was not deleted: no such product",
        )
    except RepositoryError as exc:
        logger.error("Failed to delete product: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Database error while deleting product",
        )
    return schemas.Message(message="Deleted successfully")
