from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app import models
from app.config import Settings
from app.database import Database
from app.main import create_app


@pytest.fixture(name="database")
def database_fixture():
    """Изолированная база в памяти на каждый тест"""
    database = Database("sqlite://")
    database.create_schema()

    with database.session() as session:
        _create_reference_data(session)

    yield database
    database.dispose()


def _create_reference_data(session: Session):
    """Справочники: материалы, типы продукции, цеха"""
    session.add_all([
        models.Material(id=1, name="Oak", waste_percentage=Decimal("0.80")),
        models.Material(id=2, name="Pine", waste_percentage=Decimal("0.55")),
    ])
    session.add_all([
        models.ProductType(id=1, name="Table", ratio=Decimal("2.35")),
        models.ProductType(id=2, name="Chair", ratio=Decimal("1.50")),
    ])
    session.add_all([
        models.Workshop(id=1, name="Assembly", kind="processing"),
        models.Workshop(id=2, name="Painting", kind="finishing"),
        models.Workshop(id=3, name="Packing", kind="processing"),
    ])
    session.commit()


@pytest.fixture(name="db_session")
def db_session_fixture(database: Database):
    with database.session() as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(database: Database):
    settings = Settings(CREATE_SCHEMA=False, LOG_LEVEL="WARNING")
    app = create_app(database=database, settings=settings)
    return TestClient(app)
