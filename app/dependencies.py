from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from .database import Database


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Generator[Session, None, None]:
    # незафиксированная транзакция откатывается при закрытии сессии
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()
