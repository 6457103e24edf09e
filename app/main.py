import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import api, ui
from .config import Settings, get_settings
from .database import Database
from .log import configure_logging

BASE_DIR = Path(__file__).resolve().parent

logger = logging.getLogger("app.request")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # неверный id в пути и неверное тело запроса: 400 вместо 422
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid request data",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


def create_app(
    database: Optional[Database] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Фабрика приложения.

    Если database не передана, пул соединений создаётся при старте
    по настройкам и закрывается при остановке.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_database = getattr(app.state, "database", None) is None
        if owns_database:
            app.state.database = Database.from_settings(settings)
        if settings.CREATE_SCHEMA:
            app.state.database.create_schema()
        logger.info("Application started")
        try:
            yield
        finally:
            if owns_database:
                app.state.database.dispose()
                app.state.database = None

    app = FastAPI(title=settings.APP_TITLE, lifespan=lifespan)
    app.state.database = database

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error for %s %s", request.method, request.url.path)
            raise
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(api.router)
    app.include_router(ui.router)
    return app


app = create_app()
