"""FastAPI application entrypoint."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import models  # noqa: F401  registers tables on Base.metadata
from app.api import api_router
from app.core.config import get_settings
from app.core.errors import InternalError, TrackerError
from app.db.base import Base
from app.db.session import engine
from app.services.scheduler import schedule_session_cleanup_job, shutdown_scheduler, start_scheduler

settings = get_settings()
logger = logging.getLogger(__name__)
logging.getLogger("app").setLevel(settings.log_level.upper())


@asynccontextmanager
async def lifespan(_: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    start_scheduler()
    schedule_session_cleanup_job()
    try:
        yield
    finally:
        shutdown_scheduler()


def _field_names(exc: RequestValidationError) -> list[str]:
    names: list[str] = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        name = ".".join(loc) or "body"
        if name not in names:
            names.append(name)
    return names


def register_exception_handlers(application: FastAPI) -> None:
    """Render every failure as JSON with a ``message`` field."""

    @application.exception_handler(TrackerError)
    async def _handle_tracker_error(_: Request, exc: TrackerError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @application.exception_handler(RequestValidationError)
    async def _handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        fields = _field_names(exc)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": f"Missing or invalid fields: {', '.join(fields)}", "fields": fields},
        )

    @application.exception_handler(StarletteHTTPException)
    async def _handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @application.exception_handler(SQLAlchemyError)
    async def _handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_payload())


def create_app() -> FastAPI:
    application = FastAPI(title=settings.app_name, lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(application)
    application.include_router(api_router)

    @application.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
