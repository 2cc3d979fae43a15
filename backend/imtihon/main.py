"""ASGI entry point for the exam session engine."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

import imtihon.models  # noqa: F401
from imtihon.api.v1.router import api_router
from imtihon.common.request_id import RequestIDMiddleware
from imtihon.core.config import settings
from imtihon.core.errors import (
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from imtihon.core.logging import get_logger, setup_logging
from imtihon.db.base import Base
from imtihon.db.engine import engine
from imtihon.jobs.scheduler import start_expiry_sweeper, stop_expiry_sweeper

API_VERSION = "1.0.0"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # Production schema is owned by the DBA
    if settings.ENV in ("dev", "test"):
        Base.metadata.create_all(bind=engine)
    app.state.expiry_sweeper = start_expiry_sweeper()
    logger.info(
        "Exam engine started",
        extra={
            "concurrency_policy": settings.EXAM_CONCURRENCY_POLICY,
            "expiry_sweeper": app.state.expiry_sweeper is not None,
        },
    )
    yield
    await stop_expiry_sweeper(app.state.expiry_sweeper)


def create_app() -> FastAPI:
    show_docs = settings.ENV != "prod"
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=API_VERSION,
        description="Driving-theory exam session engine",
        openapi_url="/openapi.json" if show_docs else None,
        docs_url="/docs" if show_docs else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.expiry_sweeper = None

    # Last added runs first: CORS wraps the request id middleware
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/", tags=["Root"], include_in_schema=False)
    async def root():
        return {
            "message": settings.PROJECT_NAME,
            "version": API_VERSION,
            "docs_url": "/docs" if show_docs else None,
        }

    return app


app = create_app()
