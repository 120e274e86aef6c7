from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response
from structlog.contextvars import bind_contextvars, clear_contextvars

from nextstep.api.deps import build_recommendation_service
from nextstep.api.routes import register_routes
from nextstep.core.config import get_settings
from nextstep.core.logging import setup_logging
from nextstep.domain.services import RecommendationService
from nextstep.infrastructure.db.session import dispose_engine, get_session_factory

logger = structlog.get_logger(__name__)


def create_app(service: RecommendationService | None = None) -> FastAPI:
    """Application factory for the public API.

    Without an explicit ``service`` the app is wired to the configured
    database and the LLM-backed oracles.
    """
    setup_logging()
    settings = get_settings()
    owns_engine = service is None

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "service_startup",
            service=settings.app_name,
            environment=settings.environment,
            version=settings.version,
        )
        yield
        if owns_engine:
            await dispose_engine()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

    if service is None:
        app.state.session_factory = get_session_factory()
        app.state.recommendation_service = build_recommendation_service(
            app.state.session_factory, settings
        )
    else:
        app.state.session_factory = None
        app.state.recommendation_service = service

    cors_origins = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    if settings.environment in ["local", "development"]:
        cors_origins.append("*")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if "*" not in cors_origins else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    @app.middleware("http")
    async def correlation_id_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid4()))
        bind_contextvars(
            request_id=request_id,
            path=str(request.url.path),
            method=request.method,
        )
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_contextvars()

    return app
