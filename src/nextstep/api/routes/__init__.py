from fastapi import FastAPI

from . import context, health, progress, recommendations


def register_routes(app: FastAPI) -> None:
    """Attach all API routers to the FastAPI application."""
    app.include_router(health.router)
    app.include_router(context.router)
    app.include_router(recommendations.router)
    app.include_router(progress.router)
