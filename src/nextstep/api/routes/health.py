from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Request
from sqlalchemy import text

from nextstep.core.config import get_settings

router = APIRouter(tags=["Observability"])
logger = structlog.get_logger(__name__)


async def check_database(request: Request) -> dict:
    """Check the configured database connection."""
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        return {"status": "not_configured"}
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            return {"status": "ok"}
    except Exception as e:  # noqa: BLE001 - reported in the health payload
        return {"status": "error", "message": str(e)[:100]}


@router.get("/health", summary="Service health check")
async def health_check(request: Request) -> dict:
    """Return basic service and datastore status information."""
    settings = get_settings()
    database_status = await check_database(request)

    overall_status = "ok"
    if database_status.get("status") == "error":
        overall_status = "degraded"

    payload = {
        "service": settings.app_name,
        "version": settings.version,
        "status": overall_status,
        "timestamp": datetime.now(UTC).isoformat(),
        "datastores": {"database": database_status},
    }
    await logger.ainfo("health_check", **payload)
    return payload
