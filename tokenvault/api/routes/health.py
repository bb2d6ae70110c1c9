"""GET /v1/health — Liveness plus database and codec probes."""

import logging
from fastapi import APIRouter, Request
from tokenvault.api.schemas import HealthResponse
from tokenvault.version import __version__

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Check health of the store and whether encryption is configured."""
    services: dict[str, bool] = {"api": True, "database": False, "encryption": False}

    try:
        async_session = request.app.state.async_session
        async with async_session() as session:
            from sqlalchemy import text
            await session.execute(text("SELECT 1"))
        services["database"] = True
    except Exception as exc:
        logger.warning(f"[health] DB check failed: {exc}")

    codec = getattr(request.app.state, "codec", None)
    services["encryption"] = bool(codec is not None and codec.enabled)

    overall = "ok" if all(services.values()) else "degraded"
    return HealthResponse(status=overall, version=__version__, services=services)
