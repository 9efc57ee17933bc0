"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready). Readiness checks
the primary database and, when configured, the Webflow modules collection.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.currentprompt.config import get_settings
from src.currentprompt.core.database import get_engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check; no external dependencies are touched."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies(request: Request) -> dict:
    """Check database and Webflow connectivity. Returns check results dict."""
    checks: dict = {"database": "ok", "webflow": "ok"}

    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    mirror = getattr(request.app.state, "mirror_store", None)
    if mirror is None:
        checks["webflow"] = "not_configured"
    else:
        try:
            await mirror.verify()
        except Exception as e:
            checks["webflow"] = "error"
            checks["webflow_error"] = str(e)

    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: 200 if the database (and Webflow, when set up) answer."""
    checks = await _check_dependencies(request)
    all_healthy = checks.get("database") == "ok" and checks.get("webflow") in (
        "ok",
        "not_configured",
    )

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
        },
    )
