"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks. Readiness
counts the ``deals`` table to prove the remote store answers.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.crm.config import get_settings
from src.crm.store.errors import StoreError

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies(request: Request) -> dict:
    """Check remote store connectivity. Returns check results dict."""
    checks: dict = {"store": "ok"}

    store = getattr(request.app.state, "store", None)
    if store is None:
        checks["store"] = "error"
        checks["store_error"] = "store not initialized"
        return checks

    try:
        await store.count("deals")
    except StoreError as e:
        checks["store"] = "error"
        checks["store_error"] = e.message

    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: verifies the remote store answers.

    Returns 200 if it does, 503 otherwise.
    """
    checks = await _check_dependencies(request)
    healthy = checks.get("store") == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if healthy else "degraded",
            "checks": checks,
        },
    )
