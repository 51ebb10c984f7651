"""Liveness and readiness probes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from warden.database import get_session

logger = logging.getLogger(__name__)

router = APIRouter()


async def _check_database() -> None:
    async with get_session() as session:
        await session.execute(text("SELECT 1"))


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok", "service": "warden-api"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    try:
        await _check_database()
        checks["database"] = "ok"
    except Exception as exc:
        logger.warning("Readiness: database unavailable: %s", exc)
        checks["database"] = "unavailable"

    # Logouts are only enforced while the session registry answers.
    try:
        await request.app.state.session_registry.ping()
        checks["sessions"] = "ok"
    except Exception as exc:
        logger.warning("Readiness: session registry unavailable: %s", exc)
        checks["sessions"] = "unavailable"

    ready = all(state == "ok" for state in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "not_ready", "checks": checks},
    )
