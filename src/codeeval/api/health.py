"""Health and readiness probes."""

import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Liveness probe -- always returns OK if the process is running."""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe -- checks that the Docker daemon is reachable.

    Returns HTTP 200 with ``{"status": "ready"}`` when the isolation
    provider answers, or HTTP 503 with ``{"status": "not_ready"}``
    otherwise.
    """
    provider = getattr(request.app.state, "provider", None)
    if provider is not None and await asyncio.to_thread(provider.health_check):
        return JSONResponse(content={"status": "ready"}, status_code=200)
    return JSONResponse(content={"status": "not_ready"}, status_code=503)
