"""Health check endpoints."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request, status

from routekit.config import settings
from routekit.dispatchers import MOUNTED_ROUTES_STATE
from routekit.models.response import HealthResponse

router = APIRouter()

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health(request: Request):
    """Report service status, uptime and how many routekit routes are mounted."""
    mounted = getattr(request.app.state, MOUNTED_ROUTES_STATE, [])
    return HealthResponse(
        status="healthy",
        version=settings.APP_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        uptime_seconds=int(time.time() - _start_time),
        routes=len(mounted),
    )


@router.get("/healthz", status_code=status.HTTP_200_OK)
async def healthz():
    return {"status": "OK"}
