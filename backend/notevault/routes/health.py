"""
NoteVault Backend — Banner & Health Routes
============================================

What:  `GET /` answers with a fixed banner; `GET /health` reports whether the
       database answers and how long the process has been up.
Who:   Load balancer probes, container health checks, humans with curl.

    database reachable     200  {"status": "healthy",   "database": "connected", ...}
    database unreachable   503  {"status": "unhealthy", "database": "disconnected", ...}

Neither route needs a bearer token.
"""

import time

from fastapi import APIRouter, Response, status

from notevault import __version__
from notevault.database import ping_database
from notevault.schemas.note import HealthResponse

router = APIRouter(tags=["Health"])

STARTED_AT = time.monotonic()


@router.get("/", summary="Service banner")
async def root() -> dict:
    return {"message": "Notes API is running"}


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Database connectivity and uptime",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check(response: Response) -> HealthResponse:
    reachable = await ping_database()
    if not reachable:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if reachable else "unhealthy",
        version=__version__,
        database="connected" if reachable else "disconnected",
        uptime_seconds=round(time.monotonic() - STARTED_AT, 2),
    )
