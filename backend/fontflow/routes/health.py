"""
FontFlow Backend — Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Runs SELECT 1 against the database and a health probe against the
       object store, and reports an aggregate status.
Who:   Called by Docker health checks, load balancers and monitoring.

Status levels:
    - healthy:   database and storage operational (HTTP 200)
    - unhealthy: either one down (HTTP 503, stop routing traffic)

Uploads need both dependencies, so there is no "degraded" state.
"""

import logging
import time

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text

from fontflow import __version__
from fontflow.database import engine
from fontflow.dependencies import get_object_store
from fontflow.schemas.font import HealthResponse
from fontflow.services.storage import ObjectStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "A dependency is down", "model": HealthResponse}},
)
async def health_check(
    response: Response,
    store: ObjectStore = Depends(get_object_store),
) -> HealthResponse:
    """Probe the database and the object store, return aggregate status."""
    db_status = "connected"
    storage_status = "available"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", e)

    # ── Check Object Storage ──────────────────────────────────────────────
    if not await store.health_check():
        storage_status = "unavailable"
        overall = "unhealthy"

    if overall != "healthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
