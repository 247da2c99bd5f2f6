"""
SiteCMS Backend — Health Check Route
======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Pings MongoDB and asks the blob client for its own health probe.
Who:   Docker health checks, load balancers, uptime monitors.

Status levels:
    - healthy:   store and blob host reachable
    - degraded:  store reachable, blob host not (reads still work)
    - unhealthy: store unreachable
"""

import logging
import time

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from sitecms import __version__
from sitecms.database import get_database, ping
from sitecms.schemas.common import HealthResponse
from sitecms.services.blob_base import BlobClient, get_blob_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    db: AsyncIOMotorDatabase = Depends(get_database),
    blob: BlobClient = Depends(get_blob_client),
) -> HealthResponse:
    db_status = "connected"
    blob_status = "available"
    overall = "healthy"

    if not await ping(db):
        db_status = "disconnected"
        overall = "unhealthy"

    try:
        if not await blob.health_check():
            blob_status = "unavailable"
    except Exception as e:
        blob_status = "unavailable"
        logger.warning("Health check: blob host unreachable: %s", str(e))
    if blob_status != "available" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        blob_storage=blob_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
