"""
Newsletter Backend — Health Check Route
=========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Runs `SELECT 1` against the store and reports whether the email
       transport has credentials.

    Status levels:
    - healthy:   database reachable, transport configured
    - degraded:  database reachable, transport unconfigured (fan-outs will fail)
    - unhealthy: database unreachable
"""

import logging
import time

from fastapi import APIRouter, Depends

from newsletter import __version__
from newsletter.database import Database
from newsletter.dependencies import get_database, get_transport
from newsletter.schemas.subscriber import HealthResponse
from newsletter.services.transport_base import EmailTransport

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    database: Database = Depends(get_database),
    transport: EmailTransport = Depends(get_transport),
) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        await database.ping()
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    transport_status = "configured" if transport.is_configured else "unconfigured"
    if transport_status == "unconfigured" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        transport=transport_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
