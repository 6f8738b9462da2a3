"""
Marketplace Backend — Health Check Route
=========================================

What:  GET /api/v1/healthcheck for load balancers and uptime monitors.
How:   Runs SELECT 1 against the database and reports how much background
       work is outstanding.

Status levels:
    - available:    database reachable (HTTP 200)
    - unavailable:  database unreachable (HTTP 503, stop routing traffic)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from marketplace import __version__
from marketplace.context import AppContext
from marketplace.dependencies import get_context
from marketplace.schemas.health import HealthEnvelope, HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/healthcheck", response_model=HealthEnvelope, summary="Service health check")
async def health_check(
    response: Response,
    ctx: AppContext = Depends(get_context),
) -> HealthEnvelope:
    db_status = "connected"
    overall = "available"

    try:
        async with ctx.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unavailable"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning("Health check: database unreachable: %s", e)

    return HealthEnvelope(
        health=HealthStatus(
            status=overall,
            environment=ctx.settings.env,
            version=__version__,
            database=db_status,
            background_tasks=ctx.task_pool.pending,
            uptime_seconds=round(time.monotonic() - ctx.started_at, 2),
        )
    )
