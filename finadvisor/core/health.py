"""Health check endpoints.

Readiness reports the event store in domain terms: how many sales events it
holds, how many backfills are running, and how many of those have stopped
checkpointing (presumed dead and waiting for a resume).
"""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from finadvisor.core.config import get_settings
from finadvisor.core.database import get_db
from finadvisor.core.logging import get_logger
from finadvisor.features.backfill.models import BackfillJob, BackfillStatus
from finadvisor.features.backfill.service import stale_cutoff
from finadvisor.features.sales_events.models import SalesEvent

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["ok", "degraded", "unhealthy"]
    app_name: str
    database: Literal["connected", "disconnected"] | None = None
    sales_events: int | None = None
    running_backfills: int | None = None
    stale_backfills: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check; does not touch the event store."""
    logger.debug("health.check_started")
    return HealthResponse(status="ok", app_name=get_settings().app_name)


@router.get("/health/ready", response_model=HealthResponse)
async def readiness_check(
    db: AsyncSession = Depends(get_db),
) -> HealthResponse:
    """Readiness check over the event store and backfill jobs.

    Degraded when a running backfill has not checkpointed within
    `backfill_stale_after_seconds`.

    Args:
        db: Database session dependency.

    Returns:
        Health status with store and backfill figures.
    """
    settings = get_settings()
    running = select(func.count()).select_from(BackfillJob).where(
        BackfillJob.status == BackfillStatus.RUNNING.value
    )

    try:
        event_count = (
            await db.execute(select(func.count()).select_from(SalesEvent))
        ).scalar_one()
        running_count = (await db.execute(running)).scalar_one()
        stale_count = (
            await db.execute(running.where(BackfillJob.updated_at < stale_cutoff(settings)))
        ).scalar_one()
    except Exception as e:
        logger.error(
            "health.database_disconnected",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return HealthResponse(
            status="unhealthy", app_name=settings.app_name, database="disconnected"
        )

    logger.info(
        "health.store_checked",
        sales_events=event_count,
        running_backfills=running_count,
        stale_backfills=stale_count,
    )
    return HealthResponse(
        status="degraded" if stale_count else "ok",
        app_name=settings.app_name,
        database="connected",
        sales_events=event_count,
        running_backfills=running_count,
        stale_backfills=stale_count,
    )
