"""API routes for backfill control.

These endpoints let operators and agents start, pause, resume and monitor
resumable backfills of historical orders into the sales event store.
"""

from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from finadvisor.core.database import get_db
from finadvisor.core.exceptions import ValidationError
from finadvisor.core.logging import get_logger
from finadvisor.features.backfill.models import BackfillStatus
from finadvisor.features.backfill.schemas import (
    BackfillJobListResponse,
    BackfillJobResponse,
    BackfillRequest,
    BackfillResult,
)
from finadvisor.features.backfill.service import BackfillPipeline
from finadvisor.features.backfill.source import HttpOrderSource, OrderSource

logger = get_logger(__name__)

router = APIRouter(prefix="/backfill", tags=["backfill"])


async def get_order_source() -> AsyncGenerator[OrderSource, None]:
    """Dependency providing the upstream order source for one request."""
    source = HttpOrderSource()
    try:
        yield source
    finally:
        await source.aclose()


# =============================================================================
# Start / Resume
# =============================================================================


@router.post(
    "",
    response_model=BackfillResult,
    status_code=status.HTTP_200_OK,
    summary="Start or resume a backfill",
    description="""
Start a new backfill job or resume a paused/failed one.

**Important**: Jobs execute synchronously, one chunk per commit. The response
is the final envelope of this run.

**Outcomes**:
- `success=true`, status `completed`: every order in range was processed.
- `success=true`, status `paused`: an operator pause was honoured.
- `success=false`, status `paused`: the upstream kept failing after retries;
  resume with `{"action": "resume", "jobId": ...}`.
- `success=false`, status `failed`: configuration error (bad date range) or
  unexpected failure; see `error.code`.

Example:
```json
{"action": "start", "startDate": "2024-01-01", "endDate": "2024-03-31", "chunkSize": 500}
```
""",
)
async def run_backfill(
    request: BackfillRequest,
    db: AsyncSession = Depends(get_db),
    source: OrderSource = Depends(get_order_source),
) -> BackfillResult:
    """Start or resume a backfill job.

    Raises:
        ValidationError: If action='resume' is sent without jobId.
    """
    pipeline = BackfillPipeline(db, source)

    if request.action == "resume":
        if request.job_id is None:
            raise ValidationError(
                message="jobId is required when action='resume'",
                details={"field": "jobId"},
            )
        return await pipeline.resume(
            request.job_id,
            resume_from_order_id=request.resume_from_order_id,
            chunk_size=request.chunk_size,
            dry_run=request.dry_run,
        )

    return await pipeline.start(
        start_date=request.start_date,
        end_date=request.end_date,
        chunk_size=request.chunk_size,
        dry_run=bool(request.dry_run),
        params=request.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


# =============================================================================
# Job Monitoring
# =============================================================================


@router.get(
    "",
    response_model=BackfillJobListResponse,
    summary="List backfill jobs",
)
async def list_backfill_jobs(
    db: AsyncSession = Depends(get_db),
    source: OrderSource = Depends(get_order_source),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize", description="Jobs per page"),
    job_status: BackfillStatus | None = Query(None, alias="status", description="Filter by status"),
) -> BackfillJobListResponse:
    """List backfill jobs, newest first."""
    pipeline = BackfillPipeline(db, source)
    return await pipeline.list_jobs(page=page, page_size=page_size, status=job_status)


@router.get(
    "/{job_id}",
    response_model=BackfillJobResponse,
    summary="Get backfill job status",
)
async def get_backfill_job(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    source: OrderSource = Depends(get_order_source),
) -> BackfillJobResponse:
    """Get a backfill job by id.

    Raises:
        NotFoundError: If the job does not exist.
    """
    pipeline = BackfillPipeline(db, source)
    return await pipeline.get_job(job_id)


@router.post(
    "/{job_id}/pause",
    response_model=BackfillJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a backfill pause",
    description="""
Ask a job to pause. The pause is honoured at the top of the next chunk;
a chunk in flight always runs to commit or failure.
""",
)
async def pause_backfill_job(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    source: OrderSource = Depends(get_order_source),
) -> BackfillJobResponse:
    """Request a pause of a pending, running or paused job.

    Raises:
        NotFoundError: If the job does not exist.
        ConflictError: If the job already completed or failed.
    """
    pipeline = BackfillPipeline(db, source)
    return await pipeline.request_pause(job_id)
