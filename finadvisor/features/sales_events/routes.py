"""Sales event API routes: live order-completion ingest and range reads."""

import time
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from finadvisor.core.database import get_db
from finadvisor.core.exceptions import DatabaseError, ValidationError
from finadvisor.core.logging import get_logger
from finadvisor.features.sales_events.schemas import (
    SalesEventIngestRequest,
    SalesEventIngestResponse,
    SalesEventListResponse,
)
from finadvisor.features.sales_events.service import SalesEventStore

logger = get_logger(__name__)

router = APIRouter(prefix="/sales-events", tags=["sales-events"])


@router.post(
    "",
    response_model=SalesEventIngestResponse,
    status_code=status.HTTP_200_OK,
    summary="Upsert sales events",
    description="""
Idempotently upsert sales events keyed by orderId.

Used by the order-completion hook of the marketplace. A replayed event is a
no-op, and an event older than the stored version of its order is ignored
(counted as stale).

**Partial Success:** Events failing integrity checks (amount arithmetic,
net > total, non-positive quantity) are rejected individually while all
other events are written.
""",
)
async def ingest_sales_events(
    request: SalesEventIngestRequest,
    db: AsyncSession = Depends(get_db),
) -> SalesEventIngestResponse:
    """Upsert a batch of sales events.

    Args:
        request: Events to upsert.
        db: Async database session from dependency.

    Returns:
        Counts per outcome and rejection details.

    Raises:
        DatabaseError: If the database operation fails unexpectedly.
    """
    start_time = time.perf_counter()

    logger.info("sales_events.ingest.request_received", record_count=len(request.records))

    try:
        result = await SalesEventStore(db).upsert_batch(request.records)
    except SQLAlchemyError as e:
        logger.error(
            "sales_events.ingest.request_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        raise DatabaseError(
            message="Failed to upsert sales events",
            details={"error": str(e)},
        ) from e

    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

    logger.info(
        "sales_events.ingest.request_completed",
        written=result.written_count,
        inserted=result.inserted_count,
        updated=result.updated_count,
        stale=result.stale_count,
        rejected=result.rejected_count,
        duration_ms=duration_ms,
    )

    return SalesEventIngestResponse(
        inserted_count=result.inserted_count,
        updated_count=result.updated_count,
        stale_count=result.stale_count,
        rejected_count=result.rejected_count,
        total_processed=len(request.records),
        errors=result.errors,
        duration_ms=duration_ms,
    )


@router.get(
    "",
    response_model=SalesEventListResponse,
    summary="List sales events in a date range",
)
async def list_sales_events(
    start_date: date = Query(..., alias="startDate", description="First day (inclusive, UTC)"),
    end_date: date = Query(..., alias="endDate", description="Last day (inclusive, UTC)"),
    artisan_id: str | None = Query(None, alias="artisanId", description="Filter by seller"),
    product_id: str | None = Query(None, alias="productId", description="Filter by product"),
    db: AsyncSession = Depends(get_db),
) -> SalesEventListResponse:
    """Return events ordered by timestamp ascending.

    Raises:
        ValidationError: If startDate is after endDate.
    """
    if start_date > end_date:
        raise ValidationError(
            message=f"startDate {start_date} is after endDate {end_date}",
            details={"startDate": str(start_date), "endDate": str(end_date)},
        )

    events = await SalesEventStore(db).query_range(
        start_date,
        end_date,
        artisan_id=artisan_id,
        product_id=product_id,
    )
    return SalesEventListResponse(
        events=events,
        total=len(events),
        start_date=start_date,
        end_date=end_date,
    )
