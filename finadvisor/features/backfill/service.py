"""Resumable, chunked backfill of historical orders into the sales event store.

Jobs execute synchronously inside the calling request, one chunk at a time:

    check pause flag -> fetch chunk after cursor (retrying transient errors)
    -> drop cancelled orders -> transform + validate -> upsert (or plan, for
    dry runs) -> advance cursor and counters -> commit

The upsert and the checkpoint share one commit, so a crash can only lose
an uncommitted chunk, which is re-fetched on resume and re-applied
idempotently.

CRITICAL: All job transitions are logged for auditability.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from datetime import date, datetime, timedelta
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from finadvisor.core.config import Settings, get_settings
from finadvisor.core.exceptions import (
    ConfigurationError,
    ConflictError,
    DataIntegrityError,
    FinanceAdvisorError,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamFetchError,
    ValidationError,
)
from finadvisor.core.logging import get_logger, job_id_ctx
from finadvisor.features.backfill.models import (
    RESUMABLE_STATUSES,
    VALID_BACKFILL_TRANSITIONS,
    BackfillJob,
    BackfillStatus,
)
from finadvisor.features.backfill.schemas import (
    BackfillJobListResponse,
    BackfillJobResponse,
    BackfillResult,
    BackfillStats,
)
from finadvisor.features.backfill.source import OrderPage, OrderSource, UpstreamOrder
from finadvisor.features.sales_events.schemas import SalesEventRecord
from finadvisor.features.sales_events.service import SalesEventStore, UpsertResult
from finadvisor.shared.models import utc_now
from finadvisor.shared.schemas import ErrorDetail
from finadvisor.shared.utils import ensure_utc, utc_today

logger = get_logger(__name__)


# =============================================================================
# Helpers
# =============================================================================


def parse_backfill_date(value: str | date | None, field_name: str) -> date | None:
    """Parse an ISO date (or datetime) parameter.

    Raises:
        ConfigurationError: If the value is not an ISO date.
    """
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid {field_name} '{value}': expected YYYY-MM-DD",
            details={"field": field_name, "value": value},
        ) from e


def resolve_date_range(
    start_raw: str | date | None,
    end_raw: str | date | None,
    default_start: date,
) -> tuple[date, date]:
    """Resolve a backfill range, applying defaults (default_start .. today).

    Raises:
        ConfigurationError: If a date is unparsable or the range is inverted.
    """
    start = parse_backfill_date(start_raw, "startDate") or default_start
    end = parse_backfill_date(end_raw, "endDate") or utc_today()
    if start > end:
        raise ConfigurationError(
            f"startDate {start} is after endDate {end}",
            details={"startDate": start.isoformat(), "endDate": end.isoformat()},
        )
    return start, end


def transform_order(order: UpstreamOrder) -> SalesEventRecord:
    """Transform an upstream order into a sales event.

    Raises:
        DataIntegrityError: If the order does not fit the event schema.
    """
    try:
        return order.to_sales_event()
    except (PydanticValidationError, ValueError) as e:
        raise DataIntegrityError(
            f"Order '{order.order_id}' could not be transformed: {e}",
            details={"order_id": order.order_id},
        ) from e


def stale_cutoff(settings: Settings) -> datetime:
    """Running jobs whose last checkpoint is older than this are presumed dead."""
    return utc_now() - timedelta(seconds=settings.backfill_stale_after_seconds)


def _transition(job: BackfillJob, target: BackfillStatus) -> None:
    current = BackfillStatus(job.status)
    if target not in VALID_BACKFILL_TRANSITIONS[current]:
        raise ConflictError(
            f"Cannot move backfill job from '{current.value}' to '{target.value}'",
            details={"job_id": job.job_id, "status": current.value},
        )
    job.status = target.value


# =============================================================================
# Pipeline
# =============================================================================


class BackfillPipeline:
    """Resumable backfill jobs over an upstream order source.

    Jobs execute synchronously; the job record is the checkpoint, so a
    paused, failed or crashed job can be resumed from any process.
    """

    def __init__(
        self,
        db: AsyncSession,
        source: OrderSource,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            db: Database session; the pipeline commits once per chunk.
            source: Upstream order source.
            settings: Settings override (defaults to the cached settings).
        """
        self.db = db
        self.source = source
        self.settings = settings or get_settings()
        self.store = SalesEventStore(db)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def start(
        self,
        start_date: str | date | None = None,
        end_date: str | date | None = None,
        chunk_size: int | None = None,
        dry_run: bool = False,
        params: dict[str, Any] | None = None,
    ) -> BackfillResult:
        """Create a backfill job and run it to completion, pause or failure.

        Args:
            start_date: First day (ISO string or date); default 2020-01-01.
            end_date: Last day (ISO string or date); default today (UTC).
            chunk_size: Orders per chunk; default from settings.
            dry_run: Validate and plan only, never write sales events.
            params: Raw request parameters to record on the job.

        Returns:
            Result envelope with job id and statistics.

        Raises:
            ValidationError: If chunk_size is out of bounds.
        """
        size = self._validate_chunk_size(chunk_size or self.settings.backfill_default_chunk_size)

        job = BackfillJob(
            job_id=uuid.uuid4().hex,
            chunk_size=size,
            status=BackfillStatus.PENDING.value,
            dry_run=dry_run,
            pause_requested=False,
            processed_count=0,
            error_count=0,
            skipped_count=0,
            chunk_count=0,
            params=params
            if params is not None
            else {
                "startDate": str(start_date) if start_date is not None else None,
                "endDate": str(end_date) if end_date is not None else None,
                "chunkSize": chunk_size,
                "dryRun": dry_run,
            },
        )
        self.db.add(job)
        await self.db.commit()

        logger.info(
            "backfill.job_created",
            job_id=job.job_id,
            chunk_size=size,
            dry_run=dry_run,
        )

        run_started = time.perf_counter()
        try:
            start, end = resolve_date_range(
                start_date, end_date, self.settings.backfill_default_start_date
            )
        except ConfigurationError as e:
            return await self._fail(job, e, run_started)

        job.start_date = start
        job.end_date = end
        _transition(job, BackfillStatus.RUNNING)
        job.started_at = utc_now()
        await self.db.commit()

        return await self._run(job, start, end, run_started)

    async def resume(
        self,
        job_id: str,
        resume_from_order_id: str | None = None,
        chunk_size: int | None = None,
        dry_run: bool | None = None,
    ) -> BackfillResult:
        """Resume a paused or failed job from its cursor.

        A job left `running` by a process that died is taken over once its
        last checkpoint is older than `backfill_stale_after_seconds`.

        Args:
            job_id: Job to resume.
            resume_from_order_id: Override the stored cursor.
            chunk_size: Override the chunk size.
            dry_run: Override the dry-run flag (only before the first chunk).

        Returns:
            Result envelope with job id and statistics.

        Raises:
            NotFoundError: If the job does not exist.
            ConflictError: If the job is completed, still running, or would
                switch dry-run mode after committing chunks.
            ValidationError: If chunk_size is out of bounds.
        """
        job = await self._load(job_id)
        status = BackfillStatus(job.status)
        if status is BackfillStatus.RUNNING and ensure_utc(job.updated_at) < stale_cutoff(
            self.settings
        ):
            logger.warning(
                "backfill.stale_job_reclaimed",
                job_id=job_id,
                cursor=job.cursor,
                last_checkpoint_at=ensure_utc(job.updated_at).isoformat(),
            )
            _transition(job, BackfillStatus.PAUSED)
        elif status not in RESUMABLE_STATUSES:
            raise ConflictError(
                f"Backfill job '{job_id}' is {status.value}; only paused, failed or stale "
                "running jobs can be resumed",
                details={"job_id": job_id, "status": status.value, "cursor": job.cursor},
            )

        if dry_run is not None and dry_run != job.dry_run and job.chunk_count > 0:
            # The cursor of a dry run covers orders that were never written
            raise ConflictError(
                f"Backfill job '{job_id}' already committed {job.chunk_count} chunks with "
                f"dryRun={job.dry_run}; start a new job to change it",
                details={"job_id": job_id, "dryRun": job.dry_run, "cursor": job.cursor},
            )

        if chunk_size is not None:
            job.chunk_size = self._validate_chunk_size(chunk_size)
        if dry_run is not None:
            job.dry_run = dry_run
        if resume_from_order_id is not None:
            logger.info(
                "backfill.cursor_overridden",
                job_id=job_id,
                previous_cursor=job.cursor,
                cursor=resume_from_order_id,
            )
            job.cursor = resume_from_order_id

        _transition(job, BackfillStatus.RUNNING)
        job.pause_requested = False
        job.error_message = None
        job.error_type = None
        job.completed_at = None
        if job.started_at is None:
            job.started_at = utc_now()
        await self.db.commit()

        logger.info(
            "backfill.job_resumed",
            job_id=job_id,
            from_status=status.value,
            cursor=job.cursor,
        )

        run_started = time.perf_counter()
        try:
            start, end = self._job_range(job)
        except ConfigurationError as e:
            return await self._fail(job, e, run_started)

        return await self._run(job, start, end, run_started)

    async def request_pause(self, job_id: str) -> BackfillJobResponse:
        """Ask a job to pause before its next chunk.

        Raises:
            NotFoundError: If the job does not exist.
            ConflictError: If the job already completed or failed.
        """
        job = await self._load(job_id)
        status = BackfillStatus(job.status)
        if status in (BackfillStatus.COMPLETED, BackfillStatus.FAILED):
            raise ConflictError(
                f"Backfill job '{job_id}' is {status.value} and cannot be paused",
                details={"job_id": job_id, "status": status.value},
            )

        job.pause_requested = True
        await self.db.commit()

        logger.info("backfill.pause_requested", job_id=job_id, status=status.value)
        return BackfillJobResponse.model_validate(job)

    async def get_job(self, job_id: str) -> BackfillJobResponse:
        """Get a job by id.

        Raises:
            NotFoundError: If the job does not exist.
        """
        return BackfillJobResponse.model_validate(await self._load(job_id))

    async def list_jobs(
        self,
        page: int = 1,
        page_size: int = 20,
        status: BackfillStatus | None = None,
    ) -> BackfillJobListResponse:
        """List jobs, newest first, with optional status filter."""
        stmt = select(BackfillJob)
        if status is not None:
            stmt = stmt.where(BackfillJob.status == status.value)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar_one()

        offset = (page - 1) * page_size
        stmt = (
            stmt.order_by(BackfillJob.created_at.desc(), BackfillJob.id.desc())
            .offset(offset)
            .limit(page_size)
        )
        jobs = (await self.db.execute(stmt)).scalars().all()

        return BackfillJobListResponse(
            jobs=[BackfillJobResponse.model_validate(job) for job in jobs],
            total=total,
            page=page,
            page_size=page_size,
        )

    # -------------------------------------------------------------------------
    # Chunk loop
    # -------------------------------------------------------------------------

    async def _run(
        self,
        job: BackfillJob,
        start: date,
        end: date,
        run_started: float,
    ) -> BackfillResult:
        token = job_id_ctx.set(job.job_id)
        plan = UpsertResult()
        try:
            logger.info(
                "backfill.job_started",
                start_date=start.isoformat(),
                end_date=end.isoformat(),
                cursor=job.cursor,
                chunk_size=job.chunk_size,
                dry_run=job.dry_run,
            )

            while True:
                # Operator pause is only honoured between chunks
                await self.db.refresh(job, attribute_names=["pause_requested"])
                if job.pause_requested:
                    return await self._pause(job, run_started, plan)

                page = await self._fetch_with_retry(job, start, end)
                next_cursor = page.last_order_id
                if next_cursor is not None:
                    await self._process_chunk(job, page, next_cursor, plan)
                if next_cursor is None or not page.has_more:
                    return await self._complete(job, run_started, plan)

        except asyncio.CancelledError:
            # Shutdown or client disconnect: checkpoint as paused, then propagate
            interrupted = ServiceUnavailableError(
                "Backfill interrupted before completion",
                details={"cursor": job.cursor},
            )
            await self._pause(job, run_started, plan, error=interrupted)
            raise
        except FinanceAdvisorError as e:
            if e.retryable:
                return await self._pause(job, run_started, plan, error=e)
            return await self._fail(job, e, run_started, plan)
        except Exception as e:
            logger.error(
                "backfill.job_crashed",
                error=str(e),
                error_type=type(e).__name__,
                cursor=job.cursor,
                exc_info=True,
            )
            return await self._fail(job, e, run_started, plan)
        finally:
            job_id_ctx.reset(token)

    async def _fetch_with_retry(self, job: BackfillJob, start: date, end: date) -> OrderPage:
        max_retries = self.settings.backfill_max_retries
        base_delay = self.settings.backfill_retry_base_delay_seconds
        attempt = 0

        while True:
            try:
                return await self.source.fetch_orders(start, end, job.cursor, job.chunk_size)
            except FinanceAdvisorError as e:
                if not e.retryable:
                    raise
                if attempt >= max_retries:
                    raise UpstreamFetchError(
                        f"Order fetch failed after {max_retries} retries: {e.message}",
                        details={**e.details, "attempts": attempt + 1},
                    ) from e

                wait_time = base_delay * (2**attempt)
                logger.warning(
                    "backfill.fetch_retry",
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    wait_seconds=wait_time,
                    cursor=job.cursor,
                    error=e.message,
                )
                await asyncio.sleep(wait_time)
                attempt += 1

    async def _process_chunk(
        self,
        job: BackfillJob,
        page: OrderPage,
        next_cursor: str,
        plan: UpsertResult,
    ) -> None:
        if job.cursor is not None and next_cursor <= job.cursor:
            raise UpstreamFetchError(
                f"Upstream returned orders at or before cursor '{job.cursor}'",
                details={"cursor": job.cursor, "last_order_id": next_cursor},
            )

        events: list[SalesEventRecord] = []
        skipped = 0
        rejected = 0
        for order in page.orders:
            if order.is_cancelled:
                skipped += 1
                continue
            try:
                events.append(transform_order(order))
            except DataIntegrityError as e:
                rejected += 1
                logger.warning("backfill.order_rejected", order_id=order.order_id, error=e.message)

        if job.dry_run:
            result = await self.store.plan_batch(events)
            plan.inserted_count += result.inserted_count
            plan.updated_count += result.updated_count
            plan.stale_count += result.stale_count
        else:
            result = await self.store.upsert_batch(events)

        for rejection in result.errors:
            logger.warning(
                "backfill.order_rejected",
                order_id=rejection.order_id,
                error=rejection.error_message,
            )

        job.processed_count += result.accepted_count
        job.error_count += rejected + result.rejected_count
        job.skipped_count += skipped
        job.chunk_count += 1
        job.cursor = next_cursor
        job.last_event_at = ensure_utc(page.orders[-1].created_at)

        # Events and checkpoint are committed together
        await self.db.commit()

        logger.info(
            "backfill.chunk_committed",
            chunk=job.chunk_count,
            orders=len(page.orders),
            written=result.written_count,
            inserted=result.inserted_count,
            updated=result.updated_count,
            stale=result.stale_count,
            rejected=rejected + result.rejected_count,
            skipped=skipped,
            cursor=job.cursor,
            processed_count=job.processed_count,
        )

    # -------------------------------------------------------------------------
    # Terminal handling
    # -------------------------------------------------------------------------

    async def _complete(
        self, job: BackfillJob, run_started: float, plan: UpsertResult
    ) -> BackfillResult:
        _transition(job, BackfillStatus.COMPLETED)
        job.completed_at = utc_now()
        stats = self._stats(job, run_started, plan)
        job.stats = stats.model_dump(mode="json", by_alias=True)
        await self.db.commit()

        message = f"Successfully processed {job.processed_count} orders"
        if job.dry_run:
            message = f"Dry run: {job.processed_count} orders validated, nothing written"

        logger.info(
            "backfill.job_completed",
            processed_count=job.processed_count,
            error_count=job.error_count,
            skipped_count=job.skipped_count,
            chunk_count=job.chunk_count,
            duration_ms=stats.duration_ms,
        )
        return BackfillResult(success=True, message=message, job_id=job.job_id, stats=stats)

    async def _pause(
        self,
        job: BackfillJob,
        run_started: float,
        plan: UpsertResult,
        error: FinanceAdvisorError | None = None,
    ) -> BackfillResult:
        await self._recover(job)
        _transition(job, BackfillStatus.PAUSED)
        job.pause_requested = False
        if error is not None:
            job.error_message = error.message[:2000]
            job.error_type = type(error).__name__
        stats = self._stats(job, run_started, plan)
        job.stats = stats.model_dump(mode="json", by_alias=True)
        await self.db.commit()

        if error is None:
            logger.info(
                "backfill.job_paused", cursor=job.cursor, processed_count=job.processed_count
            )
            return BackfillResult(
                success=True,
                message=f"Paused at cursor '{job.cursor}'; resume with action='resume'",
                job_id=job.job_id,
                stats=stats,
            )

        logger.warning(
            "backfill.job_paused_on_error",
            cursor=job.cursor,
            error=error.message,
            error_code=error.code,
        )
        return BackfillResult(
            success=False,
            error=self._error_detail(job, error),
            job_id=job.job_id,
            stats=stats,
        )

    async def _fail(
        self,
        job: BackfillJob,
        error: Exception,
        run_started: float,
        plan: UpsertResult | None = None,
    ) -> BackfillResult:
        await self._recover(job)
        _transition(job, BackfillStatus.FAILED)
        job.error_message = str(error)[:2000]
        job.error_type = type(error).__name__
        job.completed_at = utc_now()
        stats = self._stats(job, run_started, plan or UpsertResult())
        job.stats = stats.model_dump(mode="json", by_alias=True)
        await self.db.commit()

        logger.error(
            "backfill.job_failed",
            job_id=job.job_id,
            error=str(error),
            error_type=type(error).__name__,
            cursor=job.cursor,
        )
        return BackfillResult(
            success=False,
            error=self._error_detail(job, error),
            job_id=job.job_id,
            stats=stats,
        )

    async def _recover(self, job: BackfillJob) -> None:
        # Discard a half-applied chunk and reload the last checkpoint
        await self.db.rollback()
        await self.db.refresh(job)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _load(self, job_id: str) -> BackfillJob:
        stmt = select(BackfillJob).where(BackfillJob.job_id == job_id)
        job = (await self.db.execute(stmt)).scalar_one_or_none()
        if job is None:
            raise NotFoundError(
                f"Backfill job '{job_id}' not found",
                details={"job_id": job_id},
            )
        return job

    def _job_range(self, job: BackfillJob) -> tuple[date, date]:
        if job.start_date is not None and job.end_date is not None:
            return job.start_date, job.end_date
        start, end = resolve_date_range(
            job.params.get("startDate"),
            job.params.get("endDate"),
            self.settings.backfill_default_start_date,
        )
        job.start_date = start
        job.end_date = end
        return start, end

    def _validate_chunk_size(self, chunk_size: int) -> int:
        maximum = self.settings.backfill_max_chunk_size
        if not 1 <= chunk_size <= maximum:
            raise ValidationError(
                f"chunkSize must be between 1 and {maximum}, got {chunk_size}",
                details={"field": "chunkSize", "value": chunk_size, "max": maximum},
            )
        return chunk_size

    def _stats(self, job: BackfillJob, run_started: float, plan: UpsertResult) -> BackfillStats:
        return BackfillStats(
            job_id=job.job_id,
            status=BackfillStatus(job.status),
            cursor=job.cursor,
            processed_count=job.processed_count,
            error_count=job.error_count,
            skipped_count=job.skipped_count,
            chunk_count=job.chunk_count,
            dry_run=job.dry_run,
            duration_ms=round((time.perf_counter() - run_started) * 1000, 2),
            last_event_at=job.last_event_at,
            would_insert=plan.inserted_count if job.dry_run else None,
            would_update=plan.updated_count if job.dry_run else None,
            would_ignore=plan.stale_count if job.dry_run else None,
        )

    @staticmethod
    def _error_detail(job: BackfillJob, error: Exception) -> ErrorDetail:
        payload: dict[str, Any]
        if isinstance(error, FinanceAdvisorError):
            payload = error.to_payload()
        else:
            payload = {"code": "INTERNAL_ERROR", "message": str(error), "details": {}}
        payload["details"] = {
            **payload["details"],
            "jobId": job.job_id,
            "cursor": job.cursor,
            "errorCount": job.error_count,
        }
        return ErrorDetail.model_validate(payload)
