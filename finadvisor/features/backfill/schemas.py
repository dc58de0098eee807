"""Pydantic schemas for backfill control endpoints.

These schemas are written for tool-calling agents as well as operators:
descriptions say what to do next (poll, resume, fix the date range).
"""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import ConfigDict, Field

from finadvisor.features.backfill.models import BackfillStatus
from finadvisor.shared.schemas import CamelModel, ErrorDetail

# =============================================================================
# Requests
# =============================================================================


class BackfillRequest(CamelModel):
    """Request body for POST /backfill.

    **Actions**:

    - **start**: create a new job over `[startDate, endDate]`
      (defaults: 2020-01-01 to today, UTC) and run it.
    - **resume**: continue a `paused` or `failed` job from its cursor, or
      from `resumeFromOrderId` when supplied.

    Dates are ISO `YYYY-MM-DD`. An unparsable or inverted range fails the
    job with CONFIGURATION_ERROR.
    """

    action: Literal["start", "resume"] = Field(
        default="start",
        description="'start' a new job or 'resume' an existing one.",
    )
    job_id: str | None = Field(
        None,
        max_length=32,
        description="Job to resume. Required when action='resume'.",
    )
    start_date: str | None = Field(
        None,
        description="First day of orders to backfill (YYYY-MM-DD).",
    )
    end_date: str | None = Field(
        None,
        description="Last day of orders to backfill (YYYY-MM-DD).",
    )
    chunk_size: int | None = Field(
        None,
        ge=1,
        description="Orders per chunk (default 1000). Each chunk is one commit.",
    )
    resume_from_order_id: str | None = Field(
        None,
        max_length=64,
        description="Override the stored cursor: continue after this order id.",
    )
    dry_run: bool | None = Field(
        None,
        description="Run fetch/transform/validate only and report would-be counts.",
    )


# =============================================================================
# Responses
# =============================================================================


class BackfillStats(CamelModel):
    """Progress statistics of a backfill run."""

    job_id: str = Field(..., description="Job identifier")
    status: BackfillStatus = Field(..., description="Job status after this run")
    cursor: str | None = Field(None, description="Id of the last committed order")
    processed_count: int = Field(..., ge=0, description="Orders processed in total")
    error_count: int = Field(..., ge=0, description="Orders rejected by integrity checks")
    skipped_count: int = Field(..., ge=0, description="Cancelled orders skipped")
    chunk_count: int = Field(..., ge=0, description="Chunks committed in total")
    dry_run: bool = Field(..., description="Whether the job writes sales events")
    duration_ms: float = Field(..., ge=0, description="Duration of this run in milliseconds")
    last_event_at: datetime | None = Field(None, description="Event time of the last order")
    would_insert: int | None = Field(None, ge=0, description="Dry run: new events")
    would_update: int | None = Field(None, ge=0, description="Dry run: superseded events")
    would_ignore: int | None = Field(None, ge=0, description="Dry run: stale events")


class BackfillResult(CamelModel):
    """Result envelope of a start or resume call.

    On `success=false` the `error` member carries the code, message and
    details (jobId, cursor, errorCount). A PAUSED job can be resumed with
    `action='resume'`.
    """

    success: bool = Field(..., description="Whether the run completed")
    message: str | None = Field(None, description="Summary on success or pause")
    error: ErrorDetail | None = Field(None, description="Error on failure")
    job_id: str = Field(..., description="Job identifier for polling and resume")
    stats: BackfillStats = Field(..., description="Progress statistics")


class BackfillJobResponse(CamelModel):
    """A persisted backfill job."""

    model_config = ConfigDict(from_attributes=True)

    job_id: str = Field(..., description="Unique job identifier (32-char hex)")
    status: BackfillStatus = Field(..., description="Current job status")
    start_date: date | None = Field(None, description="Range start (inclusive)")
    end_date: date | None = Field(None, description="Range end (inclusive)")
    chunk_size: int = Field(..., description="Orders per chunk")
    cursor: str | None = Field(None, description="Id of the last committed order")
    processed_count: int = Field(..., description="Orders processed")
    error_count: int = Field(..., description="Orders rejected by integrity checks")
    skipped_count: int = Field(..., description="Cancelled orders skipped")
    chunk_count: int = Field(..., description="Chunks committed")
    dry_run: bool = Field(..., description="Whether the job writes sales events")
    pause_requested: bool = Field(..., description="Pause requested by an operator")
    last_event_at: datetime | None = Field(None, description="Event time of the last order")
    params: dict[str, Any] = Field(..., description="Request parameters as submitted")
    stats: dict[str, Any] | None = Field(None, description="Statistics of the last run")
    error_message: str | None = Field(None, description="Last error, if any")
    error_type: str | None = Field(None, description="Exception class of the last error")
    started_at: datetime | None = Field(None, description="When the job first ran")
    completed_at: datetime | None = Field(None, description="When the job completed or failed")
    created_at: datetime = Field(..., description="When the job was created")
    updated_at: datetime = Field(..., description="When the job was last updated")


class BackfillJobListResponse(CamelModel):
    """Paginated list of backfill jobs, newest first."""

    jobs: list[BackfillJobResponse] = Field(..., description="Jobs on this page")
    total: int = Field(..., ge=0, description="Jobs matching the filter")
    page: int = Field(..., ge=1, description="Current page (1-indexed)")
    page_size: int = Field(..., ge=1, description="Jobs per page")
