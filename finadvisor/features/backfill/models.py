"""Backfill job ORM model: the persisted checkpoint of a resumable backfill.

A job's cursor and counters are written in the same transaction as the
chunk of events they describe, so a crash between chunks always resumes
from a cursor that matches what is in the sales event store.
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from finadvisor.core.database import Base, JSONType
from finadvisor.shared.models import TimestampMixin


class BackfillStatus(str, Enum):
    """Backfill job lifecycle states.

    State transitions:
    - PENDING -> RUNNING | FAILED
    - RUNNING -> PAUSED | COMPLETED | FAILED
    - PAUSED -> RUNNING (resume)
    - FAILED -> RUNNING (operator resume)
    """

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


VALID_BACKFILL_TRANSITIONS: dict[BackfillStatus, set[BackfillStatus]] = {
    BackfillStatus.PENDING: {BackfillStatus.RUNNING, BackfillStatus.FAILED},
    BackfillStatus.RUNNING: {
        BackfillStatus.PAUSED,
        BackfillStatus.COMPLETED,
        BackfillStatus.FAILED,
    },
    BackfillStatus.PAUSED: {BackfillStatus.RUNNING},
    BackfillStatus.FAILED: {BackfillStatus.RUNNING},
    BackfillStatus.COMPLETED: set(),  # Terminal state
}

RESUMABLE_STATUSES = frozenset({BackfillStatus.PAUSED, BackfillStatus.FAILED})


class BackfillJob(TimestampMixin, Base):
    """Resumable backfill job.

    CRITICAL: `cursor` only moves forward and is persisted after each chunk
    commit, never mid-chunk.

    Attributes:
        id: Primary key.
        job_id: Unique external identifier (UUID hex, 32 chars).
        start_date: First day of orders to backfill (inclusive).
        end_date: Last day of orders to backfill (inclusive).
        chunk_size: Orders fetched per chunk.
        cursor: Id of the last order of the last committed chunk.
        status: Current lifecycle state.
        processed_count: Orders transformed and validated successfully.
        error_count: Orders rejected by integrity checks.
        skipped_count: Cancelled orders filtered out.
        chunk_count: Chunks committed.
        dry_run: When true the job never writes sales events.
        pause_requested: Operator pause flag, honoured between chunks.
        last_event_at: Event time of the last processed order.
        params: Request parameters as submitted.
        stats: Statistics of the last run.
        error_message: Error details if the job failed or paused on error.
        error_type: Exception class name of the last error.
        started_at: When the job first started running.
        completed_at: When the job completed or failed.
    """

    __tablename__ = "backfill_job"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_id: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    start_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    chunk_size: Mapped[int] = mapped_column(Integer)
    cursor: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=BackfillStatus.PENDING.value, index=True
    )

    # Progress counters
    processed_count: Mapped[int] = mapped_column(Integer, default=0)
    error_count: Mapped[int] = mapped_column(Integer, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, default=0)
    chunk_count: Mapped[int] = mapped_column(Integer, default=0)

    dry_run: Mapped[bool] = mapped_column(Boolean, default=False)
    pause_requested: Mapped[bool] = mapped_column(Boolean, default=False)
    last_event_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    params: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    stats: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    error_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Timing
    started_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_backfill_job_status_created", "status", "created_at"),
        CheckConstraint(
            "status IN ('pending', 'running', 'paused', 'completed', 'failed')",
            name="ck_backfill_job_valid_status",
        ),
        CheckConstraint("chunk_size > 0", name="ck_backfill_job_chunk_size_positive"),
    )
