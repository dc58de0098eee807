"""Backfill feature: resumable, chunked import of historical orders."""

from finadvisor.features.backfill.models import (
    VALID_BACKFILL_TRANSITIONS,
    BackfillJob,
    BackfillStatus,
)
from finadvisor.features.backfill.routes import router
from finadvisor.features.backfill.schemas import (
    BackfillJobListResponse,
    BackfillJobResponse,
    BackfillRequest,
    BackfillResult,
    BackfillStats,
)
from finadvisor.features.backfill.service import BackfillPipeline
from finadvisor.features.backfill.source import (
    HttpOrderSource,
    OrderPage,
    OrderSource,
    UpstreamOrder,
)

__all__ = [
    "VALID_BACKFILL_TRANSITIONS",
    "BackfillJob",
    "BackfillJobListResponse",
    "BackfillJobResponse",
    "BackfillPipeline",
    "BackfillRequest",
    "BackfillResult",
    "BackfillStats",
    "BackfillStatus",
    "HttpOrderSource",
    "OrderPage",
    "OrderSource",
    "UpstreamOrder",
    "router",
]
