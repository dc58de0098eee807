"""Sales event store: idempotent, timestamp-resolved ledger of orders."""

from finadvisor.features.sales_events.models import PaymentStatus, SalesChannel, SalesEvent
from finadvisor.features.sales_events.routes import router
from finadvisor.features.sales_events.schemas import (
    EventRejection,
    SalesEventIngestRequest,
    SalesEventIngestResponse,
    SalesEventListResponse,
    SalesEventRecord,
)
from finadvisor.features.sales_events.service import (
    SalesEventReader,
    SalesEventStore,
    UpsertResult,
    check_integrity,
)

__all__ = [
    "EventRejection",
    "PaymentStatus",
    "SalesChannel",
    "SalesEvent",
    "SalesEventIngestRequest",
    "SalesEventIngestResponse",
    "SalesEventListResponse",
    "SalesEventReader",
    "SalesEventRecord",
    "SalesEventStore",
    "UpsertResult",
    "check_integrity",
    "router",
]
