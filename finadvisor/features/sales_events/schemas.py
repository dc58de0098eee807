"""Pydantic schemas for the sales event store and live ingest API.

Field types are enforced here; business invariants (amount arithmetic,
net <= total, positive quantity) are checked by the store so that one bad
record is rejected on its own instead of failing the whole request.
"""

from datetime import date as date_type
from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict, Field, field_validator

from finadvisor.features.sales_events.models import PaymentStatus, SalesChannel
from finadvisor.shared.schemas import CamelModel
from finadvisor.shared.utils import ensure_utc


class SalesEventRecord(CamelModel):
    """One completed or pending transaction line.

    Used both as the write payload and as the read model returned by
    range queries.
    """

    model_config = ConfigDict(from_attributes=True)

    order_id: str = Field(
        ..., min_length=1, max_length=64, description="Unique order id (upsert key)"
    )
    artisan_id: str = Field(..., min_length=1, max_length=64, description="Seller id")
    product_id: str = Field(..., min_length=1, max_length=64, description="Product id")
    buyer_id: str | None = Field(None, max_length=64, description="Buyer id")
    product_category: str | None = Field(None, max_length=100, description="Product category")
    quantity: int = Field(..., description="Units sold; must be positive")
    unit_price: Decimal = Field(..., description="Price per unit")
    unit_cost: Decimal | None = Field(None, description="Cost per unit, when known")
    discount: Decimal = Field(default=Decimal("0"), description="Discount on the line")
    tax: Decimal = Field(default=Decimal("0"), description="Tax charged")
    shipping_cost: Decimal = Field(default=Decimal("0"), description="Shipping charged")
    total_amount: Decimal = Field(
        ...,
        description="quantity * unitPrice - discount + tax + shippingCost",
    )
    net_amount: Decimal = Field(..., description="Amount retained by the artisan")
    payment_status: PaymentStatus = Field(..., description="pending/completed/failed/refunded")
    order_status: str = Field(..., min_length=1, max_length=30, description="Fulfilment status")
    timestamp: datetime = Field(..., description="Event time; stored in UTC")
    channel: SalesChannel = Field(default=SalesChannel.WEB, description="Sales channel")
    region: str | None = Field(None, max_length=50, description="Buyer region")
    currency: str = Field(default="INR", min_length=3, max_length=3, description="ISO currency")

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        """Store and compare every event time in UTC."""
        return ensure_utc(v)

    @property
    def is_revenue(self) -> bool:
        """Whether this event counts toward revenue metrics."""
        return self.payment_status == PaymentStatus.COMPLETED

    @property
    def event_date(self) -> date_type:
        """UTC calendar date of the event."""
        return self.timestamp.date()


class SalesEventIngestRequest(CamelModel):
    """Request body for POST /sales-events (live order-completion hook)."""

    records: list[SalesEventRecord] = Field(
        ...,
        min_length=1,
        max_length=10000,
        description="Sales events to upsert",
    )


class EventRejection(CamelModel):
    """Error detail for a single rejected event."""

    row_index: int = Field(..., description="0-based index of the rejected event")
    order_id: str = Field(..., description="Order id from the event")
    error_code: str = Field(..., description="Machine-readable error code")
    error_message: str = Field(..., description="Human-readable error message")


class SalesEventIngestResponse(CamelModel):
    """Response body for POST /sales-events."""

    inserted_count: int = Field(..., ge=0, description="New events stored")
    updated_count: int = Field(..., ge=0, description="Existing events superseded")
    stale_count: int = Field(
        ..., ge=0, description="Events ignored as older than the stored version"
    )
    rejected_count: int = Field(..., ge=0, description="Events failing integrity checks")
    total_processed: int = Field(..., ge=0, description="Events received")
    errors: list[EventRejection] = Field(default=[], description="Details of rejected events")
    duration_ms: float = Field(..., ge=0, description="Processing duration in milliseconds")


class SalesEventListResponse(CamelModel):
    """Response body for GET /sales-events."""

    events: list[SalesEventRecord] = Field(..., description="Events ordered by timestamp ascending")
    total: int = Field(..., ge=0, description="Number of events returned")
    start_date: date_type = Field(..., description="Range start (inclusive)")
    end_date: date_type = Field(..., description="Range end (inclusive)")
