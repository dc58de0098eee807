"""Sales event ORM model: the canonical ledger every metric is read from.

Grain: one row per order_id. Rows are never deleted, only superseded by a
later upsert carrying the same order_id (e.g. a refund flipping
payment_status).
"""

import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from finadvisor.core.database import Base
from finadvisor.shared.models import TimestampMixin


class PaymentStatus(str, Enum):
    """Payment lifecycle of an order. Only COMPLETED counts as revenue."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class SalesChannel(str, Enum):
    """Channel the order was placed through."""

    WEB = "web"
    MOBILE = "mobile"
    MARKETPLACE = "marketplace"
    DIRECT = "direct"
    SOCIAL = "social"


class SalesEvent(TimestampMixin, Base):
    """Sales event fact table.

    CRITICAL: order_id is unique; writes are idempotent upserts resolved
    last-write-wins on `timestamp`.

    Attributes:
        id: Surrogate primary key.
        order_id: Upstream order identifier (upsert key).
        artisan_id: Seller.
        product_id: Product sold.
        buyer_id: Buyer.
        product_category: Category snapshot at order time.
        quantity: Units sold (positive).
        unit_price: List price per unit.
        unit_cost: Cost per unit, when known (drives margin).
        discount: Discount applied to the line.
        tax: Tax charged.
        shipping_cost: Shipping charged.
        total_amount: quantity * unit_price - discount + tax + shipping_cost.
        net_amount: Amount retained by the artisan (<= total_amount).
        payment_status: pending/completed/failed/refunded.
        order_status: Upstream fulfilment status.
        timestamp: Event time (UTC).
        channel: Sales channel.
        region: Buyer region.
        currency: ISO currency code.
    """

    __tablename__ = "sales_event"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    artisan_id: Mapped[str] = mapped_column(String(64), index=True)
    product_id: Mapped[str] = mapped_column(String(64), index=True)
    buyer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    product_category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    unit_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    net_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))

    payment_status: Mapped[str] = mapped_column(String(20), index=True)
    order_status: Mapped[str] = mapped_column(String(30))
    timestamp: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), index=True)
    channel: Mapped[str] = mapped_column(String(20), default=SalesChannel.WEB.value)
    region: Mapped[str | None] = mapped_column(String(50), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    __table_args__ = (
        Index("ix_sales_event_artisan_timestamp", "artisan_id", "timestamp"),
        Index("ix_sales_event_product_timestamp", "product_id", "timestamp"),
        CheckConstraint("quantity > 0", name="ck_sales_event_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_sales_event_price_non_negative"),
        CheckConstraint("net_amount <= total_amount", name="ck_sales_event_net_le_total"),
        CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="ck_sales_event_valid_payment_status",
        ),
    )
