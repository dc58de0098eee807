"""Upstream order source for backfills.

The source pages through historical orders by keyset on `order_id`
(ascending), so "the next `limit` orders after `after_order_id`" is stable
across restarts and a job's cursor is simply the last order id it
committed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol

import httpx
from pydantic import ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from finadvisor.core.config import get_settings
from finadvisor.core.exceptions import ConfigurationError, UpstreamFetchError
from finadvisor.core.logging import get_logger
from finadvisor.features.sales_events.models import PaymentStatus, SalesChannel
from finadvisor.features.sales_events.schemas import SalesEventRecord
from finadvisor.shared.schemas import CamelModel

logger = get_logger(__name__)

CANCELLED_STATUS = "cancelled"

# Status codes worth retrying; other 4xx responses mean the request itself is wrong
RETRYABLE_STATUS_CODES = frozenset({408, 425, 429})


class UpstreamOrder(CamelModel):
    """One order line as returned by the upstream order service."""

    model_config = ConfigDict(extra="ignore")

    order_id: str = Field(..., min_length=1)
    artisan_id: str
    product_id: str
    buyer_id: str | None = None
    product_category: str | None = None
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal | None = None
    discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    shipping_cost: Decimal = Decimal("0")
    total_amount: Decimal
    net_amount: Decimal | None = None
    payment_status: str = PaymentStatus.PENDING.value
    status: str = Field(..., description="Order fulfilment status")
    created_at: datetime
    channel: str = SalesChannel.WEB.value
    region: str | None = None
    currency: str = "INR"

    @property
    def is_cancelled(self) -> bool:
        """Cancelled orders never become sales events."""
        return self.status.lower() == CANCELLED_STATUS

    def to_sales_event(self) -> SalesEventRecord:
        """Transform into a sales event.

        The event is dated at order creation. Later status changes (refunds,
        chargebacks) replace the stored row without moving it to another day.

        Raises:
            pydantic.ValidationError: If a field does not fit the event schema.
        """
        return SalesEventRecord(
            order_id=self.order_id,
            artisan_id=self.artisan_id,
            product_id=self.product_id,
            buyer_id=self.buyer_id,
            product_category=self.product_category,
            quantity=self.quantity,
            unit_price=self.unit_price,
            unit_cost=self.unit_cost,
            discount=self.discount,
            tax=self.tax,
            shipping_cost=self.shipping_cost,
            total_amount=self.total_amount,
            net_amount=self.net_amount if self.net_amount is not None else self.total_amount,
            payment_status=PaymentStatus(self.payment_status.lower()),
            order_status=self.status,
            timestamp=self.created_at,
            channel=SalesChannel(self.channel.lower()),
            region=self.region,
            currency=self.currency.upper(),
        )


@dataclass
class OrderPage:
    """One page of upstream orders."""

    orders: list[UpstreamOrder]
    has_more: bool

    @property
    def last_order_id(self) -> str | None:
        """Id of the last order on the page (the next cursor)."""
        return self.orders[-1].order_id if self.orders else None


class OrderSource(Protocol):
    """Paged, keyset-ordered access to historical orders."""

    async def fetch_orders(
        self,
        start: date,
        end: date,
        after_order_id: str | None,
        limit: int,
    ) -> OrderPage:
        """Return up to `limit` orders created in [start, end] after the cursor.

        Raises:
            UpstreamFetchError: On a transient failure worth retrying.
        """
        ...


class HttpOrderSource:
    """Order source backed by the marketplace order API.

    Expects `GET {url}?startDate=&endDate=&after=&limit=` to answer with
    `{"orders": [...], "hasMore": bool}`.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            base_url: Orders endpoint; defaults to settings.
            timeout_seconds: Request timeout; defaults to settings.
            client: Pre-built client (tests inject a MockTransport client).
        """
        settings = get_settings()
        self.url = base_url or settings.upstream_orders_url
        self.timeout_seconds = timeout_seconds or settings.upstream_timeout_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds, connect=10.0),
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_orders(
        self,
        start: date,
        end: date,
        after_order_id: str | None,
        limit: int,
    ) -> OrderPage:
        """Fetch one page of orders.

        Raises:
            UpstreamFetchError: On network errors, 5xx/429 responses or a
                malformed payload.
            ConfigurationError: On other 4xx responses.
        """
        params: dict[str, Any] = {
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
            "limit": limit,
        }
        if after_order_id is not None:
            params["after"] = after_order_id

        client = self._get_client()
        try:
            response = await client.get(self.url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            details = {"url": self.url, "status_code": status_code, "after": after_order_id}
            if status_code < 500 and status_code not in RETRYABLE_STATUS_CODES:
                raise ConfigurationError(
                    f"Upstream rejected the order request with HTTP {status_code}",
                    details=details,
                ) from e
            raise UpstreamFetchError(
                f"Upstream order service returned HTTP {status_code}",
                details=details,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamFetchError(
                f"Upstream order service unreachable: {e}",
                details={"url": self.url, "after": after_order_id},
            ) from e

        try:
            payload = response.json()
            orders = [UpstreamOrder.model_validate(item) for item in payload["orders"]]
            has_more = bool(payload.get("hasMore", False))
        except (ValueError, KeyError, TypeError, PydanticValidationError) as e:
            raise UpstreamFetchError(
                f"Malformed upstream order payload: {e}",
                details={"url": self.url, "after": after_order_id},
            ) from e

        logger.debug(
            "backfill.orders_fetched",
            count=len(orders),
            after=after_order_id,
            has_more=has_more,
        )
        return OrderPage(orders=orders, has_more=has_more)
