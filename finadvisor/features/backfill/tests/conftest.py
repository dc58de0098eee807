"""Test fixtures for the backfill module."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest
from httpx import AsyncClient

from finadvisor.core.config import Settings
from finadvisor.core.exceptions import UpstreamFetchError
from finadvisor.features.backfill.routes import get_order_source
from finadvisor.features.backfill.source import OrderPage, UpstreamOrder
from finadvisor.main import app

FetchHook = Callable[[int], Awaitable[None]]


def build_order(index: int, **overrides: Any) -> UpstreamOrder:
    """Build a valid upstream order; ids sort in creation order."""
    quantity = 1 + index % 3
    unit_price = Decimal("150.00")
    total = quantity * unit_price
    fields: dict[str, Any] = {
        "orderId": f"order-{index:04d}",
        "artisanId": "artisan-1",
        "productId": f"product-{index % 5}",
        "buyerId": f"buyer-{index % 7}",
        "productCategory": "textiles",
        "quantity": quantity,
        "unitPrice": unit_price,
        "totalAmount": total,
        "netAmount": total,
        "paymentStatus": "completed",
        "status": "delivered",
        "createdAt": datetime(2024, 1, 1, tzinfo=UTC) + timedelta(hours=index),
        "channel": "web",
        "region": "west",
        "currency": "INR",
    }
    fields.update(overrides)
    return UpstreamOrder.model_validate(fields)


class InMemoryOrderSource:
    """Order source over a fixed list, keyset-paged by order id.

    Args:
        orders: Orders to serve.
        failures: Number of leading calls that fail transiently.
        fail_from_call: Every call from this 1-based call number on fails.
        on_fetch: Awaited with the call number before each fetch.
    """

    def __init__(
        self,
        orders: list[UpstreamOrder],
        failures: int = 0,
        fail_from_call: int | None = None,
        on_fetch: FetchHook | None = None,
    ) -> None:
        self.orders = sorted(orders, key=lambda o: o.order_id)
        self.failures = failures
        self.fail_from_call = fail_from_call
        self.on_fetch = on_fetch
        self.calls: list[tuple[date, date, str | None, int]] = []

    async def fetch_orders(
        self,
        start: date,
        end: date,
        after_order_id: str | None,
        limit: int,
    ) -> OrderPage:
        self.calls.append((start, end, after_order_id, limit))
        call_number = len(self.calls)

        if self.on_fetch is not None:
            await self.on_fetch(call_number)
        if call_number <= self.failures or (
            self.fail_from_call is not None and call_number >= self.fail_from_call
        ):
            raise UpstreamFetchError(
                "Upstream order service returned HTTP 503",
                details={"status_code": 503},
            )

        remaining = [
            o
            for o in self.orders
            if start <= o.created_at.date() <= end
            and (after_order_id is None or o.order_id > after_order_id)
        ]
        return OrderPage(orders=remaining[:limit], has_more=len(remaining) > limit)


@pytest.fixture
def orders_250() -> list[UpstreamOrder]:
    """250 valid orders created hourly from 2024-01-01."""
    return [build_order(i) for i in range(1, 251)]


@pytest.fixture
def backfill_settings() -> Settings:
    """Settings with instant retries."""
    return Settings(
        backfill_retry_base_delay_seconds=0.0,
        backfill_max_retries=2,
        backfill_max_chunk_size=500,
    )


@pytest.fixture
def make_order() -> Callable[..., UpstreamOrder]:
    """Factory for valid upstream orders."""
    return build_order


@pytest.fixture
def order_source() -> type[InMemoryOrderSource]:
    """The in-memory order source class, for per-test configuration."""
    return InMemoryOrderSource


@pytest.fixture
async def backfill_client(
    client: AsyncClient,
    orders_250: list[UpstreamOrder],
) -> AsyncGenerator[AsyncClient, None]:
    """API client whose backfills read the 250 in-memory orders."""
    source = InMemoryOrderSource(orders_250)
    app.dependency_overrides[get_order_source] = lambda: source
    yield client
