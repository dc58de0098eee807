"""Shared fixtures: an in-memory database, event builders and an API client.

The store issues dialect-specific ON CONFLICT upserts, so the same code
paths run against SQLite here and PostgreSQL in deployment.
"""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from finadvisor.core.database import Base, get_db
from finadvisor.features.backfill.models import BackfillJob  # noqa: F401
from finadvisor.features.sales_events.models import PaymentStatus, SalesChannel
from finadvisor.features.sales_events.schemas import SalesEventRecord
from finadvisor.main import app

EventFactory = Callable[..., SalesEventRecord]


def build_event(
    order_id: str,
    timestamp: datetime,
    *,
    artisan_id: str = "artisan-1",
    product_id: str = "product-1",
    quantity: int = 1,
    unit_price: Decimal | str | int = Decimal("100.00"),
    unit_cost: Decimal | str | int | None = None,
    discount: Decimal | str | int = Decimal("0"),
    tax: Decimal | str | int = Decimal("0"),
    shipping_cost: Decimal | str | int = Decimal("0"),
    payment_status: PaymentStatus = PaymentStatus.COMPLETED,
    product_category: str | None = "pottery",
    **overrides: Any,
) -> SalesEventRecord:
    """Build an event whose totals satisfy the amount invariant."""
    price = Decimal(str(unit_price))
    total = (
        quantity * price
        - Decimal(str(discount))
        + Decimal(str(tax))
        + Decimal(str(shipping_cost))
    )
    fields: dict[str, Any] = {
        "order_id": order_id,
        "artisan_id": artisan_id,
        "product_id": product_id,
        "buyer_id": "buyer-1",
        "product_category": product_category,
        "quantity": quantity,
        "unit_price": price,
        "unit_cost": Decimal(str(unit_cost)) if unit_cost is not None else None,
        "discount": Decimal(str(discount)),
        "tax": Decimal(str(tax)),
        "shipping_cost": Decimal(str(shipping_cost)),
        "total_amount": total,
        "net_amount": total,
        "payment_status": payment_status,
        "order_status": "delivered",
        "timestamp": timestamp,
        "channel": SalesChannel.WEB,
        "region": "north",
        "currency": "INR",
    }
    fields.update(overrides)
    return SalesEventRecord(**fields)


@pytest.fixture
def make_event() -> EventFactory:
    """Factory for valid sales events."""
    return build_event


@pytest.fixture
def jan_15() -> datetime:
    """A fixed event time."""
    return datetime(2024, 1, 15, 10, 0, tzinfo=UTC)


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the in-memory engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    """Database session rolled back after each test."""
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """API client whose requests share the in-memory database session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
