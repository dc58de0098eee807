"""Fixtures for advisor tests: in-memory readers over built events."""

import asyncio
from datetime import UTC, date, datetime, time, timedelta

import pytest

from finadvisor.core.config import Settings
from finadvisor.features.advisor.service import FinanceAdvisorService
from finadvisor.features.sales_events.schemas import SalesEventRecord


class InMemoryReader:
    """Sales event reader over a fixed list of events."""

    def __init__(self, events: list[SalesEventRecord] | None = None) -> None:
        self.events = list(events or [])
        self.calls: list[tuple[date, date, str | None, str | None]] = []

    async def query_range(
        self,
        start: date,
        end: date,
        artisan_id: str | None = None,
        product_id: str | None = None,
    ) -> list[SalesEventRecord]:
        self.calls.append((start, end, artisan_id, product_id))
        return sorted(
            (
                e
                for e in self.events
                if start <= e.event_date <= end
                and (artisan_id is None or e.artisan_id == artisan_id)
                and (product_id is None or e.product_id == product_id)
            ),
            key=lambda e: (e.timestamp, e.order_id),
        )


class SlowReader(InMemoryReader):
    """Reader that never answers within a short budget."""

    async def query_range(
        self,
        start: date,
        end: date,
        artisan_id: str | None = None,
        product_id: str | None = None,
    ) -> list[SalesEventRecord]:
        await asyncio.sleep(5)
        return await super().query_range(start, end, artisan_id, product_id)


class BrokenReader(InMemoryReader):
    """Reader that fails unexpectedly."""

    async def query_range(
        self,
        start: date,
        end: date,
        artisan_id: str | None = None,
        product_id: str | None = None,
    ) -> list[SalesEventRecord]:
        raise RuntimeError("connection reset")


def at_noon(day: date) -> datetime:
    """Event time on a given day."""
    return datetime.combine(day, time(12, 0), tzinfo=UTC)


@pytest.fixture
def as_of() -> date:
    """Last day of every advisor window in these tests."""
    return date(2024, 3, 31)


@pytest.fixture
def advisor_settings() -> Settings:
    """Settings with defaults, independent of the environment."""
    return Settings()


@pytest.fixture
def reader() -> InMemoryReader:
    """Empty in-memory reader; tests add events."""
    return InMemoryReader()


@pytest.fixture
def advisor(reader: InMemoryReader, advisor_settings: Settings) -> FinanceAdvisorService:
    """Advisor over the in-memory reader."""
    return FinanceAdvisorService(reader, advisor_settings)


@pytest.fixture
def daily_days(as_of: date) -> list[date]:
    """The 120 days ending at as_of."""
    return [as_of - timedelta(days=offset) for offset in range(119, -1, -1)]


@pytest.fixture
def add_event(reader: InMemoryReader, make_event):
    """Add an event at noon of a day to the in-memory reader."""

    def _add(day: date, order_id: str, **kwargs) -> SalesEventRecord:
        event = make_event(order_id, at_noon(day), **kwargs)
        reader.events.append(event)
        return event

    return _add


@pytest.fixture
def slow_advisor(advisor_settings: Settings) -> FinanceAdvisorService:
    """Advisor whose reader never answers in time."""
    return FinanceAdvisorService(SlowReader(), advisor_settings)


@pytest.fixture
def broken_advisor(advisor_settings: Settings) -> FinanceAdvisorService:
    """Advisor whose reader raises an unexpected error."""
    return FinanceAdvisorService(BrokenReader(), advisor_settings)
