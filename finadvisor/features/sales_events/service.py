"""Sales event store: integrity checks, idempotent upserts and range reads.

Every write is an `INSERT ... ON CONFLICT (order_id) DO UPDATE ... WHERE
stored.timestamp <= excluded.timestamp`, so replays are harmless and two
writers racing on the same order resolve last-write-wins on event time
without any locking.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Literal, Protocol, runtime_checkable

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from finadvisor.core.database import dialect_name
from finadvisor.core.exceptions import DatabaseError, DataIntegrityError
from finadvisor.core.logging import get_logger
from finadvisor.features.sales_events.models import SalesEvent
from finadvisor.features.sales_events.schemas import EventRejection, SalesEventRecord
from finadvisor.shared.models import utc_now
from finadvisor.shared.utils import ensure_utc

logger = get_logger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")

# Keeps multi-row VALUES under the bind-parameter limits of asyncpg and SQLite
WRITE_BATCH_ROWS = 500

UPDATABLE_COLUMNS = (
    "artisan_id",
    "product_id",
    "buyer_id",
    "product_category",
    "quantity",
    "unit_price",
    "unit_cost",
    "discount",
    "tax",
    "shipping_cost",
    "total_amount",
    "net_amount",
    "payment_status",
    "order_status",
    "timestamp",
    "channel",
    "region",
    "currency",
)

UpsertOutcome = Literal["inserted", "updated", "stale"]


def check_integrity(event: SalesEventRecord) -> None:
    """Validate the amount and field invariants of a single event.

    Args:
        event: Event to check.

    Raises:
        DataIntegrityError: If any invariant is violated.
    """
    details: dict[str, Any] = {"order_id": event.order_id}

    if event.quantity <= 0:
        raise DataIntegrityError(
            f"Order '{event.order_id}': quantity must be positive, got {event.quantity}",
            details=details,
        )

    money = {
        "unit_price": event.unit_price,
        "discount": event.discount,
        "tax": event.tax,
        "shipping_cost": event.shipping_cost,
        "total_amount": event.total_amount,
        "net_amount": event.net_amount,
    }
    if event.unit_cost is not None:
        money["unit_cost"] = event.unit_cost
    negative = sorted(name for name, value in money.items() if value < 0)
    if negative:
        raise DataIntegrityError(
            f"Order '{event.order_id}': negative amounts in {', '.join(negative)}",
            details={**details, "fields": negative},
        )

    if event.net_amount > event.total_amount:
        raise DataIntegrityError(
            f"Order '{event.order_id}': net_amount {event.net_amount} exceeds "
            f"total_amount {event.total_amount}",
            details=details,
        )

    expected = (
        event.quantity * event.unit_price - event.discount + event.tax + event.shipping_cost
    )
    if abs(event.total_amount - expected) > AMOUNT_TOLERANCE:
        raise DataIntegrityError(
            f"Order '{event.order_id}': total_amount {event.total_amount} does not match "
            f"expected {expected}",
            details={
                **details,
                "total_amount": str(event.total_amount),
                "expected": str(expected),
            },
        )


@dataclass
class UpsertResult:
    """Result of a batch upsert (or of a dry-run plan)."""

    inserted_count: int = 0
    updated_count: int = 0
    stale_count: int = 0
    rejected_count: int = 0
    errors: list[EventRejection] = field(  # pyright: ignore[reportUnknownVariableType]
        default_factory=list
    )

    @property
    def written_count(self) -> int:
        """Events that were (or would be) written."""
        return self.inserted_count + self.updated_count

    @property
    def accepted_count(self) -> int:
        """Events that passed integrity checks."""
        return self.inserted_count + self.updated_count + self.stale_count


@runtime_checkable
class SalesEventReader(Protocol):
    """Read side of the store, as consumed by the advisor."""

    async def query_range(
        self,
        start: date,
        end: date,
        artisan_id: str | None = None,
        product_id: str | None = None,
    ) -> list[SalesEventRecord]:
        """Return events in [start, end] ordered by timestamp."""
        ...


class SalesEventStore:
    """Durable, upsert-keyed ledger of sales events.

    The store is the only component that mutates sales data.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Bind the store to a database session.

        Args:
            db: Async database session.
        """
        self.db = db

    async def upsert(self, event: SalesEventRecord) -> UpsertOutcome:
        """Idempotently write a single event.

        Args:
            event: Event to write.

        Returns:
            Whether the event was inserted, replaced an older version, or
            was ignored because a newer version is already stored.

        Raises:
            DataIntegrityError: If the event violates an invariant.
        """
        check_integrity(event)
        existing = await self._existing_timestamps([event.order_id])
        outcome = _classify(event, existing.get(event.order_id))
        if outcome != "stale":
            await self._write([event])
        logger.debug("sales_events.upsert", order_id=event.order_id, outcome=outcome)
        return outcome

    async def upsert_batch(self, events: Sequence[SalesEventRecord]) -> UpsertResult:
        """Upsert a batch with per-event partial success.

        Invalid events are rejected individually; all others are written.

        Args:
            events: Events to write.

        Returns:
            UpsertResult with counts and rejection details.
        """
        logger.info("sales_events.upsert_batch_started", batch_size=len(events))
        result, to_write = await self._plan(events)
        if to_write:
            await self._write(to_write)

        logger.info(
            "sales_events.upsert_batch_completed",
            inserted=result.inserted_count,
            updated=result.updated_count,
            stale=result.stale_count,
            rejected=result.rejected_count,
        )
        return result

    async def plan_batch(self, events: Sequence[SalesEventRecord]) -> UpsertResult:
        """Classify a batch exactly as upsert_batch would, without writing.

        Args:
            events: Events to classify.

        Returns:
            UpsertResult describing the would-be outcome.
        """
        result, _ = await self._plan(events)
        return result

    async def query_range(
        self,
        start: date,
        end: date,
        artisan_id: str | None = None,
        product_id: str | None = None,
    ) -> list[SalesEventRecord]:
        """Return events whose UTC date falls in [start, end].

        Args:
            start: First day (inclusive).
            end: Last day (inclusive).
            artisan_id: Filter by seller (optional).
            product_id: Filter by product (optional).

        Returns:
            Events ordered by timestamp ascending, then order_id.
        """
        lower = ensure_utc(datetime.combine(start, time.min))
        upper = ensure_utc(datetime.combine(end + timedelta(days=1), time.min))

        stmt = select(SalesEvent).where(
            (SalesEvent.timestamp >= lower) & (SalesEvent.timestamp < upper)
        )
        if artisan_id is not None:
            stmt = stmt.where(SalesEvent.artisan_id == artisan_id)
        if product_id is not None:
            stmt = stmt.where(SalesEvent.product_id == product_id)
        stmt = stmt.order_by(SalesEvent.timestamp.asc(), SalesEvent.order_id.asc())
        # Rows may have been rewritten by ON CONFLICT upserts in this session
        stmt = stmt.execution_options(populate_existing=True)

        result = await self.db.execute(stmt)
        events = [SalesEventRecord.model_validate(row) for row in result.scalars().all()]

        logger.debug(
            "sales_events.query_range",
            start=str(start),
            end=str(end),
            artisan_id=artisan_id,
            product_id=product_id,
            count=len(events),
        )
        return events

    async def get(self, order_id: str) -> SalesEventRecord | None:
        """Get the stored version of an order, if any."""
        stmt = select(SalesEvent).where(SalesEvent.order_id == order_id).execution_options(
            populate_existing=True
        )
        result = await self.db.execute(stmt)
        row = result.scalar_one_or_none()
        return SalesEventRecord.model_validate(row) if row is not None else None

    async def count(self) -> int:
        """Total number of stored events."""
        result = await self.db.execute(select(func.count()).select_from(SalesEvent))
        return int(result.scalar_one())

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _plan(
        self, events: Sequence[SalesEventRecord]
    ) -> tuple[UpsertResult, list[SalesEventRecord]]:
        result = UpsertResult()
        latest: dict[str, SalesEventRecord] = {}

        for idx, event in enumerate(events):
            try:
                check_integrity(event)
            except DataIntegrityError as e:
                result.rejected_count += 1
                result.errors.append(
                    EventRejection(
                        row_index=idx,
                        order_id=event.order_id,
                        error_code=e.code,
                        error_message=e.message,
                    )
                )
                continue

            # Same order twice in one batch: keep the newest, later position wins ties
            previous = latest.get(event.order_id)
            if previous is not None:
                result.stale_count += 1
                if event.timestamp < previous.timestamp:
                    continue
            latest[event.order_id] = event

        existing = await self._existing_timestamps(list(latest))
        to_write: list[SalesEventRecord] = []
        for order_id, event in latest.items():
            outcome = _classify(event, existing.get(order_id))
            if outcome == "inserted":
                result.inserted_count += 1
            elif outcome == "updated":
                result.updated_count += 1
            else:
                result.stale_count += 1
                continue
            to_write.append(event)

        return result, to_write

    async def _existing_timestamps(self, order_ids: list[str]) -> dict[str, datetime]:
        found: dict[str, datetime] = {}
        for offset in range(0, len(order_ids), WRITE_BATCH_ROWS):
            batch = order_ids[offset : offset + WRITE_BATCH_ROWS]
            stmt = select(SalesEvent.order_id, SalesEvent.timestamp).where(
                SalesEvent.order_id.in_(batch)
            )
            result = await self.db.execute(stmt)
            found.update({row.order_id: ensure_utc(row.timestamp) for row in result})
        return found

    async def _write(self, events: list[SalesEventRecord]) -> None:
        insert = self._insert_factory()
        for offset in range(0, len(events), WRITE_BATCH_ROWS):
            rows = [_to_row(e) for e in events[offset : offset + WRITE_BATCH_ROWS]]
            insert_stmt = insert(SalesEvent).values(rows)
            set_: dict[str, Any] = {col: insert_stmt.excluded[col] for col in UPDATABLE_COLUMNS}
            set_["updated_at"] = utc_now()
            upsert_stmt = insert_stmt.on_conflict_do_update(
                index_elements=["order_id"],
                set_=set_,
                where=SalesEvent.timestamp <= insert_stmt.excluded.timestamp,
            )
            await self.db.execute(upsert_stmt)
        await self.db.flush()

    def _insert_factory(self) -> Callable[..., Any]:
        dialect = dialect_name(self.db)
        if dialect == "postgresql":
            return pg_insert
        if dialect == "sqlite":
            return sqlite_insert
        raise DatabaseError(
            f"Unsupported database dialect for upserts: {dialect}",
            details={"dialect": dialect},
        )


def _classify(event: SalesEventRecord, stored_at: datetime | None) -> UpsertOutcome:
    if stored_at is None:
        return "inserted"
    if event.timestamp >= stored_at:
        return "updated"
    return "stale"


def _to_row(event: SalesEventRecord) -> dict[str, Any]:
    now = utc_now()
    return {
        "order_id": event.order_id,
        "artisan_id": event.artisan_id,
        "product_id": event.product_id,
        "buyer_id": event.buyer_id,
        "product_category": event.product_category,
        "quantity": event.quantity,
        "unit_price": event.unit_price,
        "unit_cost": event.unit_cost,
        "discount": event.discount,
        "tax": event.tax,
        "shipping_cost": event.shipping_cost,
        "total_amount": event.total_amount,
        "net_amount": event.net_amount,
        "payment_status": event.payment_status.value,
        "order_status": event.order_status,
        "timestamp": event.timestamp,
        "channel": event.channel.value,
        "region": event.region,
        "currency": event.currency,
        "created_at": now,
        "updated_at": now,
    }
