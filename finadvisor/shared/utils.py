"""Shared utility functions."""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

# Lookback windows (days) for the week/month/quarter/year time ranges
WINDOW_DAYS: dict[str, int] = {
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365,
}


def utc_today() -> date:
    """Current date in UTC."""
    return datetime.now(UTC).date()


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def window_bounds(time_range: str, as_of: date) -> tuple[date, date]:
    """Inclusive (start, end) dates of a named window ending at as_of.

    Args:
        time_range: One of week, month, quarter, year.
        as_of: Last day of the window.

    Returns:
        Tuple of (start, end) dates.
    """
    days = WINDOW_DAYS[time_range]
    return as_of - timedelta(days=days - 1), as_of


def previous_window(start: date, end: date) -> tuple[date, date]:
    """The equal-length window immediately before [start, end]."""
    length = (end - start).days + 1
    return start - timedelta(days=length), start - timedelta(days=1)


def percent_change(current: Decimal | float, previous: Decimal | float) -> float:
    """Percent change from previous to current.

    Returns 0.0 when both are zero and 100.0 when only previous is zero.
    """
    if previous == 0:
        return 0.0 if current == 0 else 100.0
    change = (Decimal(str(current)) - Decimal(str(previous))) / Decimal(str(previous))
    return round(float(change * 100), 4)
