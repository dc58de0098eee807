"""Shared utilities used across 3+ features."""

from finadvisor.shared.models import TimestampMixin, utc_now
from finadvisor.shared.schemas import CamelModel, ErrorDetail

__all__ = [
    "CamelModel",
    "ErrorDetail",
    "TimestampMixin",
    "utc_now",
]
