"""Core infrastructure: config, database, logging, middleware, exceptions."""

from finadvisor.core.config import Settings, get_settings
from finadvisor.core.database import Base, get_db
from finadvisor.core.logging import get_logger, job_id_ctx, request_id_ctx

__all__ = [
    "Base",
    "Settings",
    "get_db",
    "get_logger",
    "get_settings",
    "job_id_ctx",
    "request_id_ctx",
]
