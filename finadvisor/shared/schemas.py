"""Shared Pydantic schemas for API responses and tool envelopes."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases on the wire.

    Tool parameters and envelopes use camelCase (``artisanId``,
    ``timeRange``); Python code uses snake_case. Both spellings are
    accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ErrorDetail(CamelModel):
    """Error member of a `{success: false, error}` envelope."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional error context (job id, cursor, offending fields, ...)",
    )
