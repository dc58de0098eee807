"""Custom exceptions and FastAPI exception handlers.

Implements RFC 7807 Problem Details for machine-readable error responses.

Propagation policy:
- ValidationError / ConfigurationError: surfaced synchronously, never retried.
- UpstreamFetchError: retried with backoff inside the backfill pipeline and
  only surfaced (as a paused job) once the retry budget is spent.
- DataIntegrityError: raised per event; batch callers count and skip it.
- InsufficientHistoryError: surfaced to the caller, not retried.
- ServiceUnavailableError: store or upstream unreachable beyond budget.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from finadvisor.core.logging import get_logger
from finadvisor.core.problem_details import (
    ERROR_TYPES,
    ProblemDetailResponse,
    problem_response,
)

logger = get_logger(__name__)


# =============================================================================
# Exception Classes
# =============================================================================


class FinanceAdvisorError(Exception):
    """Base exception for all Finance Advisor application errors.

    Each exception type maps to an RFC 7807 problem type URI and to the
    `{code, message, details}` error payload of tool and backfill envelopes.
    """

    error_type_uri: str = ERROR_TYPES["INTERNAL_ERROR"]
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application error.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            status_code: HTTP status code.
            details: Additional error context.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    @property
    def title(self) -> str:
        """RFC 7807 title - short summary of problem type."""
        return self.code.replace("_", " ").title()

    def to_payload(self) -> dict[str, Any]:
        """Serialize as the error member of a result envelope."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(FinanceAdvisorError):
    """Resource not found error (unknown job id, order id, ...)."""

    error_type_uri: str = ERROR_TYPES["NOT_FOUND"]

    def __init__(
        self,
        message: str = "Resource not found",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="NOT_FOUND", status_code=404, details=details)


class ValidationError(FinanceAdvisorError):
    """Missing or malformed tool/request parameters.

    Agents should check the 'errors' detail for the offending fields.
    """

    error_type_uri: str = ERROR_TYPES["VALIDATION_ERROR"]

    def __init__(
        self,
        message: str = "Validation failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="VALIDATION_ERROR", status_code=400, details=details
        )


class ConfigurationError(FinanceAdvisorError):
    """Fatal configuration problem: bad date range, unknown tool, ..."""

    error_type_uri: str = ERROR_TYPES["CONFIGURATION_ERROR"]

    def __init__(
        self,
        message: str = "Invalid configuration",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="CONFIGURATION_ERROR", status_code=400, details=details
        )


class UpstreamFetchError(FinanceAdvisorError):
    """Transient failure while fetching orders from the upstream source."""

    error_type_uri: str = ERROR_TYPES["UPSTREAM_FETCH_ERROR"]
    retryable = True

    def __init__(
        self,
        message: str = "Upstream order fetch failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="UPSTREAM_FETCH_ERROR", status_code=502, details=details
        )


class DataIntegrityError(FinanceAdvisorError):
    """A single sales event violates an amount or field invariant."""

    error_type_uri: str = ERROR_TYPES["DATA_INTEGRITY_ERROR"]

    def __init__(
        self,
        message: str = "Sales event failed integrity check",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="DATA_INTEGRITY_ERROR", status_code=422, details=details
        )


class InsufficientHistoryError(FinanceAdvisorError):
    """Not enough history to forecast, detect anomalies or simulate."""

    error_type_uri: str = ERROR_TYPES["INSUFFICIENT_HISTORY"]

    def __init__(
        self,
        message: str = "Insufficient history",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="INSUFFICIENT_HISTORY", status_code=422, details=details
        )


class ServiceUnavailableError(FinanceAdvisorError):
    """Store or upstream unreachable within the caller's time budget."""

    error_type_uri: str = ERROR_TYPES["SERVICE_UNAVAILABLE"]
    retryable = True

    def __init__(
        self,
        message: str = "Service unavailable",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="SERVICE_UNAVAILABLE", status_code=503, details=details
        )


class DatabaseError(FinanceAdvisorError):
    """Database operation failed unexpectedly."""

    error_type_uri: str = ERROR_TYPES["DATABASE_ERROR"]

    def __init__(
        self,
        message: str = "Database operation failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="DATABASE_ERROR", status_code=500, details=details)


class ConflictError(FinanceAdvisorError):
    """Operation conflicts with current state (e.g. resuming a completed job)."""

    error_type_uri: str = ERROR_TYPES["CONFLICT"]

    def __init__(
        self,
        message: str = "Resource conflict",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="CONFLICT", status_code=409, details=details)


# =============================================================================
# Exception Handlers (RFC 7807)
# =============================================================================


async def finance_advisor_exception_handler(
    _request: Request,
    exc: FinanceAdvisorError,
) -> ProblemDetailResponse:
    """Handle FinanceAdvisorError exceptions with RFC 7807 Problem Details.

    Args:
        _request: FastAPI request object.
        exc: The raised exception.

    Returns:
        RFC 7807 Problem Detail response.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "app.error_handled",
        error=exc.message,
        error_type=type(exc).__name__,
        error_code=exc.code,
        status_code=exc.status_code,
        details=exc.details,
    )

    return problem_response(
        status=exc.status_code,
        title=exc.title,
        detail=exc.message,
        error_code=exc.code,
        details=exc.details,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> ProblemDetailResponse:
    """Handle request validation errors as 400 ValidationError problems.

    Args:
        request: FastAPI request object.
        exc: Pydantic validation error.

    Returns:
        RFC 7807 Problem Detail response with field-level errors.
    """
    field_errors: list[dict[str, str]] = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = ".".join(str(part) for part in loc if part != "body")
        field_errors.append(
            {
                "field": field_path,
                "message": str(error.get("msg", "Validation failed")),
                "type": str(error.get("type", "unknown")),
            }
        )

    logger.warning(
        "app.validation_error",
        error_count=len(field_errors),
        path=str(request.url.path),
        fields=[e["field"] for e in field_errors],
    )

    return problem_response(
        status=400,
        title="Validation Error",
        detail=f"Request validation failed with {len(field_errors)} error(s). "
        "Check the 'errors' field for details.",
        error_code="VALIDATION_ERROR",
        errors=field_errors,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> ProblemDetailResponse:
    """Handle unexpected exceptions with RFC 7807 Problem Details.

    Args:
        request: FastAPI request object.
        exc: The raised exception.

    Returns:
        RFC 7807 Problem Detail response.
    """
    logger.error(
        "app.unhandled_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=str(request.url.path),
        exc_info=True,
    )

    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred. Please try again later or "
        "contact support with the request_id.",
        error_code="INTERNAL_ERROR",
    )


# =============================================================================
# Handler Registration
# =============================================================================


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(FinanceAdvisorError, finance_advisor_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
