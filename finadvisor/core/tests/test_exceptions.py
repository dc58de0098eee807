"""Tests for the exception hierarchy and problem-details handlers."""

import json

import pytest

from finadvisor.core.exceptions import (
    ConfigurationError,
    ConflictError,
    DataIntegrityError,
    FinanceAdvisorError,
    InsufficientHistoryError,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamFetchError,
    ValidationError,
    finance_advisor_exception_handler,
)


@pytest.mark.parametrize(
    ("error_class", "code", "status"),
    [
        (NotFoundError, "NOT_FOUND", 404),
        (ValidationError, "VALIDATION_ERROR", 400),
        (ConfigurationError, "CONFIGURATION_ERROR", 400),
        (UpstreamFetchError, "UPSTREAM_FETCH_ERROR", 502),
        (DataIntegrityError, "DATA_INTEGRITY_ERROR", 422),
        (InsufficientHistoryError, "INSUFFICIENT_HISTORY", 422),
        (ServiceUnavailableError, "SERVICE_UNAVAILABLE", 503),
        (ConflictError, "CONFLICT", 409),
    ],
)
def test_error_codes_and_statuses(error_class, code, status):
    """Each error maps to a fixed code and HTTP status."""
    error = error_class("boom")

    assert isinstance(error, FinanceAdvisorError)
    assert error.code == code
    assert error.status_code == status


def test_retryable_errors():
    """Only transient failures are retryable."""
    assert UpstreamFetchError().retryable is True
    assert ServiceUnavailableError().retryable is True
    assert ConfigurationError().retryable is False


def test_to_payload():
    """Envelopes carry code, message and details."""
    error = UpstreamFetchError(
        "Upstream order service returned HTTP 503",
        details={"jobId": "abc", "cursor": "order-0100", "errorCount": 0},
    )

    assert error.to_payload() == {
        "code": "UPSTREAM_FETCH_ERROR",
        "message": "Upstream order service returned HTTP 503",
        "details": {"jobId": "abc", "cursor": "order-0100", "errorCount": 0},
    }


async def test_handler_renders_problem_details():
    """Application errors become application/problem+json responses."""
    response = await finance_advisor_exception_handler(
        None, NotFoundError("Backfill job not found: x", details={"jobId": "x"})
    )

    assert response.status_code == 404
    assert response.media_type == "application/problem+json"
    body = json.loads(response.body)
    assert body["type"] == "/errors/not-found"
    assert body["title"] == "Not Found"
    assert body["code"] == "NOT_FOUND"
    assert body["details"] == {"jobId": "x"}
