"""Request middleware: request and backfill job correlation, access logging."""

import re
import time
import uuid
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from finadvisor.core.logging import get_logger, job_id_ctx, request_id_ctx

logger = get_logger(__name__)

# /backfill/{jobId} and its sub-resources; job ids are 32-char UUID hex
BACKFILL_JOB_PATH = re.compile(r"^/backfill/(?P<job_id>[0-9a-f]{32})(?:/|$)")


def job_id_from_path(path: str) -> str | None:
    """Backfill job id addressed by a request path, if any."""
    match = BACKFILL_JOB_PATH.match(path)
    return match.group("job_id") if match else None


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Propagate request ids and bind the addressed backfill job to the logs.

    Requests to `/backfill/{jobId}...` log with that job id and echo it in
    `X-Job-ID`, so pause and status calls correlate with the job's own run.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request with correlation ids.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware/handler in chain.

        Returns:
            Response with X-Request-ID (and X-Job-ID for job paths) headers.
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        job_id = job_id_from_path(request.url.path)
        request_token = request_id_ctx.set(request_id)
        job_token = job_id_ctx.set(job_id)
        start_time = time.perf_counter()

        try:
            logger.info(
                "http.request_started",
                method=request.method,
                path=request.url.path,
            )

            response = await call_next(request)

            logger.info(
                "http.request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )

            response.headers["X-Request-ID"] = request_id
            if job_id is not None:
                response.headers["X-Job-ID"] = job_id
            return response
        finally:
            job_id_ctx.reset(job_token)
            request_id_ctx.reset(request_token)
