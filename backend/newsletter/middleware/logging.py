"""
Newsletter Backend — Access Log Middleware
============================================

What:  One access log line per request: method, path, status, duration
       and request id.
Why:   Subscribe/unsubscribe traffic and fan-out triggers need an audit
       trail that is correlated with the service logs.

Privacy:
    Request bodies and query strings are never logged; they carry
    subscriber emails (`/status?email=...`). Services log an email only
    when its subscription state changes.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from newsletter.middleware.request_id import request_id_var

logger = logging.getLogger("newsletter.access")

# Liveness probes would drown the audit trail
QUIET_PATHS = frozenset({"/health"})


def level_for_status(status_code: int) -> int:
    """5xx → ERROR, 4xx → WARNING, everything else → INFO."""
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.log(
            level_for_status(response.status_code),
            "[%s] %s %s -> %d (%.1fms)",
            request_id_var.get(""),
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response
