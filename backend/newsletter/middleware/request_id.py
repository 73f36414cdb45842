"""
Newsletter Backend — Request ID Middleware
============================================

What:  Assigns a short correlation id to each request and echoes it back in
       the `X-Request-ID` response header.
Why:   Lets a failed subscribe or notify call be matched to its log lines;
       the id is also included in every error body.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

HEADER = "X-Request-ID"
MAX_INBOUND_LENGTH = 64

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def resolve_request_id(inbound: Optional[str]) -> str:
    """Trust a caller-supplied id only if it is short and printable."""
    if inbound and len(inbound) <= MAX_INBOUND_LENGTH and inbound.isprintable():
        return inbound
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get(HEADER))
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[HEADER] = rid
        return response
