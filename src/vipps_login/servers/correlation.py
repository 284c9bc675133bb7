"""Correlation ID middleware for request tracing.

Generates a unique correlation ID per incoming HTTP request (or reuses the
caller's ``X-Correlation-ID``), sets it in ``request.state.correlation_id``
for handlers, propagates it to the response headers and logs one line per
request.

Secrets MUST NOT be logged: only method, path (no query string) and status.
"""

from __future__ import annotations

import logging
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_HEADER_NAME = "X-Correlation-ID"
_logger = logging.getLogger("vipps-login.correlation")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that attaches a per-request correlation ID."""

    def __init__(self, app, header_name: str = _HEADER_NAME) -> None:  # type: ignore[override]  # noqa: ANN401
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]  # noqa: ANN001
        correlation_id = request.headers.get(self.header_name) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        response = await call_next(request)
        response.headers[self.header_name] = correlation_id
        _logger.info(
            "%s %s -> %s correlation_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            correlation_id,
        )
        return response
