"""
NoteVault Backend — Access Log Middleware
===========================================

What:  Emits one `notevault.access` record per request once the response exists.
How:   Wraps the downstream app, measures wall time, and picks the record's
       level from the response status class.
When:  Registered inside RequestIDMiddleware, so the correlation id is set.

Logged:      method, path, status, elapsed ms, client address, request id,
             and whether an Authorization header was present
Not logged:  bodies (they hold note text) and the token itself
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notevault.middleware.request_id import request_id_var

logger = logging.getLogger("notevault.access")

# Load balancer probes; logging them would drown the useful lines
QUIET_PATHS = frozenset({"/health"})


def level_for_status(status_code: int) -> int:
    """5xx → ERROR, 4xx → WARNING, everything else → INFO."""
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log for the API; see module docstring for the field list."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        client = request.client.host if request.client else "-"
        fields = {
            "request_id": request_id_var.get(""),
            "http_method": request.method,
            "http_path": request.url.path,
            "http_status": response.status_code,
            "elapsed_ms": elapsed_ms,
            "client": client,
            "has_token": "authorization" in request.headers,
        }
        logger.log(
            level_for_status(response.status_code),
            "[%s] %s %s -> %d in %.1fms (%s)",
            fields["request_id"],
            fields["http_method"],
            fields["http_path"],
            fields["http_status"],
            elapsed_ms,
            client,
            extra=fields,
        )
        return response
