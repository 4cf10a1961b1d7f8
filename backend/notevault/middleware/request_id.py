"""
NoteVault Backend — Request ID Middleware
===========================================

What:  Gives every request a short correlation id and returns it in `X-Request-ID`.
How:   Reuses a client-supplied `X-Request-ID` or generates one, stores it in a
       ContextVar for loggers and error handlers, and in `request.state`.
When:  Outermost middleware, so every later log line can carry the id.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a request id; error bodies and access logs echo it."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
