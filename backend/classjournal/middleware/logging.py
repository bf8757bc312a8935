"""
ClassJournal Backend - Request Logging Middleware
==================================================

What:  One access-log line per request on the `classjournal.access` logger.
How:   Measures wall time around the handler and picks the level from the
       status class (5xx ERROR, 4xx WARNING, otherwise INFO).

Logged:     method, path, status, duration, request id, client IP, and the
            authenticated user id when the request carried a valid token.
Not logged: request bodies, passwords, tokens, uploaded file contents.

Example:
    POST /api/journal/create 201 42.7ms [1f2e3d4c] user=6f1c... from 10.0.0.5
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from classjournal.middleware.request_id import request_id_var

logger = logging.getLogger("classjournal.access")

# Probes hit these every few seconds
QUIET_PATHS = frozenset({"/health"})


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log with request-id correlation and per-status severity."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("") or getattr(request.state, "request_id", "")
        identity = getattr(request.state, "identity", None)
        user = str(identity.user_id) if identity is not None else "-"
        status = response.status_code

        logger.log(
            _level_for(status),
            "%s %s %d %.1fms [%s] user=%s from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            user,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "user_id": user,
                "client_ip": client_ip,
            },
        )
        return response
