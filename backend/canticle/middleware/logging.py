"""
Canticle Backend — Request Logging Middleware
===============================================

What:  One access-log line per HTTP request.
How:   Measures wall time around the downstream app and logs method, path,
       status, duration, request ID and client IP on the "canticle.access"
       logger. The same values are attached as `extra` fields for handlers
       that emit structured records.

Levels:
    5xx → ERROR, 4xx → WARNING, everything else → INFO.
    GET /health is not logged; probes hit it every few seconds.

Privacy:
    Request bodies (song content, verse text) and headers are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from canticle.middleware.request_id import request_id_var

logger = logging.getLogger("canticle.access")

UNLOGGED_PATHS = frozenset({"/health"})


def status_log_level(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request after its response is produced.

    Typical durations:
        - GET /api/bible/books/{id}/chapters/{n}: a few ms
        - GET /api/songs/search: tens of ms (candidate fetch + ranking)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in UNLOGGED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code

        logger.log(
            status_log_level(status),
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
