"""
SiteCMS Backend — Request Logging Middleware
==============================================

What:  One access-log line per HTTP request.
How:   Measures the time spent in the handler chain and logs method, path,
       status, duration, request ID and client address. The level follows
       the status class (5xx ERROR, 4xx WARNING, else INFO).
Who:   Applied to every request via Starlette middleware.
When:  Inside RequestIDMiddleware, so the request ID is already set.

Example:
    2024-01-15T12:00:00 [INFO] sitecms.access: POST /api/item/add 201 412.3ms [a1b2c3d4] from 10.0.0.7

Request bodies and uploaded files are never logged (they carry contact data).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from sitecms.middleware.request_id import request_id_var

logger = logging.getLogger("sitecms.access")

# Probed every few seconds by load balancers
QUIET_PATHS = frozenset({"/health"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of each request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
