"""
FontFlow Backend — Request Logging Middleware
===============================================

What:  One access-log line per HTTP request.
How:   Times the downstream call and logs method, path, status, duration,
       payload sizes and client IP on the "fontflow.access" logger, with the
       request ID. Upload and download sizes come from Content-Length, so
       font binaries are never buffered here.
Who:   Applied to every request via Starlette middleware.
When:  After RequestIDMiddleware (uses the request ID for correlation).

Example line:
    2026-01-15T12:00:00 [INFO] fontflow.access: POST /api/fonts/upload 201 412.3ms in=184220B out=1093B [a1b2c3d4] from 10.0.0.7

Never logged: request bodies (font binaries), query strings (signed URL
signatures), Authorization headers.

Log level follows the status: 5xx → ERROR, 4xx → WARNING, else INFO.
/health is not logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from fontflow.middleware.request_id import request_id_var

logger = logging.getLogger("fontflow.access")

SKIPPED_PATHS = {"/health"}


def _content_length(headers) -> int:
    try:
        return int(headers.get("content-length", 0))
    except ValueError:
        return 0


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log: one line per request, level derived from the status code."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        rid = request_id_var.get("")
        bytes_in = _content_length(request.headers)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        bytes_out = _content_length(response.headers)
        logger.log(
            level_for_status(status),
            "%s %s %d %.1fms in=%dB out=%dB [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            bytes_in,
            bytes_out,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "bytes_in": bytes_in,
                "bytes_out": bytes_out,
                "client_ip": client_ip,
            },
        )
        return response
