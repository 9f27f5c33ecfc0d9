"""
PokeLend Backend — Request Logging Middleware
===============================================

What:  One access log line per request: method, path, status, duration,
       request id and client address.
How:   Log level follows the status class (5xx ERROR, 4xx WARNING, else
       INFO), so failed reservations (409) stand out from normal traffic.
When:  Runs after RequestIDMiddleware, so the request id is already set.

Not logged: request bodies. They carry borrower credentials.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from pokelend.middleware.request_id import request_id_var

logger = logging.getLogger("pokelend.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    # Probed every few seconds by load balancers
    QUIET_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.QUIET_PATHS:
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
            request.url.path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
