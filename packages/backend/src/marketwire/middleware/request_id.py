"""Request context middleware — request id and access log.

Every HTTP request gets an id (the caller's X-Request-ID or a fresh
UUID), bound into structlog's contextvars together with method and path
so every log line of that request carries them. One `http.request` line
is logged per response with status and duration; health probes log at
debug. WebSocket traffic never passes through here.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

QUIET_PATHS = frozenset({"/api/health"})


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        response: Response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 1)

        log = logger.debug if request.url.path in QUIET_PATHS else logger.info
        log("http.request", status=response.status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        return response
