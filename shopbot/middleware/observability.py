from __future__ import annotations

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from shopbot.core.request_context import bind_log_context, current_tenant_id, new_request_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
# load balancer health checks hit these every few seconds
QUIET_PATHS = frozenset({"/health", "/health/cache"})


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id and logs one line when it finishes."""

    async def dispatch(self, request: Request, call_next):
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip()[:64] or new_request_id()
        request.state.request_id = request_id
        started = time.perf_counter()

        with bind_log_context(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception:
                self._log(request, 500, started, logging.ERROR)
                raise
            response.headers[REQUEST_ID_HEADER] = request_id
            level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
            self._log(request, response.status_code, started, level)
            return response

    @staticmethod
    def _log(request: Request, status_code: int, started: float, level: int) -> None:
        logger.log(
            level,
            "request completed",
            extra={
                "tenant_id": request.path_params.get("tenant_id") or current_tenant_id(),
                "endpoint": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
