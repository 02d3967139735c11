from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from apexchat.core.metrics import request_metrics
from apexchat.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
UNLOGGED_PATHS = frozenset({"/", "/health"})


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id, times it and feeds the in-memory metrics."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        set_request_context(request_id=request_id)
        path = request.url.path
        started = time.perf_counter()

        response = None
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            status_code = response.status_code if response is not None else 500
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            request_metrics.observe(
                endpoint=path,
                method=request.method,
                status_code=status_code,
                duration_ms=duration_ms,
            )
            if path not in UNLOGGED_PATHS:
                logger.info(
                    "request completed",
                    extra={
                        "endpoint": path,
                        "method": request.method,
                        "status_code": status_code,
                        "duration_ms": duration_ms,
                    },
                )
            clear_request_context()
