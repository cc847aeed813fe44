# backend/agenda/middleware/performance.py
"""
Request correlation and timing middleware.

- Request ID tracking (``X-Request-ID`` in and out, also placed in the
  logging context)
- Request duration header and Prometheus histogram
"""

import re
import time
from typing import Callable
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.request_context import REQUEST_ID_HEADER, reset_request_id, set_request_id
from ..monitoring.prometheus_metrics import prometheus_metrics

METRICS_PATH = "/metrics"

_ULID_SEGMENT = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")


def _endpoint_label(path: str) -> str:
    """Collapse ids in the path to keep label cardinality bounded."""
    return "/".join(
        ":id" if segment.isdigit() or _ULID_SEGMENT.match(segment) else segment
        for segment in path.split("/")
    )


class PerformanceMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with correlation id and timing."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = set_request_id(request_id)
        start_time = time.time()
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        duration = time.time() - start_time
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-MS"] = str(int(duration * 1000))

        if request.url.path != METRICS_PATH:
            prometheus_metrics.record_http_request(
                method=request.method,
                endpoint=_endpoint_label(request.url.path),
                duration=duration,
                status_code=response.status_code,
            )
        return response
