import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from academy.core.logging import latency_bucket_ms, request_context

logger = logging.getLogger("academy.request")

# Health endpoints are polled constantly; their completions are not logged
QUIET_PATHS = frozenset({"/healthz", "/readyz"})


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Correlates logs per request and echoes the id back to the caller."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or uuid4().hex
        request.state.request_id = rid

        with request_context(rid):
            start = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - start) * 1000
            response.headers[self.header_name] = rid

            if request.url.path not in QUIET_PATHS:
                logger.log(
                    logging.WARNING if response.status_code >= 500 else logging.INFO,
                    "request.complete",
                    extra={
                        "path": request.url.path,
                        "method": request.method,
                        "status": response.status_code,
                        "latency_bucket": latency_bucket_ms(elapsed_ms),
                    },
                )
        return response
