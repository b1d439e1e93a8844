import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from apartment_admin.core.config import settings
from apartment_admin.core.logging import request_id_var

logger = logging.getLogger(__name__)


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id and reports the slow ones.

    The id comes from the caller's X-Request-ID header when present, is echoed
    back on the response, and is visible to all log lines written while the
    request runs (booking writes, email sends, audit failures). Requests over
    LOG_SLOW_REQUEST_THRESHOLD_MS get a timing line.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            if elapsed_ms > settings.log_slow_request_threshold_ms:
                logger.warning(
                    f"Slow request: {request.method} {request.url.path} "
                    f"-> {status_code} in {elapsed_ms:.0f}ms",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": status_code,
                        "duration_ms": round(elapsed_ms, 2),
                    },
                )
            request_id_var.reset(token)
