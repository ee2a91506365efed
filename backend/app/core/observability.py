"""
Observability: logging setup and request middleware.

Every component logs under the 'fleetops' logger tree; requests carry a
correlation ID so a dashboard poll can be traced through the logs.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("fleetops")
request_logger = logging.getLogger("fleetops.http")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Polled endpoints are logged at DEBUG to keep the log readable
QUIET_PATHS = ("/health", "/v1/dashboard/metrics", "/v1/live/drivers", "/v1/simulation", "/v1/playback")


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the 'fleetops' logger tree (once)."""
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex
        started = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = f"{duration_ms:.2f}"

        path = request.url.path
        log_data = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }
        message = "%s %s -> %d (%.1fms)"
        args = (request.method, path, response.status_code, duration_ms)

        if response.status_code >= 500:
            request_logger.error(message, *args, extra=log_data)
        elif response.status_code >= 400:
            request_logger.warning(message, *args, extra=log_data)
        elif request.method == "GET" and path in QUIET_PATHS:
            request_logger.debug(message, *args, extra=log_data)
        else:
            request_logger.info(message, *args, extra=log_data)

        return response
