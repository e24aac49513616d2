import time
import uuid

import structlog
from fastapi import Request
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()

SERVICE_NAME = "crm_service"
REQUESTS = Counter("http_requests_total", "Total Request Count", ["service", "endpoint", "method", "status"])
LATENCY = Histogram("http_request_latency_seconds", "Request Latency", ["service", "endpoint"])

REQUEST_ID_HEADER = "X-Request-Id"
QUIET_PATHS = ("/health", "/metrics")


def _endpoint_label(request: Request) -> str:
    # Route template keeps label cardinality bounded (no raw ids)
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def _record(request: Request, status_code: int, process_time: float) -> None:
    endpoint = _endpoint_label(request)
    REQUESTS.labels(service=SERVICE_NAME, endpoint=endpoint, method=request.method, status=status_code).inc()
    LATENCY.labels(service=SERVICE_NAME, endpoint=endpoint).observe(process_time)

    if request.url.path not in QUIET_PATHS:
        logger.bind(
            status_code=status_code, method=request.method, endpoint=endpoint,
            latency_ms=round(process_time * 1000, 2),
        ).info("http_request_completed" if status_code < 400 else "http_request_failed")


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # 1. Reset Context
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            # The outer error handler renders the 500; count it here first
            _record(request, 500, time.perf_counter() - start_time)
            structlog.contextvars.clear_contextvars()
            raise

        _record(request, response.status_code, time.perf_counter() - start_time)

        response.headers[REQUEST_ID_HEADER] = request_id
        structlog.contextvars.clear_contextvars()
        return response
