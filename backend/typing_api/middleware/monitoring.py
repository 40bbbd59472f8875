"""Monitoring and observability middleware"""
import time
from typing import Callable

from fastapi import Request, Response
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

from typing_api.utils.logger import logger


# ===== Prometheus Metrics =====

# Request metrics
http_requests_total = Counter(
    "typing_api_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "typing_api_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"]
)

http_errors_total = Counter(
    "typing_api_http_errors_total",
    "Total HTTP errors",
    ["method", "endpoint", "status"]
)

# Auth metrics
authentication_failures_total = Counter(
    "typing_api_auth_failures_total",
    "Total authentication failures",
    ["reason"]  # AUTH_TOKEN_MISSING, AUTH_INVALID_CREDENTIALS, ...
)

tokens_issued_total = Counter(
    "typing_api_tokens_issued_total",
    "Total token pairs issued",
    ["method"]  # register, login, google, google_userinfo, refresh
)

rate_limited_total = Counter(
    "typing_api_rate_limited_total",
    "Requests rejected by per-route rate limits",
    ["scope"]
)

test_results_saved_total = Counter(
    "typing_api_test_results_saved_total",
    "Typing test results stored",
    ["difficulty"]
)


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Middleware for monitoring and metrics collection"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and collect metrics"""
        start_time = time.time()

        method = request.method
        endpoint = request.url.path

        # Add request ID for tracing
        request_id = request.headers.get("x-request-id", f"req_{int(time.time() * 1000)}")
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            status = response.status_code

            duration = time.time() - start_time
            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status=status
            ).inc()

            http_request_duration_seconds.labels(
                method=method,
                endpoint=endpoint
            ).observe(duration)

            # Password hashing makes auth routes slow by nature; flag only outliers
            if duration > 2.0:
                logger.warning(
                    f"Slow request detected: {method} {endpoint}",
                    extra={
                        "request_id": request_id,
                        "method": method,
                        "path": endpoint,
                        "duration": duration,
                        "status": status
                    }
                )

            if status >= 400:
                http_errors_total.labels(
                    method=method,
                    endpoint=endpoint,
                    status=status
                ).inc()

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration:.3f}s"

            return response

        except Exception as e:
            duration = time.time() - start_time
            http_errors_total.labels(
                method=method,
                endpoint=endpoint,
                status=500
            ).inc()

            logger.error(
                f"Request failed: {method} {endpoint}",
                extra={
                    "request_id": request_id,
                    "method": method,
                    "path": endpoint,
                    "duration": duration,
                },
                exc_info=True
            )
            raise


def record_auth_failure(reason: str):
    """Record authentication failure by error code"""
    authentication_failures_total.labels(reason=reason).inc()


def record_tokens_issued(method: str):
    """Record a freshly minted access/refresh pair"""
    tokens_issued_total.labels(method=method).inc()


def record_rate_limited(scope: str):
    rate_limited_total.labels(scope=scope).inc()


def record_test_result(difficulty: str):
    test_results_saved_total.labels(difficulty=difficulty).inc()
