"""Middleware modules for production-ready features"""
from typing_api.middleware.monitoring import (
    MonitoringMiddleware,
    record_auth_failure,
    record_rate_limited,
    record_test_result,
    record_tokens_issued,
)
from typing_api.middleware.rate_limit import (
    RateLimitStore,
    create_rate_limit,
    limiter,
    rate_limit_store,
)
from typing_api.middleware.security_headers import SECURITY_HEADERS, SecurityHeadersMiddleware

__all__ = [
    "MonitoringMiddleware",
    "record_auth_failure",
    "record_rate_limited",
    "record_test_result",
    "record_tokens_issued",
    "RateLimitStore",
    "create_rate_limit",
    "limiter",
    "rate_limit_store",
    "SECURITY_HEADERS",
    "SecurityHeadersMiddleware",
]
