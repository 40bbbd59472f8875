"""Rate limiting for API protection.

Two layers, both on the ``limits`` storage named by ``RATE_LIMIT_STORAGE_URI``:

* ``limiter``: slowapi app-wide backstop with default limits per client.
* ``create_rate_limit``: per-route fixed-window budgets for the auth endpoints,
  reporting ``X-RateLimit-*`` headers on every outcome.
"""
import math
import time
from typing import Callable, NamedTuple, Optional

from fastapi import Request, Response
from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from typing_api.config import settings
from typing_api.errors import RateLimitExceeded
from typing_api.middleware.monitoring import record_rate_limited
from typing_api.utils.auth import client_ip, hash_for_logging
from typing_api.utils.logger import logger


class RateLimitRecord(NamedTuple):
    allowed: bool
    remaining: int
    reset_time: float  # epoch seconds at which the window ends


class RateLimitStore:
    """Fixed-window counters kept in a ``limits`` storage backend.

    ``memory://`` counts per process; several workers need a shared backend
    such as ``redis://``. A window opens on the first hit for a key and
    expired keys are dropped by the backend.
    """

    def __init__(self, storage_uri: str = "memory://"):
        self.storage = storage_from_string(storage_uri)
        self._strategy = FixedWindowRateLimiter(self.storage)

    def hit(self, key: str, window_seconds: int, max_requests: int) -> RateLimitRecord:
        """Count one request for ``key`` and report the window it landed in"""
        item = RateLimitItemPerSecond(max_requests, window_seconds, namespace="route")
        allowed = self._strategy.hit(item, key)
        stats = self._strategy.get_window_stats(item, key)
        return RateLimitRecord(allowed=allowed, remaining=max(0, stats.remaining), reset_time=stats.reset_time)

    def clear(self) -> None:
        self.storage.reset()


rate_limit_store = RateLimitStore(settings.RATE_LIMIT_STORAGE_URI)


def rate_limit_key(request: Request) -> str:
    """Client key: forwarded IP when proxy headers are trusted, else the socket peer"""
    if settings.TRUST_PROXY_HEADERS:
        return client_ip(request)
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def create_rate_limit(
    window_seconds: int,
    max_requests: int,
    message: Optional[str] = None,
    scope: str = "default",
    store: Optional[RateLimitStore] = None,
) -> Callable:
    """Return a FastAPI dependency enforcing ``max_requests`` per window per client.

    Usage::

        login_limit = create_rate_limit(900, 10, "Too many login attempts.", scope="login")

        @router.post("/login", dependencies=[Depends(login_limit)])
        def login(body: LoginRequest):
            ...

    Each ``scope`` keeps its own counters so separate endpoints do not share a budget.
    """

    def _rate_limit(request: Request, response: Response) -> None:
        active_store = store if store is not None else rate_limit_store
        client = rate_limit_key(request)
        record = active_store.hit(f"{scope}:{client}", window_seconds, max_requests)

        headers = {
            "X-RateLimit-Limit": str(max_requests),
            "X-RateLimit-Remaining": str(record.remaining),
            "X-RateLimit-Reset": str(math.ceil(record.reset_time)),
        }

        if not record.allowed:
            retry_after = max(0, math.ceil(record.reset_time - time.time()))
            record_rate_limited(scope)
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "action": f"rate_limit:{scope}",
                    "path": request.url.path,
                    "ip_hash": hash_for_logging(client),
                },
            )
            raise RateLimitExceeded(message, retry_after=retry_after, headers=headers)

        response.headers.update(headers)

    _rate_limit.__name__ = f"rate_limit_{scope}"
    return _rate_limit


# App-wide backstop
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=settings.RATE_LIMIT_DEFAULT,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)
