"""
Fixed-window rate limiting for /api/ routes.

Requests are counted per "<client ip>:<route family>" (for example
`203.0.113.7:/api/eod`) under the policy whose prefix matches the path most
specifically:

    /api/auth    5 per 15 minutes
    /api/upload  10 per hour
    /api/        100 per 15 minutes

Counters live in a `limits` storage. The default `memory://` storage is local
to the process and expires windows on its own; point
`RATE_LIMIT_STORAGE_URI` at Redis (`redis://host:6379`) so every instance
shares the same counters.
"""

import logging
import math
import time
from typing import List, Optional, Sequence, Tuple

from limits import RateLimitItem, parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config.permissions_config import matches_route
from app.config.settings import settings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


def default_policies() -> List[Tuple[str, str]]:
    return [
        ("/api/auth", settings.rate_limit_auth),
        ("/api/upload", settings.rate_limit_upload),
        ("/api/", settings.rate_limit),
    ]


def client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and forwarded.split(",")[0].strip():
        return forwarded.split(",")[0].strip()
    return get_remote_address(request) or "unknown"


def route_family(path: str) -> str:
    """First two path segments: /api/eod/123 -> /api/eod"""
    return "/".join(path.split("/")[:3])


class RateLimiter:
    """Policy lookup and fixed-window counting over a `limits` storage."""

    def __init__(self, policies: Sequence[Tuple[str, str]], storage_uri: str = "memory://"):
        # Longest prefix first so the most specific policy wins
        self.policies: List[Tuple[str, RateLimitItem]] = sorted(
            ((prefix, parse(limit)) for prefix, limit in policies),
            key=lambda policy: len(policy[0]),
            reverse=True,
        )
        self.storage = storage_from_string(storage_uri)
        self.strategy = FixedWindowRateLimiter(self.storage)

    def policy_for(self, path: str) -> Optional[RateLimitItem]:
        for prefix, item in self.policies:
            if matches_route(path, [prefix]):
                return item
        return None

    def hit(self, item: RateLimitItem, identifier: str) -> Tuple[bool, int, float]:
        """Count one request. Returns (admitted, remaining, window reset epoch seconds)."""
        admitted = self.strategy.hit(item, identifier)
        reset_time, remaining = self.strategy.get_window_stats(item, identifier)
        return admitted, remaining, reset_time

    def reset(self) -> None:
        self.storage.reset()


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        policies: Optional[Sequence[Tuple[str, str]]] = None,
        storage_uri: Optional[str] = None,
        enabled: Optional[bool] = None,
    ):
        super().__init__(app)
        self.enabled = settings.rate_limit_enabled if enabled is None else enabled
        self.limiter = RateLimiter(
            policies if policies is not None else default_policies(),
            storage_uri or settings.rate_limit_storage_uri,
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if not self.enabled or not path.startswith("/api/") or request.method == "OPTIONS":
            return await call_next(request)

        item = self.limiter.policy_for(path)
        if item is None:
            return await call_next(request)

        identifier = f"{client_address(request)}:{route_family(path)}"
        admitted, remaining, reset_time = self.limiter.hit(item, identifier)

        if not admitted:
            retry_after = max(1, math.ceil(reset_time - time.time()))
            logger.warning("Rate limit exceeded for %s (%s)", identifier, item)
            return JSONResponse(
                status_code=429,
                content={"error": RATE_LIMIT_MESSAGE},
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(item.amount),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(reset_time)),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(item.amount)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
