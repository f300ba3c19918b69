"""
Per-client request rate limiter.

Counters live in a `limits` async storage (in-process memory by default,
Redis when configured). Each counter expires with its window, so memory is
bounded by the number of clients active within one window.
"""

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

import structlog
from limits import RateLimitItemPerSecond
from limits.aio.strategies import FixedWindowRateLimiter, MovingWindowRateLimiter
from limits.storage import storage_from_string
from slowapi.util import get_remote_address
from starlette.requests import Request

from api.src.config import Settings

logger = structlog.get_logger(__name__)

STRATEGIES = {
    "fixed-window": FixedWindowRateLimiter,
    "moving-window": MovingWindowRateLimiter,
}


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        """Seconds until the window resets (at least 1)."""
        return max(1, int(self.reset_at - time.time() + 0.999))


class RateLimiter:
    """Counts requests per client under one path prefix."""

    namespace = "api"

    def __init__(
        self,
        requests: int,
        window_seconds: int,
        path_prefix: str = "/api",
        exempt_paths: Iterable[str] = (),
        storage_uri: str = "async+memory://",
        strategy: str = "fixed-window",
        key_func: Callable[[Request], str] = get_remote_address,
    ):
        """
        Initialize the limiter.

        Args:
            requests: Requests allowed per window per client
            window_seconds: Window length in seconds
            path_prefix: Only paths equal to or below this prefix are counted
            exempt_paths: Exact paths that are never counted
            storage_uri: limits async storage URI
            strategy: fixed-window or moving-window
            key_func: Maps a request to a client identity
        """
        self.item = RateLimitItemPerSecond(requests, window_seconds)
        self.path_prefix = "/" + path_prefix.strip("/")
        self.exempt_paths = frozenset(exempt_paths)
        self.key_func = key_func
        self.storage = storage_from_string(storage_uri)
        self.strategy = STRATEGIES[strategy](self.storage)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        return cls(
            requests=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window,
            path_prefix=settings.rate_limit_prefix,
            exempt_paths=settings.rate_limit_exempt_paths,
            storage_uri=settings.rate_limit_storage_url,
            strategy=settings.rate_limit_strategy,
        )

    @property
    def limit(self) -> int:
        return self.item.amount

    def applies_to(self, path: str) -> bool:
        """Check whether a request path is counted."""
        if path in self.exempt_paths:
            return False
        return path == self.path_prefix or path.startswith(self.path_prefix + "/")

    def key_for(self, request: Request) -> str:
        return self.key_func(request)

    async def hit(self, key: str) -> RateLimitDecision:
        """
        Count one request for a client and decide whether it may proceed.

        The increment and the comparison against the limit happen in one
        storage operation, so concurrent requests from one client cannot
        both slip under the limit.

        Args:
            key: Client identity

        Returns:
            Decision with the remaining allowance
        """
        allowed = await self.strategy.hit(self.item, self.namespace, key)
        reset_at, remaining = await self.strategy.get_window_stats(self.item, self.namespace, key)
        return RateLimitDecision(
            allowed=allowed,
            limit=self.limit,
            remaining=remaining,
            reset_at=reset_at,
        )

    async def reset(self, key: Optional[str] = None) -> None:
        """Forget the counter of one client, or of every client."""
        if key is None:
            await self.storage.reset()
        else:
            await self.strategy.clear(self.item, self.namespace, key)
        logger.info("rate_limit_reset", client=key or "*")
