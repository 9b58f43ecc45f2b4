"""Per-client request rate limiting.

Two independent limiters guard the service: one for upload-class
operations and one for read-class operations. Each counts admitted
requests per client in a fixed window that starts with the client's first
request and resets once the window has elapsed. Supports an in-memory
backend (default) and a Redis backend for deployments sharing state.
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import redis
import redis.asyncio as aioredis
from fastapi import Request, Response

from pixelvault.app.core.config import Settings, settings
from pixelvault.app.core.logging import get_log_context, get_logger
from pixelvault.app.exceptions import ThrottledError
from pixelvault.app.middleware.client import get_client_id
from pixelvault.app.middleware.request_id import get_request_id

logger = get_logger(__name__)

UPLOAD_SCOPE = "upload"
READ_SCOPE = "read"


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None


@dataclass
class RateLimitEntry:
    """Entry for tracking rate limit state of one client."""
    requests: int = 0
    window_start: float = field(default_factory=time.time)


class RateLimitBackend(ABC):
    """Abstract base class for rate limit backends."""

    @abstractmethod
    async def admit(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it may proceed.

        Args:
            key: Rate limit key

        Returns:
            RateLimitResult with allowed status and metadata
        """

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up expired entries."""


class InMemoryRateLimiter(RateLimitBackend):
    """In-memory fixed window rate limiter.

    Suitable for single-instance deployments. Entries are kept in an
    OrderedDict and the least recently used 20% are evicted once
    ``max_entries`` is exceeded.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._storage: OrderedDict[str, RateLimitEntry] = OrderedDict()
        self._lock = asyncio.Lock()

    def _enforce_lru_limit(self) -> None:
        if len(self._storage) > self._max_entries:
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(remove_count):
                self._storage.popitem(last=False)

    async def admit(self, key: str) -> RateLimitResult:
        async with self._lock:
            now = self._clock()

            self._enforce_lru_limit()

            if key in self._storage:
                self._storage.move_to_end(key)

            entry = self._storage.get(key)

            # Start a fresh window on first sight or once the old one elapsed
            if entry is None or now - entry.window_start >= self.window_seconds:
                entry = RateLimitEntry(requests=0, window_start=now)
                self._storage[key] = entry

            window_end = entry.window_start + self.window_seconds
            reset_time = int(window_end)

            if entry.requests >= self.max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_time=reset_time,
                    retry_after=max(1, math.ceil(window_end - now)),
                )

            entry.requests += 1

            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - entry.requests,
                reset_time=reset_time,
            )

    async def cleanup(self) -> None:
        async with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._storage.items()
                if now - entry.window_start >= self.window_seconds
            ]
            for key in expired:
                del self._storage[key]


class RedisRateLimiter(RateLimitBackend):
    """Redis-based fixed window rate limiter.

    The first request of a window creates the counter with a TTL equal to
    the window; each request increments it. Redis failures follow the
    configured fail-open/fail-closed policy.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        fail_closed: bool = False,
    ):
        self.max_requests = max_requests
        self.window_seconds = max(1, math.ceil(window_seconds))
        self.fail_closed = fail_closed
        self._redis_url = redis_url or settings.redis_url
        self._redis = redis_client

    def _get_redis(self) -> Any:
        if self._redis is None:
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    async def admit(self, key: str) -> RateLimitResult:
        try:
            redis_client = self._get_redis()
            now = time.time()

            pipe = redis_client.pipeline()
            pipe.set(key, 0, ex=self.window_seconds, nx=True)
            pipe.incr(key)
            pipe.ttl(key)
            _, count, ttl = await pipe.execute()

            ttl = ttl if ttl and ttl > 0 else self.window_seconds
            reset_time = int(now + ttl)

            if count > self.max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_time=reset_time,
                    retry_after=ttl,
                )

            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - count),
                reset_time=reset_time,
            )

        except redis.ConnectionError as e:
            logger.error(f"Redis connection failed: {e}")
            return self._handle_redis_failure("connection_error")
        except redis.TimeoutError as e:
            logger.warning(f"Redis timeout: {e}")
            return self._handle_redis_failure("timeout")
        except redis.RedisError as e:
            logger.error(f"Redis error: {e}")
            return self._handle_redis_failure("redis_error")

    def _handle_redis_failure(self, error_type: str) -> RateLimitResult:
        """Apply the fail-open/fail-closed policy after a Redis failure."""
        reset_time = int(time.time() + self.window_seconds)

        if self.fail_closed:
            logger.warning(
                f"Rate limiting fail-closed triggered due to {error_type}. "
                "Request denied."
            )
            return RateLimitResult(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_time=reset_time,
                retry_after=self.window_seconds,
            )

        logger.warning(
            f"Rate limiting fail-open triggered due to {error_type}. "
            "Request allowed without rate limit check."
        )
        return RateLimitResult(
            allowed=True,
            limit=self.max_requests,
            remaining=1,
            reset_time=reset_time,
        )

    async def cleanup(self) -> None:
        """No-op for Redis (keys expire automatically)."""


class RateLimiter:
    """Rate limiter for one operation class, backed by the configured store.

    Automatically selects the Redis backend if Redis is enabled in
    settings, otherwise uses the in-memory backend.
    """

    def __init__(
        self,
        name: str,
        max_requests: int,
        window_ms: int,
        use_redis: Optional[bool] = None,
        app_settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ):
        app_settings = app_settings or settings
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_ms / 1000

        should_use_redis = use_redis if use_redis is not None else app_settings.redis_enabled

        if should_use_redis:
            self._backend: RateLimitBackend = RedisRateLimiter(
                max_requests=max_requests,
                window_seconds=self.window_seconds,
                redis_url=app_settings.redis_url,
                fail_closed=app_settings.rate_limit_fail_closed,
            )
            logger.info(f"Using Redis rate limiter backend for '{name}'")
        else:
            self._backend = InMemoryRateLimiter(
                max_requests=max_requests,
                window_seconds=self.window_seconds,
                clock=clock,
            )
            logger.debug(f"Using in-memory rate limiter backend for '{name}'")

    async def admit(self, client_id: str) -> RateLimitResult:
        """Count one request for ``client_id`` in this limiter's window."""
        return await self._backend.admit(f"ratelimit:{self.name}:{client_id}")

    async def cleanup(self) -> None:
        await self._backend.cleanup()


def build_rate_limiters(app_settings: Settings) -> dict[str, RateLimiter]:
    """Create the upload and read limiters described by ``app_settings``."""
    return {
        UPLOAD_SCOPE: RateLimiter(
            UPLOAD_SCOPE,
            max_requests=app_settings.upload_rate_limit_max_requests,
            window_ms=app_settings.upload_rate_limit_window_ms,
            app_settings=app_settings,
        ),
        READ_SCOPE: RateLimiter(
            READ_SCOPE,
            max_requests=app_settings.read_rate_limit_max_requests,
            window_ms=app_settings.read_rate_limit_window_ms,
            app_settings=app_settings,
        ),
    }


def rate_limit(scope: str) -> Callable[[Request, Response], Awaitable[RateLimitResult]]:
    """Build a route dependency enforcing the ``scope`` limiter.

    Usage:
        @router.post("/upload", dependencies=[Depends(rate_limit(UPLOAD_SCOPE))])
    """

    async def enforce(request: Request, response: Response) -> RateLimitResult:
        limiter: RateLimiter = request.app.state.rate_limiters[scope]
        client_id = get_client_id(request)
        result = await limiter.admit(client_id)

        if not result.allowed:
            logger.warning(
                f"Rate limit exceeded for {scope} requests",
                extra=get_log_context(
                    request_id=get_request_id(request),
                    client_id=client_id,
                    retry_after=result.retry_after,
                ),
            )
            raise ThrottledError(
                limit=result.limit,
                reset_time=result.reset_time,
                retry_after=result.retry_after,
            )

        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(result.reset_time)
        return result

    return enforce
