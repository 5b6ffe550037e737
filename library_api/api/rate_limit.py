from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional, Protocol, cast

from fastapi import Depends, Request
from library_api.api.deps import get_optional_user
from library_api.core.config import settings
from library_api.core.errors import RateLimitError
from library_api.core.redis_client import get_redis
from library_api.models.user import Role, User
from redis import Redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteClass:
    name: str
    message: str
    skip_admin: bool = False

    @property
    def limit(self) -> int:
        return int(getattr(settings, f"rate_limit_{self.name}_max"))

    @property
    def window_seconds(self) -> int:
        return int(getattr(settings, f"rate_limit_{self.name}_window_seconds"))


GENERAL = RouteClass("general", "Too many requests. Try again in a few minutes.")
AUTH = RouteClass("auth", "Too many authentication attempts. Try again later.")
CREATE = RouteClass("create", "Too many resources created. Try again later.")
SEARCH = RouteClass("search", "Too many searches. Try again in a few minutes.", skip_admin=True)


class CounterStore(Protocol):
    def hit(self, key: str, window_seconds: int) -> tuple[int, int] | None:
        """Count one request for ``key``; return (count, seconds left in window)."""
        ...

    def reset(self) -> None: ...


class MemoryCounterStore:
    """Process-local fixed-window counters, safe under concurrent requests.

    Entries whose window has closed are swept at most once per
    ``sweep_interval`` seconds, so the map only holds live windows.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: int = 60) -> None:
        self.clock = clock
        self.sweep_interval = sweep_interval
        self._lock = threading.Lock()
        # key -> (window index, count, window end)
        self._counts: dict[str, tuple[int, int, int]] = {}
        self._next_sweep = 0

    def size(self) -> int:
        with self._lock:
            return len(self._counts)

    def _sweep(self, now: int) -> None:
        expired = [key for key, (_, _, ends_at) in self._counts.items() if ends_at <= now]
        for key in expired:
            del self._counts[key]
        self._next_sweep = now + self.sweep_interval

    def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        now = int(self.clock())
        bucket = now // window_seconds
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            current_bucket, count, _ = self._counts.get(key, (bucket, 0, 0))
            if current_bucket != bucket:
                count = 0
            count += 1
            self._counts[key] = (bucket, count, (bucket + 1) * window_seconds)
        return count, max(1, window_seconds - (now % window_seconds))

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._next_sweep = 0


class RedisCounterStore:
    """Fixed-window counters using Redis INCR + EXPIRE.

    If Redis is unavailable, the limiter becomes a no-op (fail open).
    """

    def hit(self, key: str, window_seconds: int) -> tuple[int, int] | None:
        r = get_redis()
        if r is None:
            return None

        now = int(time.time())
        bucket = now // window_seconds
        bucket_key = f"{key}:{bucket}"
        try:
            # redis-py typing can be `Awaitable[Any] | Any` in stubs; cast to satisfy mypy.
            count = cast(int, cast(Redis, r).incr(bucket_key))
            if count == 1:
                cast(Redis, r).expire(bucket_key, window_seconds)
        except Exception as exc:
            logger.warning("Rate limit counter unavailable, allowing request: %s", exc)
            return None
        return count, max(1, window_seconds - (now % window_seconds))

    def reset(self) -> None:
        return None


@lru_cache
def get_counter_store() -> CounterStore:
    if settings.rate_limit_backend == "redis":
        return RedisCounterStore()
    return MemoryCounterStore()


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _check(route_class: RouteClass, request: Request, store: CounterStore) -> None:
    if not settings.rate_limit_enabled:
        return

    address = client_address(request)
    result = store.hit(f"rl:{route_class.name}:{address}", route_class.window_seconds)
    if result is None:
        return
    count, retry_after = result
    if count <= route_class.limit:
        return

    logger.warning(
        "RATE_LIMIT_EXCEEDED class=%s ip=%s path=%s",
        route_class.name,
        address,
        request.url.path,
    )
    raise RateLimitError(
        route_class.message,
        details={"retryAfter": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


def rate_limiter(route_class: RouteClass) -> Callable[..., None]:
    """Dependency enforcing the ceiling of ``route_class`` per client address."""

    if route_class.skip_admin:

        def _dep_skipping_admin(
            request: Request,
            store: CounterStore = Depends(get_counter_store),
            user: Optional[User] = Depends(get_optional_user),
        ) -> None:
            if user is not None and user.role == Role.ADMIN:
                return
            _check(route_class, request, store)

        return _dep_skipping_admin

    def _dep(request: Request, store: CounterStore = Depends(get_counter_store)) -> None:
        _check(route_class, request, store)

    return _dep
