"""Per-client request budgets for public endpoints.

Two sliding-window backends share one contract: an in-process limiter for a
single API instance and a Redis limiter for several instances behind a proxy.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections import defaultdict, deque
from collections.abc import Callable, Iterable
from typing import Any, Protocol
from uuid import uuid4

from fastapi import Request

from app.core.config import Settings, get_settings
from app.shared.exceptions import RateLimitException


class RateLimiter(Protocol):
    async def acquire(
        self,
        key: str,
        *,
        max_requests: int,
        window_seconds: int,
    ) -> tuple[bool, int]:
        """Take one slot from `key`'s window; return (allowed, retry_after_seconds)."""

    async def clear(self) -> None:
        """Forget every tracked key."""


def _seconds_until_free(oldest_hit: float, window_seconds: int, now: float) -> int:
    return max(1, math.ceil(oldest_hit + window_seconds - now))


# Atomic prune + count + add on a sorted set scored by hit time.
_SLIDING_WINDOW_LUA = """
local bucket = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])

redis.call('ZREMRANGEBYSCORE', bucket, '-inf', now - window)
if redis.call('ZCARD', bucket) >= limit then
  local oldest = redis.call('ZRANGE', bucket, 0, 0, 'WITHSCORES')
  return {0, oldest[2] or now}
end

redis.call('ZADD', bucket, now, ARGV[4])
redis.call('EXPIRE', bucket, math.ceil(window))
return {1, 0}
"""


class InMemorySlidingWindowRateLimiter:
    """Keeps hit timestamps per key in process memory."""

    def __init__(self, now_provider: Callable[[], float] | None = None) -> None:
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._guard = asyncio.Lock()
        self._clock = now_provider or (lambda: asyncio.get_running_loop().time())

    async def acquire(
        self,
        key: str,
        *,
        max_requests: int,
        window_seconds: int,
    ) -> tuple[bool, int]:
        now = self._clock()
        async with self._guard:
            hits = self._hits[key]
            while hits and hits[0] <= now - window_seconds:
                hits.popleft()
            if len(hits) >= max_requests:
                return False, _seconds_until_free(hits[0], window_seconds, now)
            hits.append(now)
            return True, 0

    async def clear(self) -> None:
        async with self._guard:
            self._hits.clear()


class RedisSlidingWindowRateLimiter:
    """Sliding window in Redis so every API instance sees the same budget."""

    def __init__(
        self,
        *,
        redis_url: str,
        namespace: str,
        now_provider: Callable[[], float] | None = None,
    ) -> None:
        self.redis_url = redis_url
        self.namespace = namespace
        self._clock = now_provider or time.time
        self._connect_lock = asyncio.Lock()
        self._redis: Any | None = None
        self._window_script: Any | None = None

    async def _script(self) -> Any:
        if self._window_script is None:
            async with self._connect_lock:
                if self._window_script is None:
                    from redis.asyncio import from_url

                    self._redis = from_url(self.redis_url, encoding="utf-8", decode_responses=True)
                    self._window_script = self._redis.register_script(_SLIDING_WINDOW_LUA)
        return self._window_script

    async def acquire(
        self,
        key: str,
        *,
        max_requests: int,
        window_seconds: int,
    ) -> tuple[bool, int]:
        script = await self._script()
        now = self._clock()
        allowed, oldest_hit = await script(
            keys=[f"{self.namespace}:{key}"],
            args=[now, window_seconds, max_requests, f"{now}:{uuid4().hex}"],
        )
        if int(allowed):
            return True, 0
        return False, _seconds_until_free(float(oldest_hit), window_seconds, now)

    async def clear(self) -> None:
        await self._script()
        stale = [name async for name in self._redis.scan_iter(match=f"{self.namespace}:*", count=100)]
        if stale:
            await self._redis.delete(*stale)


_rate_limiter: RateLimiter | None = None
_rate_limiter_signature: tuple[str, str | None, str] | None = None


def get_rate_limiter() -> RateLimiter:
    """Shared limiter, rebuilt when the backend settings change."""
    global _rate_limiter, _rate_limiter_signature
    settings: Settings = get_settings()
    signature = (settings.rate_limit_backend, settings.redis_url, settings.rate_limit_redis_namespace)
    if _rate_limiter is not None and _rate_limiter_signature == signature:
        return _rate_limiter

    if settings.rate_limit_backend == "redis":
        _rate_limiter = RedisSlidingWindowRateLimiter(
            redis_url=settings.redis_url or "",
            namespace=settings.rate_limit_redis_namespace,
        )
    else:
        _rate_limiter = InMemorySlidingWindowRateLimiter()
    _rate_limiter_signature = signature
    return _rate_limiter


def _as_ip_set(raw_value: object) -> set[str]:
    if isinstance(raw_value, str):
        candidates: Iterable[object] = raw_value.split(",")
    elif isinstance(raw_value, tuple | list | set | frozenset):
        candidates = raw_value
    else:
        return set()
    return {str(item).strip() for item in candidates if str(item).strip()}


def resolve_client_ip(request: Request, *, trusted_proxy_ips: set[str]) -> str:
    """Peer address, or the first X-Forwarded-For hop when the peer is a trusted proxy."""
    peer = request.client.host if request.client and request.client.host else "unknown"
    if peer not in trusted_proxy_ips:
        return peer
    forwarded_for = request.headers.get("x-forwarded-for", "")
    return forwarded_for.split(",")[0].strip() or peer


async def enforce_rate_limit(
    request: Request,
    *,
    scope: str,
    action: str,
    max_requests: int,
) -> None:
    """Spend one request of the caller's `scope:action` budget or raise 429."""
    settings = get_settings()
    client_ip = resolve_client_ip(request, trusted_proxy_ips=_as_ip_set(settings.rate_limit_trusted_proxy_ips))
    allowed, retry_after = await get_rate_limiter().acquire(
        f"{scope}:{action}:{client_ip}",
        max_requests=max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    if not allowed:
        raise RateLimitException(f"Too many {action} requests. Try again in {retry_after} second(s).")
