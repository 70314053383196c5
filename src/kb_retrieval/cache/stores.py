"""Cache store backends.

`RedisCacheStore` is the production backend. `InMemoryCacheStore` keeps the
same contract for tests and local prototyping.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Protocol
from urllib.parse import urlparse

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    """Minimal string key/value contract used by `ResultCache`."""

    async def get(self, key: str) -> str | None:
        """Return the raw value or None."""

    async def get_many(self, keys: Sequence[str]) -> list[str | None]:
        """Return raw values in key order, None for misses."""

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a raw value, expiring after `ttl_seconds` when given."""

    async def delete(self, key: str) -> int:
        """Remove a key and return how many were removed."""


class RedisCacheStore:
    """Redis backend over a reconnecting asyncio client.

    The client is created by `init()` and released by `close()`. `init()` never
    raises: until it has built a client (an unparseable URL leaves none) the
    store reports itself unavailable.
    """

    def __init__(
        self,
        url: str,
        *,
        socket_timeout: float = 2.0,
        retries: int = 3,
    ) -> None:
        self.url = url
        self._socket_timeout = socket_timeout
        self._retries = retries
        self._client: Redis | None = None

    @property
    def available(self) -> bool:
        return self._client is not None

    async def init(self) -> None:
        if self._client is not None:
            return
        try:
            client = Redis.from_url(
                self.url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_timeout,
                retry=Retry(ExponentialBackoff(cap=5.0, base=0.1), self._retries),
                retry_on_error=[RedisConnectionError, RedisTimeoutError],
            )
        except (RedisError, ValueError) as exc:
            logger.warning("[redis] invalid url, caching disabled: %s", exc)
            return
        self._client = client
        parsed = urlparse(self.url)
        host = f"{parsed.hostname}:{parsed.port or 6379}"
        try:
            await self._client.ping()
        except RedisError as exc:
            # The client reconnects on the next command.
            logger.warning("[redis] connect failed host=%s: %s", host, exc)
            return
        logger.info("[redis] ready host=%s tls=%s", host, parsed.scheme == "rediss")

    async def close(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        await client.aclose()

    async def get(self, key: str) -> str | None:
        return await self._require().get(key)

    async def get_many(self, keys: Sequence[str]) -> list[str | None]:
        if not keys:
            return []
        return list(await self._require().mget(list(keys)))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        client = self._require()
        if ttl_seconds and ttl_seconds > 0:
            await client.setex(key, ttl_seconds, value)
        else:
            await client.set(key, value)

    async def delete(self, key: str) -> int:
        return int(await self._require().delete(key))

    def _require(self) -> Redis:
        if self._client is None:
            raise RuntimeError("RedisCacheStore.init() has not been awaited")
        return self._client


class InMemoryCacheStore:
    """Process-local TTL store used for tests and local prototyping."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._values: dict[str, tuple[str, float | None]] = {}

    def __len__(self) -> int:
        return len(self._values)

    async def get(self, key: str) -> str | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._values[key]
            return None
        return value

    async def get_many(self, keys: Sequence[str]) -> list[str | None]:
        return [await self.get(key) for key in keys]

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds and ttl_seconds > 0 else None
        self._values[key] = (value, expires_at)

    async def delete(self, key: str) -> int:
        return 1 if self._values.pop(key, None) is not None else 0
