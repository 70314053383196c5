"""JSON value cache with TTLs over an optional `CacheStore`."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from kb_retrieval.cache.stores import CacheStore
from kb_retrieval.config import CacheConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResultCache:
    """Namespaced JSON cache that never raises to its callers.

    A missing store, a store error, or an undecodable payload all behave as a
    cache miss (reads) or a no-op (writes).
    """

    def __init__(self, store: CacheStore | None = None, config: CacheConfig | None = None) -> None:
        self.store = store
        self.config = config or CacheConfig()

    @property
    def enabled(self) -> bool:
        if self.store is None:
            return False
        return bool(getattr(self.store, "available", True))

    def key(self, *parts: object) -> str:
        return ":".join([self.config.prefix, *(str(part) for part in parts)])

    async def get(self, key: str) -> Any | None:
        if not self.enabled:
            return None
        try:
            raw = await self.store.get(key)
        except Exception as exc:
            logger.warning("[cache] get failed key=%s: %s", key, exc)
            return None
        return _decode(key, raw)

    async def get_many(self, keys: Sequence[str]) -> list[Any | None]:
        if not keys:
            return []
        if not self.enabled:
            return [None] * len(keys)
        try:
            raws = await self.store.get_many(keys)
        except Exception as exc:
            logger.warning("[cache] bulk get failed keys=%d: %s", len(keys), exc)
            return [None] * len(keys)
        if len(raws) != len(keys):
            logger.warning("[cache] bulk get returned %d values for %d keys", len(raws), len(keys))
            return [None] * len(keys)
        return [_decode(key, raw) for key, raw in zip(keys, raws, strict=True)]

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        if not self.enabled:
            return False
        ttl = self.config.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            payload = json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
            await self.store.set(key, payload, ttl)
        except Exception as exc:
            logger.warning("[cache] set failed key=%s: %s", key, exc)
            return False
        return True

    async def delete(self, key: str) -> bool:
        if not self.enabled:
            return False
        try:
            return await self.store.delete(key) > 0
        except Exception as exc:
            logger.warning("[cache] delete failed key=%s: %s", key, exc)
            return False

    async def wrap(
        self,
        key: str,
        ttl_seconds: int | None,
        compute: Callable[[], Awaitable[T]],
    ) -> T:
        """Return the cached value for `key`, computing and storing it on a miss.

        Exceptions from `compute` propagate and nothing is stored.
        """
        hit = await self.get(key)
        if hit is not None:
            logger.debug("[cache] HIT %s", key)
            return hit
        logger.debug("[cache] MISS %s", key)
        value = await compute()
        if not _is_empty(value):
            await self.set(key, value, ttl_seconds)
        return value


def _decode(key: str, raw: str | bytes | None) -> Any | None:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("[cache] malformed payload key=%s: %s", key, exc)
        return None


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, dict, str)):
        return len(value) == 0
    return False
