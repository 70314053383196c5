"""Explicit construction and lifecycle of the retrieval engine's clients."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import TracebackType

from kb_retrieval.cache.result_cache import ResultCache
from kb_retrieval.cache.stores import CacheStore, RedisCacheStore
from kb_retrieval.config import Settings
from kb_retrieval.embedding.client import EmbeddingClient
from kb_retrieval.embedding.providers import EmbeddingProvider, HttpEmbeddingProvider
from kb_retrieval.obs.logging import configure_logging
from kb_retrieval.retrieval.adapters import KeywordSearchAdapter, VectorSearchAdapter
from kb_retrieval.retrieval.fusion import FusionEngine
from kb_retrieval.retrieval.retriever import RetrievalOrchestrator
from kb_retrieval.retrieval.selection import CascadingSelector
from kb_retrieval.retrieval.store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RetrievalRuntime:
    """Owns the clients behind one `RetrievalOrchestrator`.

    Use ``async with await create_runtime(...)`` or call `aclose()` on shutdown.
    """

    settings: Settings
    orchestrator: RetrievalOrchestrator
    cache_store: CacheStore | None
    provider: EmbeddingProvider

    async def aclose(self) -> None:
        if isinstance(self.cache_store, RedisCacheStore):
            await self.cache_store.close()
        if isinstance(self.provider, HttpEmbeddingProvider):
            await self.provider.aclose()

    async def __aenter__(self) -> "RetrievalRuntime":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def build_orchestrator(
    settings: Settings,
    store: DocumentStore,
    provider: EmbeddingProvider,
    cache_store: CacheStore | None = None,
) -> RetrievalOrchestrator:
    """Wire every component from one settings record; performs no I/O."""
    cache = ResultCache(cache_store, settings.cache)
    retrieval = settings.retrieval
    return RetrievalOrchestrator(
        embedder=EmbeddingClient(provider, cache, settings.embedding),
        vector_search=VectorSearchAdapter(store, retrieval, settings.store),
        keyword_search=KeywordSearchAdapter(store, retrieval, settings.store),
        fusion=FusionEngine(retrieval),
        selector=CascadingSelector(store, retrieval),
        cache=cache,
        config=retrieval,
    )


async def create_runtime(
    settings: Settings,
    store: DocumentStore,
    *,
    provider: EmbeddingProvider | None = None,
    cache_store: CacheStore | None = None,
    configure_logs: bool = False,
) -> RetrievalRuntime:
    """Build the engine, connecting to Redis when `settings.cache.redis_url` is set.

    An explicit `cache_store` takes precedence over the configured URL. With
    `configure_logs`, the root logger is set up at `settings.log_level` first;
    leave it off when the host process owns logging.
    """
    if configure_logs:
        configure_logging(settings.log_level)

    if cache_store is None and settings.cache.redis_url:
        redis_store = RedisCacheStore(settings.cache.redis_url)
        await redis_store.init()
        cache_store = redis_store
    elif cache_store is None:
        logger.info("[runtime] no cache store configured, caching disabled")

    provider = provider or HttpEmbeddingProvider(settings.embedding)
    if not provider.configured:
        logger.warning("[runtime] embedding provider not configured, queries embed to []")

    return RetrievalRuntime(
        settings=settings,
        orchestrator=build_orchestrator(settings, store, provider, cache_store),
        cache_store=cache_store,
        provider=provider,
    )
