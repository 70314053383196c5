from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from kb_retrieval.cache.result_cache import ResultCache
from kb_retrieval.cache.stores import CacheStore
from kb_retrieval.config import EmbeddingConfig, RetrievalConfig, Settings, StoreConfig
from kb_retrieval.embedding.client import EmbeddingClient
from kb_retrieval.retrieval.retriever import RetrievalOrchestrator
from kb_retrieval.runtime import build_orchestrator
from kb_retrieval.types import KnowledgeChunk, ScoredCandidate, SearchHit


def make_chunk(
    chunk_id: str,
    content: str = "",
    *,
    tenant_id: str | None = "T1",
    language: str | None = "en",
    updated_at: datetime | None = None,
) -> KnowledgeChunk:
    return KnowledgeChunk(
        id=chunk_id,
        content=content or f"content of {chunk_id}",
        tenant_id=tenant_id,
        language=language,
        updated_at=updated_at,
    )


def at(day: int) -> datetime:
    return datetime(2026, 1, day, tzinfo=timezone.utc)


def vector_candidate(chunk: KnowledgeChunk, score: float, rank: int = 0) -> ScoredCandidate:
    return ScoredCandidate(chunk=chunk, score=score, vector_score=score, rank=rank, source="vector")


def text_candidate(chunk: KnowledgeChunk, score: float, rank: int = 0) -> ScoredCandidate:
    return ScoredCandidate(chunk=chunk, score=score, text_score=score, rank=rank, source="keyword")


def make_store(
    *,
    vector_hits: Sequence[SearchHit] = (),
    text_hits: Sequence[SearchHit] = (),
    recent: Sequence[KnowledgeChunk] = (),
    vector_error: Exception | None = None,
    text_error: Exception | None = None,
) -> AsyncMock:
    store = AsyncMock()
    if vector_error is not None:
        store.vector_search.side_effect = vector_error
    else:
        store.vector_search.return_value = list(vector_hits)
    if text_error is not None:
        store.text_search.side_effect = text_error
    else:
        store.text_search.return_value = list(text_hits)
    store.recent_chunks.return_value = list(recent)
    return store


class ScriptedProvider:
    """Embedding provider returning fixed-size vectors and recording calls."""

    def __init__(
        self,
        *,
        configured: bool = True,
        respond: Callable[[list[str]], list[list[float] | None]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._configured = configured
        self._respond = respond or (lambda inputs: [[1.0, 0.0, 0.5] for _ in inputs])
        self._error = error
        self.calls: list[list[str]] = []

    @property
    def configured(self) -> bool:
        return self._configured

    async def embed(self, inputs: Sequence[str]) -> list[list[float] | None]:
        self.calls.append(list(inputs))
        if self._error is not None:
            raise self._error
        return self._respond(list(inputs))


class FailingCacheStore:
    """Cache store whose every call raises."""

    async def get(self, key: str) -> str | None:
        raise ConnectionError("cache down")

    async def get_many(self, keys: Sequence[str]) -> list[str | None]:
        raise ConnectionError("cache down")

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        raise ConnectionError("cache down")

    async def delete(self, key: str) -> int:
        raise ConnectionError("cache down")


def make_embedder(
    provider: ScriptedProvider | None = None,
    cache_store: CacheStore | None = None,
    **config: object,
) -> EmbeddingClient:
    return EmbeddingClient(
        provider or ScriptedProvider(),
        ResultCache(cache_store),
        EmbeddingConfig(**config),
    )


def make_orchestrator(
    store: object,
    *,
    provider: ScriptedProvider | None = None,
    cache_store: CacheStore | None = None,
    retrieval: RetrievalConfig | None = None,
    store_config: StoreConfig | None = None,
) -> RetrievalOrchestrator:
    settings = Settings(
        retrieval=retrieval or RetrievalConfig(),
        store=store_config or StoreConfig(),
        embedding=EmbeddingConfig(),
    )
    return build_orchestrator(settings, store, provider or ScriptedProvider(), cache_store)
