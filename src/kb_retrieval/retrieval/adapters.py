"""Vector and keyword search legs over a `DocumentStore`."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum

from kb_retrieval.config import RetrievalConfig, StoreConfig
from kb_retrieval.errors import RetrievalError
from kb_retrieval.retrieval.store import DEFAULT_FIELDS, DocumentStore, TextQuery, VectorQuery
from kb_retrieval.types import ScoredCandidate, SearchHit

logger = logging.getLogger(__name__)


class FailurePolicy(str, Enum):
    """What a search leg does when the store call fails."""

    PROPAGATE = "propagate"
    DEGRADE = "degrade"


class SearchAdapter:
    """Base for one retrieval leg; applies the leg's `FailurePolicy`."""

    leg = "search"
    failure_policy = FailurePolicy.PROPAGATE

    def __init__(
        self,
        store: DocumentStore,
        config: RetrievalConfig | None = None,
        store_config: StoreConfig | None = None,
    ) -> None:
        self.store = store
        self.config = config or RetrievalConfig()
        self.store_config = store_config or StoreConfig()

    async def _run(
        self, call: Callable[[], Awaitable[list[SearchHit]]], index_name: str
    ) -> list[SearchHit]:
        try:
            return await call()
        except Exception as exc:
            if self.failure_policy is FailurePolicy.DEGRADE:
                logger.warning(
                    "[retrieval] %s search failed index=%s: %s", self.leg, index_name, exc
                )
                return []
            raise RetrievalError(
                f"{self.leg} search failed index={index_name}: {exc}", leg=self.leg
            ) from exc


class VectorSearchAdapter(SearchAdapter):
    """Semantic leg. Store errors surface as `RetrievalError`."""

    leg = "vector"
    failure_policy = FailurePolicy.PROPAGATE

    def num_candidates(self, k: int) -> int:
        return max(k * self.config.candidate_multiplier, self.config.min_candidates)

    async def search(
        self,
        tenant_id: str | None,
        vector: Sequence[float] | None,
        k: int,
        fields: Sequence[str] | None = None,
    ) -> list[ScoredCandidate]:
        if not vector:
            return []
        query = VectorQuery(
            index_name=self.store_config.vector_index,
            vector_path=self.store_config.vector_path,
            query_vector=list(vector),
            num_candidates=self.num_candidates(k),
            limit=k,
            tenant_id=str(tenant_id) if tenant_id else None,
            fields=tuple(fields or DEFAULT_FIELDS),
            max_time_ms=self.store_config.max_time_ms,
        )
        hits = await self._run(lambda: self.store.vector_search(query), query.index_name)
        return self._candidates(hits)

    def _candidates(self, hits: list[SearchHit]) -> list[ScoredCandidate]:
        return [
            ScoredCandidate(
                chunk=hit.chunk,
                score=hit.score or 0.0,
                vector_score=hit.score or 0.0,
                rank=i + 1,
                source="vector",
            )
            for i, hit in enumerate(hits)
        ]


class KeywordSearchAdapter(SearchAdapter):
    """Lexical leg. Best-effort: any failure yields no candidates."""

    leg = "text"
    failure_policy = FailurePolicy.DEGRADE

    @property
    def enabled(self) -> bool:
        return self.config.keyword_enabled and bool(self.store_config.text_index)

    async def search(
        self,
        tenant_id: str | None,
        text: str | None,
        k: int,
        fields: Sequence[str] | None = None,
    ) -> list[ScoredCandidate]:
        if not self.enabled or not text or not text.strip():
            return []
        query = TextQuery(
            index_name=self.store_config.text_index,
            query=text,
            path=self.store_config.content_path,
            limit=max(k, self.config.default_top_k),
            max_edits=self.store_config.fuzzy_max_edits,
            prefix_length=self.store_config.fuzzy_prefix_length,
            tenant_id=str(tenant_id) if tenant_id else None,
            fields=tuple(fields or DEFAULT_FIELDS),
            max_time_ms=self.store_config.max_time_ms,
        )
        hits = await self._run(lambda: self.store.text_search(query), query.index_name)
        return self._candidates(hits)

    def _candidates(self, hits: list[SearchHit]) -> list[ScoredCandidate]:
        return [
            ScoredCandidate(
                chunk=hit.chunk,
                score=hit.score or 0.0,
                text_score=hit.score or 0.0,
                rank=i + 1,
                source="keyword",
            )
            for i, hit in enumerate(hits)
        ]
