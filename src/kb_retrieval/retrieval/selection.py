"""Cascading selection over fused candidates."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from kb_retrieval.config import RetrievalConfig
from kb_retrieval.retrieval.store import DEFAULT_FIELDS, DocumentStore
from kb_retrieval.types import ScoredCandidate

logger = logging.getLogger(__name__)


class SelectionPath(str, Enum):
    FUSION_PRIMARY = "fusion-primary"
    FUSION_SECONDARY = "fusion-secondary"
    KEYWORD = "keyword"
    FALLBACK = "fallback"


@dataclass(slots=True)
class Selection:
    results: list[ScoredCandidate]
    path: SelectionPath


class CascadingSelector:
    """Picks the final candidates with progressively looser strategies.

    Order: primary threshold, secondary threshold, raw keyword hits, then the
    tenant's most recently updated chunks. A strategy runs only when every
    earlier one produced nothing. The chosen list is cut to `rerank_limit`; the
    fallback asks the store for the larger of `rerank_limit` and
    `fallback_limit`.
    """

    def __init__(self, store: DocumentStore, config: RetrievalConfig | None = None) -> None:
        self.store = store
        self.config = config or RetrievalConfig()

    async def select(
        self,
        fused: list[ScoredCandidate],
        text_results: list[ScoredCandidate],
        tenant_id: str | None,
        target_k: int,
        fields: Sequence[str] | None = None,
    ) -> Selection:
        path = SelectionPath.FUSION_PRIMARY
        results = self._above(fused, self.config.primary_threshold, target_k)

        if not results:
            results = self._above(fused, self.config.secondary_threshold, target_k)
            path = SelectionPath.FUSION_SECONDARY

        if not results and self.config.keyword_enabled and text_results:
            results = self._keyword(text_results, target_k)
            path = SelectionPath.KEYWORD

        if not results:
            results = await self._fallback(tenant_id, fields)
            path = SelectionPath.FALLBACK

        return Selection(results=results[: self.config.rerank_limit], path=path)

    @staticmethod
    def _above(
        fused: list[ScoredCandidate], threshold: float, target_k: int
    ) -> list[ScoredCandidate]:
        return [item for item in fused if item.score >= threshold][:target_k]

    @staticmethod
    def _keyword(text_results: list[ScoredCandidate], target_k: int) -> list[ScoredCandidate]:
        unique: dict[str, ScoredCandidate] = {}
        for item in text_results:
            unique.setdefault(item.chunk.id, item)
        return [
            ScoredCandidate(
                chunk=item.chunk,
                score=item.text_score or item.score,
                text_score=item.text_score or item.score,
                rank=i + 1,
                source="keyword",
            )
            for i, item in enumerate(list(unique.values())[:target_k])
        ]

    async def _fallback(
        self, tenant_id: str | None, fields: Sequence[str] | None
    ) -> list[ScoredCandidate]:
        try:
            chunks = await self.store.recent_chunks(
                str(tenant_id) if tenant_id else None,
                max(self.config.rerank_limit, self.config.fallback_limit),
                tuple(fields or DEFAULT_FIELDS),
            )
        except Exception as exc:
            logger.warning(
                "[retrieval] fallback query failed tenant=%s: %s", tenant_id or "GLOBAL", exc
            )
            return []
        return [
            ScoredCandidate(chunk=chunk, score=0.0, rank=i + 1, source="fallback")
            for i, chunk in enumerate(chunks)
        ]
