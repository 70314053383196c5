"""Hybrid retriever: the public entry point of the retrieval engine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from kb_retrieval.cache.keys import retrieval_cache_key_parts
from kb_retrieval.cache.result_cache import ResultCache
from kb_retrieval.config import RetrievalConfig
from kb_retrieval.embedding.client import EmbeddingClient
from kb_retrieval.obs.tracing import timed
from kb_retrieval.retrieval.adapters import KeywordSearchAdapter, VectorSearchAdapter
from kb_retrieval.retrieval.fusion import UNKNOWN_LANGUAGE, FusionEngine
from kb_retrieval.retrieval.language import detect_language
from kb_retrieval.retrieval.selection import CascadingSelector
from kb_retrieval.types import RetrievalMeta, RetrievalResponse

logger = logging.getLogger(__name__)

LanguageDetector = Callable[[str, str | None], str]


class RetrievalOrchestrator:
    """Runs embed -> (vector || keyword) -> fuse -> select per request.

    Search depth is oversampled to at least `default_top_k` for both legs so
    that relevant chunks survive fusion; the final list is bounded by
    `rerank_limit`. Whole responses are cached by
    ``(query, tenant_id, top_k, min_score)``.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        vector_search: VectorSearchAdapter,
        keyword_search: KeywordSearchAdapter,
        fusion: FusionEngine,
        selector: CascadingSelector,
        cache: ResultCache | None = None,
        config: RetrievalConfig | None = None,
        *,
        language_detector: LanguageDetector = detect_language,
    ) -> None:
        self.embedder = embedder
        self.vector_search = vector_search
        self.keyword_search = keyword_search
        self.fusion = fusion
        self.selector = selector
        self.cache = cache or ResultCache()
        self.config = config or RetrievalConfig()
        self.language_detector = language_detector

    async def retrieve(
        self,
        query: str,
        tenant_id: str | None = None,
        top_k: int | None = None,
        min_score: float = 0.0,
        *,
        fields: Sequence[str] | None = None,
        language_hint: str | None = None,
    ) -> RetrievalResponse:
        """Return ranked knowledge chunks for `query` in the tenant's scope.

        Raises `RetrievalError` when the vector leg fails. Keyword leg, cache
        and embedding failures degrade silently (logged).
        """
        requested_k = top_k or self.config.default_top_k
        key = self.cache.key(*retrieval_cache_key_parts(query, tenant_id, requested_k, min_score))

        async def compute() -> dict:
            response = await self._search(query, tenant_id, requested_k, fields, language_hint)
            return response.to_dict()

        ttl = self.config.result_cache_ttl_seconds
        payload = await self.cache.wrap(key, ttl, compute)
        try:
            response = RetrievalResponse.from_dict(payload)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("[retrieval] malformed cached response key=%s: %s", key, exc)
            payload = await compute()
            await self.cache.set(key, payload, ttl)
            response = RetrievalResponse.from_dict(payload)

        if min_score > 0:
            response.results = [item for item in response.results if item.score >= min_score]

        meta = response.meta
        logger.info(
            "[retrieval] chunks=%d path=%s tenant=%s vector=%s text=%s",
            len(response.results),
            meta.path,
            tenant_id or "GLOBAL",
            meta.counts.get("vector", "n/a"),
            meta.counts.get("text", "n/a"),
        )
        return response

    async def _search(
        self,
        query: str,
        tenant_id: str | None,
        requested_k: int,
        fields: Sequence[str] | None,
        language_hint: str | None,
    ) -> RetrievalResponse:
        target_k = max(requested_k, self.config.default_top_k)
        query_language = self._detect_language(query, language_hint)

        with timed("embed"):
            vector = await self.embedder.embed(query)

        with timed("search"):
            vector_task = asyncio.ensure_future(
                self.vector_search.search(tenant_id, vector, target_k, fields)
            )
            text_task = asyncio.ensure_future(
                self.keyword_search.search(tenant_id, query, target_k, fields)
            )
            try:
                vector_results, text_results = await asyncio.gather(vector_task, text_task)
            except BaseException:
                # Neither leg outlives the request.
                vector_task.cancel()
                text_task.cancel()
                raise

        fused = self.fusion.fuse(vector_results, text_results, query_language)
        selection = await self.selector.select(fused, text_results, tenant_id, target_k, fields)

        return RetrievalResponse(
            results=selection.results,
            meta=RetrievalMeta(
                path=selection.path.value,
                counts={"vector": len(vector_results), "text": len(text_results)},
                query_language=query_language,
                thresholds={
                    "primary": self.config.primary_threshold,
                    "secondary": self.config.secondary_threshold,
                },
            ),
        )

    def _detect_language(self, query: str, hint: str | None) -> str:
        try:
            return self.language_detector(query, hint) or UNKNOWN_LANGUAGE
        except Exception as exc:
            logger.warning("[retrieval] language detection failed: %s", exc)
            return UNKNOWN_LANGUAGE
