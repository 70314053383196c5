"""Cached, batched embedding client with per-item degradation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from kb_retrieval.cache.keys import text_digest
from kb_retrieval.cache.result_cache import ResultCache
from kb_retrieval.config import EmbeddingConfig
from kb_retrieval.embedding.providers import EmbeddingProvider

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Batch:
    """A contiguous slice of provider inputs starting at `start`."""

    start: int
    items: list[str]


def normalize_input(text: object, max_chars: int | None = None) -> str:
    raw = text if isinstance(text, str) else ("" if text is None else str(text))
    return raw if max_chars is None else raw[:max_chars]


def build_batches(items: Sequence[str], max_batch_size: int, max_request_chars: int) -> list[Batch]:
    """Split `items` into contiguous batches bounded by count and total characters.

    A batch over the character budget drops trailing items until it fits; an
    item that alone exceeds the budget is sent by itself.
    """
    batches: list[Batch] = []
    start = 0
    size = max(1, max_batch_size)
    while start < len(items):
        end = min(start + size, len(items))
        total = sum(len(text) for text in items[start:end])
        while end - start > 1 and total > max_request_chars:
            end -= 1
            total -= len(items[end])
        batches.append(Batch(start=start, items=list(items[start:end])))
        start = end
    return batches


class EmbeddingClient:
    """Embeds texts through a provider, consulting the shared cache first.

    Failures never raise: an item whose vector cannot be produced comes back as
    an empty list, which callers read as "no signal".
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache: ResultCache | None = None,
        config: EmbeddingConfig | None = None,
    ) -> None:
        self.provider = provider
        self.cache = cache or ResultCache()
        self.config = config or EmbeddingConfig()

    def cache_key(self, text: str) -> str:
        return self.cache.key(self.config.cache_namespace, text_digest(text))

    async def embed(self, text: str) -> list[float]:
        [vector] = await self.embed_batch([text])
        return vector

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []

        raw_texts = [normalize_input(text) for text in texts]
        results: list[list[float] | None] = [None] * len(raw_texts)

        wanted = [idx for idx, raw in enumerate(raw_texts) if raw.strip()]
        for idx, raw in enumerate(raw_texts):
            if not raw.strip():
                results[idx] = []

        if wanted:
            cached = await self.cache.get_many([self.cache_key(raw_texts[idx]) for idx in wanted])
            for idx, value in zip(wanted, cached, strict=True):
                if _is_vector(value):
                    results[idx] = value

        pending = [idx for idx in wanted if results[idx] is None]
        if pending:
            vectors = await self._request([raw_texts[idx] for idx in pending])
            writes = []
            for idx, vector in zip(pending, vectors, strict=True):
                results[idx] = vector
                if vector:
                    writes.append(
                        self.cache.set(
                            self.cache_key(raw_texts[idx]),
                            vector,
                            self.config.cache_ttl_seconds,
                        )
                    )
            if writes:
                await asyncio.gather(*writes)

        return [vector if vector is not None else [] for vector in results]

    async def _request(self, texts: list[str]) -> list[list[float]]:
        if not self.provider.configured:
            logger.warning("[embed] provider not configured, skipping %d inputs", len(texts))
            return [[] for _ in texts]

        sanitized = [normalize_input(text, self.config.max_input_chars) for text in texts]
        out: list[list[float]] = [[] for _ in sanitized]
        for batch in build_batches(
            sanitized, self.config.max_batch_size, self.config.max_request_chars
        ):
            try:
                vectors = await self.provider.embed(batch.items)
            except Exception as exc:
                logger.warning(
                    "[embed] provider call failed batch_start=%d size=%d: %s",
                    batch.start,
                    len(batch.items),
                    exc,
                )
                continue
            for offset in range(len(batch.items)):
                vector = vectors[offset] if offset < len(vectors) else None
                if _is_vector(vector):
                    out[batch.start + offset] = vector
                else:
                    logger.warning("[embed] malformed vector at index=%d", batch.start + offset)
        return out


def _is_vector(value: object) -> bool:
    if not isinstance(value, list) or not value:
        return False
    return all(isinstance(item, (int, float)) and not isinstance(item, bool) for item in value)
