"""Score fusion for the vector and keyword retrieval legs."""

from __future__ import annotations

from dataclasses import dataclass
from math import inf

from kb_retrieval.config import RetrievalConfig
from kb_retrieval.types import KnowledgeChunk, ScoredCandidate

UNKNOWN_LANGUAGE = "unknown"


@dataclass(slots=True)
class _FusedEntry:
    chunk: KnowledgeChunk
    vector_score: float = 0.0
    text_score: float = 0.0
    vector_rank: float = inf
    text_rank: float = inf


class FusionEngine:
    """Merges leg results by chunk id and ranks them by a weighted score."""

    def __init__(self, config: RetrievalConfig | None = None) -> None:
        self.config = config or RetrievalConfig()

    def fuse(
        self,
        vector_results: list[ScoredCandidate],
        text_results: list[ScoredCandidate],
        query_language: str | None = None,
    ) -> list[ScoredCandidate]:
        """Fuse both legs into one list sorted by combined score.

        combined = vector_score * vector_weight + text_score + language bonus

        The language bonus is added only when the chunk language equals a known
        query language. Ties go to the better vector rank, then the better
        text rank. A chunk missing from a leg scores 0.0 for that leg.
        """
        merged: dict[str, _FusedEntry] = {}

        for rank, item in enumerate(vector_results):
            entry = merged.setdefault(item.chunk.id, _FusedEntry(chunk=item.chunk))
            if rank < entry.vector_rank:
                entry.vector_score = _leg_score(item.vector_score, item.score)
                entry.vector_rank = rank

        for rank, item in enumerate(text_results):
            entry = merged.setdefault(item.chunk.id, _FusedEntry(chunk=item.chunk))
            if rank < entry.text_rank:
                entry.text_score = _leg_score(item.text_score, item.score)
                entry.text_rank = rank

        scored = [(self._combined(entry, query_language), entry) for entry in merged.values()]
        scored.sort(key=lambda pair: (-pair[0], pair[1].vector_rank, pair[1].text_rank))

        return [
            ScoredCandidate(
                chunk=entry.chunk,
                score=combined,
                vector_score=entry.vector_score,
                text_score=entry.text_score,
                rank=i + 1,
                source="fusion",
            )
            for i, (combined, entry) in enumerate(scored)
        ]

    def language_bonus(self, chunk: KnowledgeChunk, query_language: str | None) -> float:
        if not query_language or query_language == UNKNOWN_LANGUAGE:
            return 0.0
        if chunk.language and chunk.language == query_language:
            return self.config.language_boost
        return 0.0

    def _combined(self, entry: _FusedEntry, query_language: str | None) -> float:
        base = entry.vector_score * self.config.vector_weight + entry.text_score
        return base + self.language_bonus(entry.chunk, query_language)


def _leg_score(specific: float, generic: float) -> float:
    # Leg adapters fill both; hand-built candidates may only carry `score`.
    return specific if specific else (generic or 0.0)
