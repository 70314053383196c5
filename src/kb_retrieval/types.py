"""Shared domain models."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class KnowledgeChunk:
    """A stored knowledge-base passage as projected out of the document store."""

    id: str
    content: str
    tenant_id: str | None = None
    language: str | None = None
    updated_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SearchHit:
    """A document store match with the store's native score."""

    chunk: KnowledgeChunk
    score: float


@dataclass(slots=True)
class ScoredCandidate:
    """A retrieval candidate with per-leg and combined scores."""

    chunk: KnowledgeChunk
    score: float
    vector_score: float = 0.0
    text_score: float = 0.0
    rank: int = 0
    source: str = "fusion"

    @property
    def id(self) -> str:
        return self.chunk.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.chunk.id,
            "content": self.chunk.content,
            "score": self.score,
            "vectorScore": self.vector_score,
            "textScore": self.text_score,
            "language": self.chunk.language,
            "tenantId": self.chunk.tenant_id,
            "updatedAt": self.chunk.updated_at.isoformat() if self.chunk.updated_at else None,
            "rank": self.rank,
            "source": self.source,
            "metadata": _json_safe(self.chunk.metadata),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ScoredCandidate":
        chunk = KnowledgeChunk(
            id=str(payload["id"]),
            content=str(payload.get("content", "")),
            tenant_id=payload.get("tenantId"),
            language=payload.get("language"),
            updated_at=_parse_datetime(payload.get("updatedAt")),
            metadata=dict(payload.get("metadata") or {}),
        )
        return cls(
            chunk=chunk,
            score=float(payload.get("score", 0.0)),
            vector_score=float(payload.get("vectorScore", 0.0)),
            text_score=float(payload.get("textScore", 0.0)),
            rank=int(payload.get("rank", 0)),
            source=str(payload.get("source", "fusion")),
        )


@dataclass(slots=True)
class RetrievalMeta:
    """Observability block returned alongside results."""

    path: str
    counts: dict[str, int]
    query_language: str
    thresholds: dict[str, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "counts": dict(self.counts),
            "queryLanguage": self.query_language,
            "thresholds": dict(self.thresholds),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RetrievalMeta":
        return cls(
            path=str(payload.get("path", "unknown")),
            counts={k: int(v) for k, v in (payload.get("counts") or {}).items()},
            query_language=str(payload.get("queryLanguage", "unknown")),
            thresholds={k: float(v) for k, v in (payload.get("thresholds") or {}).items()},
        )


@dataclass(slots=True)
class RetrievalResponse:
    """Final ranked results plus metadata for one retrieval request."""

    results: list[ScoredCandidate]
    meta: RetrievalMeta

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [item.to_dict() for item in self.results],
            "meta": self.meta.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RetrievalResponse":
        return cls(
            results=[ScoredCandidate.from_dict(item) for item in payload.get("results") or []],
            meta=RetrievalMeta.from_dict(payload.get("meta") or {}),
        )


def _json_safe(metadata: dict[str, Any]) -> dict[str, Any]:
    # ObjectId and datetime values become strings, as on a cache hit.
    return json.loads(json.dumps(metadata, default=str))


def _parse_datetime(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
