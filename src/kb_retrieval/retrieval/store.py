"""Document store interfaces and concrete adapters."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from datetime import datetime, timezone
from math import sqrt
from typing import Any, Protocol

from rapidfuzz.distance import Levenshtein

from kb_retrieval.types import KnowledgeChunk, SearchHit

DEFAULT_FIELDS = ("content",)
_BASE_FIELDS = ("_id", "content", "language", "updatedAt")


@dataclass(slots=True)
class VectorQuery:
    """Approximate nearest-neighbour request."""

    index_name: str
    vector_path: str
    query_vector: list[float]
    num_candidates: int
    limit: int
    tenant_id: str | None = None
    fields: tuple[str, ...] = DEFAULT_FIELDS
    max_time_ms: int = 5000


@dataclass(slots=True)
class TextQuery:
    """Fuzzy full-text request."""

    index_name: str
    query: str
    path: str
    limit: int
    max_edits: int = 1
    prefix_length: int = 2
    tenant_id: str | None = None
    fields: tuple[str, ...] = DEFAULT_FIELDS
    max_time_ms: int = 5000


class DocumentStore(Protocol):
    """Minimal store contract for hybrid retrieval."""

    async def vector_search(self, query: VectorQuery) -> list[SearchHit]:
        """Return nearest chunks with the store's similarity score."""

    async def text_search(self, query: TextQuery) -> list[SearchHit]:
        """Return lexical matches with the store's relevance score."""

    async def recent_chunks(
        self,
        tenant_id: str | None,
        limit: int,
        fields: tuple[str, ...] = DEFAULT_FIELDS,
    ) -> list[KnowledgeChunk]:
        """Return the most recently updated chunks in the tenant scope."""


@dataclass(slots=True)
class _StoredChunk:
    chunk: KnowledgeChunk
    embedding: list[float]


class InMemoryDocumentStore:
    """Deterministic store used for tests and local prototyping.

    Vector search is exact cosine similarity. Text search scores the share of
    query terms that match a content term within the configured edit distance.
    """

    def __init__(self) -> None:
        self._records: dict[str, _StoredChunk] = {}

    def upsert(self, chunks: list[KnowledgeChunk], embeddings: list[list[float]]) -> None:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings must have the same length")
        for chunk, embedding in zip(chunks, embeddings, strict=True):
            self._records[chunk.id] = _StoredChunk(chunk=chunk, embedding=embedding)

    async def vector_search(self, query: VectorQuery) -> list[SearchHit]:
        ranked = sorted(
            (
                SearchHit(chunk=rec.chunk, score=_cosine_similarity(query.query_vector, rec.embedding))
                for rec in self._scoped(query.tenant_id)
            ),
            key=lambda hit: hit.score,
            reverse=True,
        )
        return ranked[: query.limit]

    async def text_search(self, query: TextQuery) -> list[SearchHit]:
        query_terms = _terms(query.query)
        if not query_terms:
            return []
        hits: list[SearchHit] = []
        for rec in self._scoped(query.tenant_id):
            content_terms = _terms(rec.chunk.content)
            matched = sum(
                1
                for term in query_terms
                if any(
                    _fuzzy_match(term, candidate, query.max_edits, query.prefix_length)
                    for candidate in content_terms
                )
            )
            if matched:
                hits.append(SearchHit(chunk=rec.chunk, score=matched / len(query_terms)))
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[: query.limit]

    async def recent_chunks(
        self,
        tenant_id: str | None,
        limit: int,
        fields: tuple[str, ...] = DEFAULT_FIELDS,
    ) -> list[KnowledgeChunk]:
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        records = sorted(
            self._scoped(tenant_id),
            key=lambda rec: _as_aware(rec.chunk.updated_at) or oldest,
            reverse=True,
        )
        return [rec.chunk for rec in records[:limit]]

    def _scoped(self, tenant_id: str | None) -> list[_StoredChunk]:
        if not tenant_id:
            return list(self._records.values())
        return [rec for rec in self._records.values() if rec.chunk.tenant_id == tenant_id]


class AtlasDocumentStore:
    """Aggregation-pipeline adapter for an Atlas-style collection.

    `collection` is any async collection exposing ``aggregate`` and ``find``
    (Motor, or PyMongo's async API). Tenant scoping uses `tenant_field`.
    """

    def __init__(self, collection: Any, *, tenant_field: str = "chatbot_id") -> None:
        self._collection = collection
        self.tenant_field = tenant_field

    def vector_pipeline(self, query: VectorQuery) -> list[dict[str, Any]]:
        stage: dict[str, Any] = {
            "index": query.index_name,
            "path": query.vector_path,
            "queryVector": query.query_vector,
            "numCandidates": query.num_candidates,
            "limit": query.limit,
        }
        if query.tenant_id:
            stage["filter"] = {self.tenant_field: str(query.tenant_id)}
        return [
            {"$vectorSearch": stage},
            {"$addFields": {"score": {"$meta": "vectorSearchScore"}}},
            {"$project": {**self._projection(query.fields), "score": 1}},
        ]

    def text_pipeline(self, query: TextQuery) -> list[dict[str, Any]]:
        compound: dict[str, Any] = {
            "must": [
                {
                    "text": {
                        "query": query.query,
                        "path": query.path,
                        "fuzzy": {
                            "maxEdits": query.max_edits,
                            "prefixLength": query.prefix_length,
                        },
                    }
                }
            ]
        }
        if query.tenant_id:
            compound["filter"] = [
                {"equals": {"path": self.tenant_field, "value": str(query.tenant_id)}}
            ]
        return [
            {"$search": {"index": query.index_name, "compound": compound}},
            {"$limit": query.limit},
            {"$project": {**self._projection(query.fields), "score": {"$meta": "searchScore"}}},
        ]

    async def vector_search(self, query: VectorQuery) -> list[SearchHit]:
        docs = await self._aggregate(self.vector_pipeline(query), query.max_time_ms)
        return [SearchHit(chunk=self._to_chunk(doc), score=float(doc.get("score") or 0.0)) for doc in docs]

    async def text_search(self, query: TextQuery) -> list[SearchHit]:
        docs = await self._aggregate(self.text_pipeline(query), query.max_time_ms)
        return [SearchHit(chunk=self._to_chunk(doc), score=float(doc.get("score") or 0.0)) for doc in docs]

    async def recent_chunks(
        self,
        tenant_id: str | None,
        limit: int,
        fields: tuple[str, ...] = DEFAULT_FIELDS,
    ) -> list[KnowledgeChunk]:
        flt = {self.tenant_field: str(tenant_id)} if tenant_id else {}
        cursor = (
            self._collection.find(flt, self._projection(fields))
            .sort("updatedAt", -1)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)
        return [self._to_chunk(doc) for doc in docs]

    async def _aggregate(self, pipeline: list[dict[str, Any]], max_time_ms: int) -> list[dict[str, Any]]:
        cursor = self._collection.aggregate(pipeline, maxTimeMS=max_time_ms)
        if inspect.isawaitable(cursor):
            cursor = await cursor
        return await cursor.to_list(length=None)

    def _projection(self, fields: tuple[str, ...]) -> dict[str, int]:
        names = [*_BASE_FIELDS, self.tenant_field, *fields]
        return {name: 1 for name in dict.fromkeys(names)}

    def _to_chunk(self, doc: dict[str, Any]) -> KnowledgeChunk:
        reserved = {*_BASE_FIELDS, self.tenant_field, "score"}
        tenant = doc.get(self.tenant_field)
        updated_at = doc.get("updatedAt")
        return KnowledgeChunk(
            id=str(doc["_id"]),
            content=str(doc.get("content") or ""),
            tenant_id=str(tenant) if tenant is not None else None,
            language=doc.get("language"),
            updated_at=updated_at if isinstance(updated_at, datetime) else None,
            metadata={key: value for key, value in doc.items() if key not in reserved},
        )


def _terms(text: str) -> list[str]:
    return "".join(ch if ch.isalnum() else " " for ch in text.lower()).split()


def _fuzzy_match(term: str, candidate: str, max_edits: int, prefix_length: int) -> bool:
    if term == candidate:
        return True
    if max_edits <= 0 or term[:prefix_length] != candidate[:prefix_length]:
        return False
    return Levenshtein.distance(term, candidate, score_cutoff=max_edits) <= max_edits


def _as_aware(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
