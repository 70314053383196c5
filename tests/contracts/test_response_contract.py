import json
from datetime import datetime, timezone

import pytest

from kb_retrieval.cache.stores import InMemoryCacheStore
from kb_retrieval.types import RetrievalResponse, SearchHit
from support import make_chunk, make_orchestrator, make_store

CANDIDATE_KEYS = {
    "id",
    "content",
    "score",
    "vectorScore",
    "textScore",
    "language",
    "tenantId",
    "updatedAt",
    "rank",
    "source",
    "metadata",
}
META_KEYS = {"path", "counts", "queryLanguage", "thresholds"}
PATHS = {"fusion-primary", "fusion-secondary", "keyword", "fallback"}


@pytest.mark.asyncio
async def test_response_payload_shape_is_stable() -> None:
    store = make_store(
        vector_hits=[SearchHit(make_chunk("refund"), 0.9)],
        text_hits=[SearchHit(make_chunk("refund"), 0.4)],
    )

    response = await make_orchestrator(store).retrieve("refund policy", "T1")
    payload = response.to_dict()

    assert set(payload) == {"results", "meta"}
    assert set(payload["meta"]) == META_KEYS
    assert payload["meta"]["path"] in PATHS
    assert set(payload["meta"]["counts"]) == {"vector", "text"}
    for item in payload["results"]:
        assert set(item) == CANDIDATE_KEYS
    assert json.loads(json.dumps(payload)) == payload


@pytest.mark.asyncio
async def test_cached_payload_round_trips_to_the_same_response() -> None:
    cache_store = InMemoryCacheStore()
    store = make_store(vector_hits=[SearchHit(make_chunk("refund"), 0.9)])
    orchestrator = make_orchestrator(store, cache_store=cache_store)

    fresh = await orchestrator.retrieve("refund policy", "T1")
    [raw] = [value for key, (value, _) in cache_store._values.items() if ":vs:" in key]

    assert RetrievalResponse.from_dict(json.loads(raw)).to_dict() == fresh.to_dict()


@pytest.mark.asyncio
async def test_every_result_carries_non_negative_scores() -> None:
    store = make_store(
        vector_hits=[SearchHit(make_chunk(f"v{i}"), 0.6 - i * 0.1) for i in range(5)],
        text_hits=[SearchHit(make_chunk(f"t{i}"), 0.3) for i in range(3)],
    )

    response = await make_orchestrator(store).retrieve("refund policy", "T1")

    scores = [item.score for item in response.results]
    assert scores == sorted(scores, reverse=True)
    assert all(score >= 0 for score in scores)
    assert len({item.id for item in response.results}) == len(response.results)


@pytest.mark.asyncio
async def test_fresh_and_cached_payloads_match_for_store_metadata() -> None:
    updated = datetime(2026, 3, 4, 5, 6, tzinfo=timezone.utc)
    chunk = make_chunk("refund", updated_at=updated)
    chunk.metadata = {"indexedAt": updated, "tags": ("billing",)}
    store = make_store(vector_hits=[SearchHit(chunk, 0.9)])
    orchestrator = make_orchestrator(store, cache_store=InMemoryCacheStore())

    fresh = await orchestrator.retrieve("refund policy", "T1")
    cached = await orchestrator.retrieve("refund policy", "T1")

    assert store.vector_search.await_count == 1
    assert fresh.to_dict() == cached.to_dict()
    assert fresh.results[0].chunk.metadata == {
        "indexedAt": "2026-03-04 05:06:00+00:00",
        "tags": ["billing"],
    }
    assert fresh.results[0].chunk.updated_at == updated
    assert cached.results[0].chunk.updated_at == updated
    assert json.loads(json.dumps(fresh.to_dict())) == fresh.to_dict()
