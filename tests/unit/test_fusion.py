from kb_retrieval.config import RetrievalConfig
from kb_retrieval.retrieval.fusion import FusionEngine
from support import make_chunk, text_candidate, vector_candidate


def test_fusion_merges_legs_by_chunk_id() -> None:
    shared = make_chunk("c1")
    vector_only = make_chunk("c2")
    text_only = make_chunk("c3")

    fused = FusionEngine().fuse(
        [vector_candidate(shared, 0.5), vector_candidate(vector_only, 0.4)],
        [text_candidate(shared, 0.3), text_candidate(text_only, 0.2)],
    )

    ids = [item.id for item in fused]
    assert sorted(ids) == ["c1", "c2", "c3"]
    assert len(set(ids)) == len(ids)

    by_id = {item.id: item for item in fused}
    assert by_id["c1"].vector_score == 0.5
    assert by_id["c1"].text_score == 0.3
    assert by_id["c1"].score == 0.5 * 1.2 + 0.3
    assert by_id["c2"].text_score == 0.0
    assert by_id["c3"].vector_score == 0.0
    assert by_id["c3"].score == 0.2


def test_fusion_output_is_sorted_and_ranked() -> None:
    fused = FusionEngine().fuse(
        [vector_candidate(make_chunk("low"), 0.1), vector_candidate(make_chunk("high"), 0.9)],
        [text_candidate(make_chunk("mid"), 0.5)],
    )

    assert [item.id for item in fused] == ["high", "mid", "low"]
    assert [item.rank for item in fused] == [1, 2, 3]
    assert all(item.source == "fusion" for item in fused)


def test_fusion_is_deterministic() -> None:
    engine = FusionEngine()
    vector = [vector_candidate(make_chunk(f"v{i}"), 0.3) for i in range(5)]
    text = [text_candidate(make_chunk(f"v{i}"), 0.1 * i) for i in range(3)]

    first = engine.fuse(vector, text, "en")
    second = engine.fuse(vector, text, "en")

    assert [(item.id, item.score) for item in first] == [(item.id, item.score) for item in second]


def test_fusion_ties_prefer_better_vector_rank_then_text_rank() -> None:
    a, b, c = make_chunk("a"), make_chunk("b"), make_chunk("c")

    fused = FusionEngine().fuse(
        [vector_candidate(b, 0.5), vector_candidate(a, 0.5)],
        [text_candidate(c, 0.6)],
    )
    assert [item.id for item in fused] == ["b", "a", "c"]

    only_text = FusionEngine().fuse([], [text_candidate(b, 0.4), text_candidate(a, 0.4)])
    assert [item.id for item in only_text] == ["b", "a"]

    equal_vector = FusionEngine().fuse([vector_candidate(a, 0.5), vector_candidate(b, 0.5)], [])
    assert [item.id for item in equal_vector] == ["a", "b"]


def test_raising_a_leg_score_never_lowers_fused_rank() -> None:
    engine = FusionEngine()
    target = make_chunk("target")
    others = [make_chunk(f"o{i}") for i in range(4)]
    text = [text_candidate(chunk, 0.2 + 0.1 * i) for i, chunk in enumerate(others)]

    def _position(vector_score: float) -> int:
        fused = engine.fuse([vector_candidate(target, vector_score)], text)
        return [item.id for item in fused].index("target")

    positions = [_position(score) for score in (0.0, 0.2, 0.4, 0.6, 0.8)]
    assert positions == sorted(positions, reverse=True)
    assert positions[-1] == 0


def test_duplicate_id_within_a_leg_keeps_best_ranked_occurrence() -> None:
    chunk = make_chunk("dup")

    fused = FusionEngine().fuse(
        [vector_candidate(chunk, 0.9), vector_candidate(chunk, 0.1)],
        [],
    )

    assert len(fused) == 1
    assert fused[0].vector_score == 0.9


def test_language_match_breaks_otherwise_equal_scores() -> None:
    english = make_chunk("en-chunk", language="en")
    spanish = make_chunk("es-chunk", language="es")

    fused = FusionEngine().fuse(
        [vector_candidate(english, 0.5), vector_candidate(spanish, 0.5)],
        [],
        query_language="es",
    )

    assert fused[0].id == "es-chunk"
    assert fused[0].score == 0.5 * 1.2 + 0.05
    assert fused[1].score == 0.5 * 1.2


def test_unknown_query_language_adds_no_bonus() -> None:
    engine = FusionEngine(RetrievalConfig(language_boost=0.3))
    chunk = make_chunk("c1", language="unknown")

    assert engine.language_bonus(chunk, "unknown") == 0.0
    assert engine.language_bonus(chunk, None) == 0.0
    assert engine.language_bonus(make_chunk("c2", language=None), "en") == 0.0
    assert engine.language_bonus(make_chunk("c3", language="en"), "en") == 0.3


def test_fusion_of_empty_legs_is_empty() -> None:
    assert FusionEngine().fuse([], []) == []
