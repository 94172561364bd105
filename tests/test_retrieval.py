import pytest

from rag_kit.index.schema import QueryAnalysis, SearchResult
from rag_kit.retrieve.expand import ContextExpander
from rag_kit.retrieve.fuse import rrf_merge
from rag_kit.retrieve.rerank import Reranker, normalize
from rag_kit.retrieve.search import contains_any, keyword_score, semantic_score


def _r(rid, score=0.5, content="", **meta):
    return SearchResult(
        id=rid,
        content=content,
        score=score,
        metadata=meta,
        file_path=meta.get("file_path"),
        service_name=meta.get("service_name"),
        file_type=meta.get("file_type"),
    )


def test_rrf_scores():
    fused = rrf_merge([_r("a"), _r("b")], [_r("a")], limit=10)
    scores = {r.id: r.score for r in fused}
    assert scores["a"] == pytest.approx(2 / 61)
    assert scores["b"] == pytest.approx(1 / 62)
    assert [r.id for r in fused] == ["a", "b"]

    only_kw = rrf_merge([], [_r("k")], limit=10)
    assert only_kw[0].score == pytest.approx(1 / 61)


def test_rrf_keeps_semantic_payload_and_truncates():
    fused = rrf_merge([_r("a", content="semantic")], [_r("a", content="keyword"), _r("b"), _r("c")], limit=2)
    assert fused[0].content == "semantic"
    assert len(fused) == 2


def test_distance_and_keyword_scores():
    assert semantic_score(0.25) == pytest.approx(0.75)
    assert semantic_score(1.7) == 0.0
    assert keyword_score("Foo foo FOO bar", ["foo"]) == pytest.approx(3 / 5)
    assert keyword_score("foo " * 20, ["foo", "bar"]) == 1.0
    assert keyword_score("nothing", ["foo"]) == 0.0


def test_normalize_bounds_and_equal_scores():
    out = normalize([_r("a", 3.0), _r("b", 1.0), _r("c", 2.0)])
    assert [r.score for r in out] == [1.0, 0.0, 0.5]
    assert [r.score for r in normalize([_r("a", 0.3), _r("b", 0.3)])] == [1.0, 1.0]
    assert normalize([]) == []


def test_rerank_boosts_and_dedupes():
    analysis = QueryAnalysis(
        original_query="billing controller Invoice",
        keywords=["billing", "controller", "invoice"],
        service_filter="billing-api",
        file_type_filter="controller",
        entity_names=["Invoice"],
    )
    results = [
        _r("plain", 0.02, "unrelated text", service_name="other", file_type="dto"),
        _r("hit", 0.01, "class Invoice in billing", service_name="billing-api", file_type="controller"),
        _r("hit", 0.9, "duplicate dropped"),
    ]
    ranked = Reranker().rerank(results, analysis, limit=5)
    assert [r.id for r in ranked] == ["hit", "plain"]
    assert ranked[0].score == 1.0 and ranked[1].score == 0.0
    assert ranked[0].content == "class Invoice in billing"
    assert len(Reranker().rerank(results, analysis, limit=1)) == 1


class _FakeManager:
    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    def get_by_proximity(self, file_path, center_line, line_range, limit):
        self.calls.append((file_path, center_line, line_range, limit))
        return list(self.rows)


def _row(rid, start):
    return {"id": rid, "content": rid, "file_path": "/abs/a.py", "chunk_type": "code", "start_line": start}


def test_expander_excludes_seed_and_caps():
    rows = [_row("seed", 10), _row("n1", 11), _row("n2", 12), _row("n3", 13), _row("n4", 14)]
    mgr = _FakeManager(rows)
    seed = _r("seed", 0.8, file_path="/abs/a.py", chunk_type="code", start_line=10)
    doc = _r("doc", 0.7, chunk_type="document", file_path="/docs/x.md", start_line=2)
    out = ContextExpander(mgr).expand([seed, doc])

    assert [r.id for r in out] == ["seed", "doc", "n1", "n2", "n3"]
    assert all(r.score == pytest.approx(0.4) for r in out[2:])
    assert mgr.calls == [("/abs/a.py", 10, 50, 4)]


def test_expander_passes_through_locationless():
    mgr = _FakeManager([])
    results = [_r("x", 0.5, chunk_type="code"), _r("y", 0.4, chunk_type="code", file_path="/a", start_line=None)]
    assert [r.id for r in ContextExpander(mgr).expand(results)] == ["x", "y"]
    assert mgr.calls == []


def test_contains_any_covers_case_variants():
    assert contains_any([]) is None
    assert contains_any(["Pay"]) == {"$or": [{"$contains": "Pay"}, {"$contains": "pay"}, {"$contains": "PAY"}]}
