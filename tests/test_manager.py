from rag_kit.index.manager import IndexManager
from rag_kit.index.schema import VectorRecord
from rag_kit.retrieve.search import HybridSearcher, contains_any

from conftest import DIMS, HashEmbedder


def _rec(rid, content, start, file_path="/abs/a.py", chunk_type="code", level="text"):
    return VectorRecord(
        id=rid,
        content=content,
        vector=HashEmbedder().embed_text(content),
        chunk_type=chunk_type,
        file_path=file_path,
        relative_path=file_path.lstrip("/"),
        service_name="svc",
        file_type="unknown",
        level=level,
        start_line=start,
        end_line=start,
    )


def test_empty_index(manager):
    assert manager.stats() == (0, 0)
    assert manager.search_all(HashEmbedder().embed_text("anything"), 5) == []
    assert manager.scan_all() == []


def test_search_all_merges_collections(manager):
    manager.index_code([_rec("c1", "payment gateway retry", 1)])
    manager.index_documents([_rec("d1", "payment gateway runbook", 0, file_path="/docs/run.md",
                                  chunk_type="document", level="markdown-section")])
    st = manager.stats()
    assert st.code_chunks == 1 and st.documents == 1

    rows = manager.search_all(HashEmbedder().embed_text("payment gateway"), 5)
    assert {r["id"] for r in rows} == {"c1", "d1"}
    assert rows[0]["distance"] <= rows[1]["distance"]

    # filter only narrows the code side
    rows = manager.search_all(HashEmbedder().embed_text("payment"), 5, where={"service_name": {"$eq": "other"}})
    assert [r["id"] for r in rows] == ["d1"]


def test_get_by_proximity(manager):
    manager.index_code([
        _rec("l1", "one", 1),
        _rec("l20", "twenty", 20),
        _rec("l40", "forty", 40),
        _rec("l60", "sixty", 60),
        _rec("l200", "far", 200),
        _rec("other", "other file", 21, file_path="/abs/b.py"),
    ])
    rows = manager.get_by_proximity("/abs/a.py", 20, 50, 3)
    assert [r["id"] for r in rows] == ["l20", "l1", "l40"]
    assert manager.get_by_proximity("/abs/a.py", 20, 50, 0) == []


def test_clear(tmp_path):
    m = IndexManager.open(tmp_path / "db", DIMS)
    m.index_code([_rec("x", "x", 1)])
    m.clear()
    assert m.stats() == (0, 0)


def test_keyword_scan_prefilters_content(manager):
    manager.index_code([_rec("c1", "PaymentService retries twice", 1), _rec("c2", "unrelated", 2)])
    manager.index_documents([_rec("d1", "payment runbook", 0, file_path="/docs/run.md",
                                  chunk_type="document", level="markdown-section")])

    rows = manager.scan_all(where_document=contains_any(["payment"]))
    assert {r["id"] for r in rows} == {"c1", "d1"}
    assert len(manager.scan_all(limit=1)) == 2  # limit is per collection

    hits = HybridSearcher(HashEmbedder(), manager).keyword(["payment"], 5)
    assert {h.id for h in hits} == {"c1", "d1"}
    assert HybridSearcher(HashEmbedder(), manager).keyword(["ledger"], 5) == []
