from __future__ import annotations

from typing import Dict, List

from ..index.schema import SearchResult

RRF_K = 60


def rrf_merge(semantic: List[SearchResult], keyword: List[SearchResult], limit: int,
              k: int = RRF_K) -> List[SearchResult]:
    """
    Reciprocal rank fusion: each list contributes 1/(k + rank), ranks start at 1.
    When an id is in both lists the semantic entry's payload is kept.
    """
    scores: Dict[str, float] = {}
    entries: Dict[str, SearchResult] = {}
    for hits in (semantic, keyword):
        for rank, h in enumerate(hits, start=1):
            scores[h.id] = scores.get(h.id, 0.0) + 1.0 / (k + rank)
            entries.setdefault(h.id, h)
    merged = [entries[cid].with_score(s) for cid, s in scores.items()]
    merged.sort(key=lambda r: r.score, reverse=True)
    return merged[:limit]
