from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from ..index.embeddings import EmbeddingProvider
from ..index.manager import IndexManager
from ..index.schema import SearchResult
from ..index.store import Where
from .fuse import RRF_K, rrf_merge

logger = logging.getLogger(__name__)

KEYWORD_FETCH_FACTOR = 3


def semantic_score(distance: float) -> float:
    return 1.0 - min(float(distance), 1.0)


def count_occurrences(content: str, keywords: Sequence[str]) -> int:
    low = content.lower()
    return sum(low.count(kw.lower()) for kw in keywords if kw)


def keyword_score(content: str, keywords: Sequence[str]) -> float:
    hits = count_occurrences(content, keywords)
    return min(hits / max(len(keywords) * 5, 1), 1.0)


def contains_any(keywords: Sequence[str]) -> Optional[Where]:
    """Chroma `where_document` matching any case variant of any keyword (`$contains` is case-sensitive)."""
    variants = list(dict.fromkeys(
        v for kw in keywords if kw for v in (kw, kw.lower(), kw.capitalize(), kw.upper())
    ))
    clauses = [{"$contains": v} for v in variants]
    if not clauses:
        return None
    return clauses[0] if len(clauses) == 1 else {"$or": clauses}


class HybridSearcher:
    def __init__(self, embedder: EmbeddingProvider, manager: IndexManager, rrf_k: int = RRF_K):
        self.embedder = embedder
        self.manager = manager
        self.rrf_k = rrf_k

    def semantic(self, query: str, limit: int, where: Optional[Where] = None) -> List[SearchResult]:
        vector = self.embedder.embed_text(query)
        rows = self.manager.search_all(vector, limit, where)
        return [SearchResult.from_row(r, semantic_score(r["distance"])) for r in rows]

    def keyword(self, keywords: Sequence[str], limit: int,
                where: Optional[Where] = None) -> List[SearchResult]:
        if not keywords:
            return []
        scored = []
        rows = self.manager.scan_all(where, contains_any(keywords), limit * KEYWORD_FETCH_FACTOR)
        for row in rows:
            if count_occurrences(row.get("content") or "", keywords) == 0:
                continue
            scored.append(SearchResult.from_row(row, keyword_score(row["content"], keywords)))
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:limit]

    def search(self, query: str, keywords: Sequence[str], limit: int,
               where: Optional[Where] = None) -> List[SearchResult]:
        with ThreadPoolExecutor(max_workers=2) as pool:
            sem_f = pool.submit(self.semantic, query, limit, where)
            kw_f = pool.submit(self.keyword, keywords, limit, where)
            sem, kw = sem_f.result(), kw_f.result()
        logger.debug("hybrid search: %d semantic, %d keyword hits", len(sem), len(kw))
        return rrf_merge(sem, kw, limit, k=self.rrf_k)
