from __future__ import annotations

from typing import List

from ..index.schema import QueryAnalysis, SearchResult

SERVICE_MATCH_BOOST = 0.2
FILE_TYPE_MATCH_BOOST = 0.15
ENTITY_NAME_BOOST = 0.1
ARCHITECTURAL_FILE_TYPE_BOOST = 0.1
KEYWORD_OVERLAP_BOOST = 0.05

ARCHITECTURAL_FILE_TYPES = {"module", "service"}


def dedupe(results: List[SearchResult]) -> List[SearchResult]:
    seen = set()
    out = []
    for r in results:
        if r.id in seen:
            continue
        seen.add(r.id)
        out.append(r)
    return out


def boost_for(result: SearchResult, analysis: QueryAnalysis) -> float:
    boost = 0.0
    if analysis.service_filter and result.service_name == analysis.service_filter:
        boost += SERVICE_MATCH_BOOST
    if analysis.file_type_filter and result.file_type == analysis.file_type_filter:
        boost += FILE_TYPE_MATCH_BOOST
    content = result.content.lower()
    boost += ENTITY_NAME_BOOST * sum(1 for n in analysis.entity_names if n.lower() in content)
    if analysis.is_architectural and result.file_type in ARCHITECTURAL_FILE_TYPES:
        boost += ARCHITECTURAL_FILE_TYPE_BOOST
    boost += KEYWORD_OVERLAP_BOOST * sum(1 for kw in analysis.keywords if kw.lower() in content)
    return boost


def normalize(results: List[SearchResult]) -> List[SearchResult]:
    """Min-max to [0, 1]; when every score is equal they all become 1.0."""
    if not results:
        return []
    lo = min(r.score for r in results)
    hi = max(r.score for r in results)
    span = hi - lo
    if span == 0:
        return [r.with_score(1.0) for r in results]
    return [r.with_score((r.score - lo) / span) for r in results]


class Reranker:
    """Heuristic reranking from query hints; no model involved."""

    def rerank(self, results: List[SearchResult], analysis: QueryAnalysis,
               limit: int) -> List[SearchResult]:
        boosted = [r.with_score(r.score + boost_for(r, analysis)) for r in dedupe(results)]
        ranked = normalize(boosted)
        ranked.sort(key=lambda r: r.score, reverse=True)
        return ranked[:limit]
