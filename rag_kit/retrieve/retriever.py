from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..config import RetrievalConfig, ServiceConfig
from ..index.embeddings import EmbeddingProvider
from ..index.manager import IndexManager
from ..index.schema import QueryAnalysis, SearchResult
from ..index.store import Where, where_all
from .expand import ContextExpander
from .query import QueryAnalyzer
from .rerank import Reranker
from .search import HybridSearcher

logger = logging.getLogger(__name__)


def filter_from_analysis(analysis: QueryAnalysis) -> Optional[Where]:
    return where_all(service_name=analysis.service_filter, file_type=analysis.file_type_filter)


class Retriever:
    """analyze -> hybrid search (limit x multiplier) -> rerank (limit) -> proximity expansion."""

    def __init__(self, embedder: EmbeddingProvider, manager: IndexManager,
                 services: Sequence[ServiceConfig] = (), cfg: Optional[RetrievalConfig] = None):
        self.cfg = cfg or RetrievalConfig()
        self.analyzer = QueryAnalyzer(services)
        self.searcher = HybridSearcher(embedder, manager, rrf_k=self.cfg.rrf_k)
        self.reranker = Reranker()
        self.expander = ContextExpander(
            manager,
            line_range=self.cfg.proximity_range,
            limit=self.cfg.proximity_limit,
            score_factor=self.cfg.adjacent_score_factor,
        )

    def retrieve(self, query: str, limit: Optional[int] = None) -> List[SearchResult]:
        limit = limit or self.cfg.default_limit
        analysis = self.analyzer.analyze(query)
        where = filter_from_analysis(analysis)
        hits = self.searcher.search(query, analysis.keywords, limit * self.cfg.search_multiplier, where)
        ranked = self.reranker.rerank(hits, analysis, limit)
        expanded = self.expander.expand(ranked)
        logger.debug(
            "retrieve %r: where=%s hits=%d ranked=%d expanded=%d",
            query, where, len(hits), len(ranked), len(expanded),
        )
        return expanded
