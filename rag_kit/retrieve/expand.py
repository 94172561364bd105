from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import List

from ..index.manager import IndexManager
from ..index.schema import SearchResult
from .rerank import dedupe

PROXIMITY_RANGE = 50
PROXIMITY_LIMIT = 3
ADJACENT_SCORE_FACTOR = 0.5


def expandable(result: SearchResult) -> bool:
    meta = result.metadata
    start = meta.get("start_line")
    return (
        meta.get("chunk_type") == "code"
        and isinstance(meta.get("file_path"), str)
        and isinstance(start, int)
        and not isinstance(start, bool)
    )


class ContextExpander:
    """Pulls in chunks that sit close (by start line) to each code hit in the same file."""

    def __init__(self, manager: IndexManager, line_range: int = PROXIMITY_RANGE,
                 limit: int = PROXIMITY_LIMIT, score_factor: float = ADJACENT_SCORE_FACTOR):
        self.manager = manager
        self.line_range = line_range
        self.limit = limit
        self.score_factor = score_factor

    def neighbours(self, seed: SearchResult) -> List[SearchResult]:
        rows = self.manager.get_by_proximity(
            seed.metadata["file_path"],
            seed.metadata["start_line"],
            self.line_range,
            self.limit + 1,
        )
        out = [
            SearchResult.from_row(r, seed.score * self.score_factor)
            for r in rows
            if r["id"] != seed.id
        ]
        return out[: self.limit]

    def expand(self, results: List[SearchResult]) -> List[SearchResult]:
        seeds = [r for r in results if expandable(r)]
        if not seeds or self.limit <= 0:
            return dedupe(list(results))
        with ThreadPoolExecutor(max_workers=min(8, len(seeds))) as pool:
            found = list(pool.map(self.neighbours, seeds))
        adjacent = [r for batch in found for r in batch]
        return dedupe(list(results) + adjacent)
