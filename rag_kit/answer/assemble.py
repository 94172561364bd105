from __future__ import annotations

import math
from typing import List

from ..index.schema import SearchContext, SearchResult

DEFAULT_MAX_TOKENS = 6000
DEFAULT_MAX_CHUNKS = 8
CHARS_PER_TOKEN = 3


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def to_context(result: SearchResult) -> SearchContext:
    meta = result.metadata
    start = meta.get("start_line")
    return SearchContext(
        content=result.content,
        file_path=result.file_path or "unknown",
        service_name=result.service_name or "unknown",
        file_type=result.file_type or "unknown",
        score=result.score,
        chunk_type="document" if meta.get("chunk_type") == "document" else "code",
        start_line=start if isinstance(start, int) and not isinstance(start, bool) else None,
    )


class ContextAssembler:
    """
    Greedy packing of the best-scoring results into a token budget.

    Stops at the first result that would overflow `max_tokens` (no skipping
    ahead to smaller ones) or once `max_chunks` are accepted.
    """

    def __init__(self, max_tokens: int = DEFAULT_MAX_TOKENS, max_chunks: int = DEFAULT_MAX_CHUNKS):
        self.max_tokens = max_tokens
        self.max_chunks = max_chunks

    def assemble(self, results: List[SearchResult]) -> List[SearchContext]:
        out: List[SearchContext] = []
        used = 0
        for r in sorted(results, key=lambda x: x.score, reverse=True):
            if len(out) >= self.max_chunks:
                break
            cost = estimate_tokens(r.content)
            if used + cost > self.max_tokens:
                break
            out.append(to_context(r))
            used += cost
        return out
