from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from .schema import VectorRecord
from .store import VectorStore, Where

CODE_COLLECTION = "code_chunks"
DOCUMENTS_COLLECTION = "documents"


class IndexStats(NamedTuple):
    code_chunks: int
    documents: int


def _by_distance(row: Dict[str, Any]) -> float:
    d = row.get("distance")
    return float(d) if isinstance(d, (int, float)) else math.inf


class IndexManager:
    """Facade over the two collections: code chunks (service/file-type scoped) and documents."""

    def __init__(self, store: VectorStore, code_collection: str = CODE_COLLECTION,
                 documents_collection: str = DOCUMENTS_COLLECTION):
        self.store = store
        self.code_collection = code_collection
        self.documents_collection = documents_collection

    @classmethod
    def open(cls, data_dir: str | Path, dimensions: int) -> "IndexManager":
        return cls(VectorStore(data_dir, dimensions))

    # ---- writes ----
    def index_code(self, records: Sequence[VectorRecord]) -> int:
        return self.store.upsert(self.code_collection, records)

    def index_documents(self, records: Sequence[VectorRecord]) -> int:
        return self.store.upsert(self.documents_collection, records)

    # ---- reads ----
    def search_code(self, vector: Sequence[float], limit: int,
                    where: Optional[Where] = None) -> List[Dict[str, Any]]:
        return self.store.search(self.code_collection, vector, limit, where)

    def search_documents(self, vector: Sequence[float], limit: int) -> List[Dict[str, Any]]:
        return self.store.search(self.documents_collection, vector, limit)

    def search_all(self, vector: Sequence[float], limit: int,
                   where: Optional[Where] = None) -> List[Dict[str, Any]]:
        """Query both collections in parallel; `where` only scopes the code collection."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            code_f = pool.submit(self.search_code, vector, limit, where)
            docs_f = pool.submit(self.search_documents, vector, limit)
            rows = code_f.result() + docs_f.result()
        rows.sort(key=_by_distance)
        return rows[:limit]

    def scan_all(self, where: Optional[Where] = None, where_document: Optional[Where] = None,
                 limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Unranked rows of both collections; `limit` applies per collection."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            code_f = pool.submit(self.store.scan, self.code_collection, where, limit, where_document)
            docs_f = pool.submit(self.store.scan, self.documents_collection, None, limit, where_document)
            return code_f.result() + docs_f.result()

    def get_by_proximity(self, file_path: str, center_line: int, line_range: int,
                         limit: int) -> List[Dict[str, Any]]:
        """Code rows of `file_path` whose start line is within ±line_range of center_line, nearest first."""
        if limit <= 0:
            return []
        where = {
            "$and": [
                {"file_path": {"$eq": file_path}},
                {"start_line": {"$gte": int(center_line) - int(line_range)}},
                {"start_line": {"$lte": int(center_line) + int(line_range)}},
            ]
        }
        rows = self.store.scan(self.code_collection, where)
        rows.sort(key=lambda r: (abs(int(r.get("start_line", 0)) - int(center_line)), r["id"]))
        return rows[:limit]

    # ---- admin ----
    def clear(self, collection: Optional[str] = None) -> None:
        if collection:
            self.store.drop(collection)
            return
        self.store.drop(self.code_collection)
        self.store.drop(self.documents_collection)

    def stats(self) -> IndexStats:
        return IndexStats(
            code_chunks=self.store.count(self.code_collection),
            documents=self.store.count(self.documents_collection),
        )
