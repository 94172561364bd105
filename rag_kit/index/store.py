from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import chromadb
from chromadb.config import Settings

from .schema import VectorRecord

logger = logging.getLogger(__name__)

Where = Dict[str, Any]


def where_all(**equals: Any) -> Optional[Where]:
    """Build a Chroma `where` filter from equality predicates (None values are skipped)."""
    clauses = [{k: {"$eq": v}} for k, v in equals.items() if v is not None]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _rows(ids, documents, metadatas, distances=None) -> List[Dict[str, Any]]:
    out = []
    for i, cid in enumerate(ids or []):
        row: Dict[str, Any] = dict((metadatas or [None] * len(ids))[i] or {})
        row["id"] = cid
        row["content"] = (documents or [""] * len(ids))[i] or ""
        if distances is not None:
            row["distance"] = float(distances[i])
        out.append(row)
    return out


class VectorStore:
    """
    Persistent Chroma client holding named collections of VectorRecords.

    Embeddings are always supplied by the caller; collections use cosine space.
    Every collection has one fixed dimensionality, checked on write.
    """

    def __init__(self, persist_dir: str | Path, dimensions: int):
        self.persist_dir = str(persist_dir)
        Path(self.persist_dir).mkdir(parents=True, exist_ok=True)
        self.dimensions = int(dimensions)
        settings = Settings(anonymized_telemetry=False, allow_reset=True)
        self.client = chromadb.PersistentClient(path=self.persist_dir, settings=settings)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock(self, name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(name, threading.Lock())

    def collection_names(self) -> List[str]:
        # chroma >= 0.6 returns names, older versions return Collection objects
        return [c if isinstance(c, str) else c.name for c in self.client.list_collections()]

    def exists(self, name: str) -> bool:
        return name in self.collection_names()

    def _open(self, name: str):
        if not self.exists(name):
            return None
        return self.client.get_collection(name, embedding_function=None)

    def upsert(self, name: str, records: Sequence[VectorRecord]) -> int:
        if not records:
            return 0
        for r in records:
            if len(r.vector) != self.dimensions:
                raise ValueError(
                    f"Record {r.id} has {len(r.vector)}-d vector; collection {name!r} is {self.dimensions}-d"
                )
        with self._lock(name):
            col = self.client.get_or_create_collection(
                name=name,
                embedding_function=None,
                metadata={"hnsw:space": "cosine"},
            )
            col.upsert(
                ids=[r.id for r in records],
                embeddings=[r.vector for r in records],
                documents=[r.content for r in records],
                metadatas=[r.metadata() for r in records],
            )
        logger.debug("upserted %d records into %s", len(records), name)
        return len(records)

    def search(self, name: str, vector: Sequence[float], limit: int,
               where: Optional[Where] = None) -> List[Dict[str, Any]]:
        """ANN query. Rows carry id, content, distance and the record metadata."""
        col = self._open(name)
        if col is None or limit <= 0:
            return []
        total = col.count()
        if total == 0:
            return []
        res = col.query(
            query_embeddings=[list(vector)],
            n_results=min(int(limit), total),
            where=where or None,
            include=["documents", "metadatas", "distances"],
        )
        return _rows(
            (res.get("ids") or [[]])[0],
            (res.get("documents") or [[]])[0],
            (res.get("metadatas") or [[]])[0],
            (res.get("distances") or [[]])[0],
        )

    def scan(self, name: str, where: Optional[Where] = None, limit: Optional[int] = None,
             where_document: Optional[Where] = None) -> List[Dict[str, Any]]:
        """Rows matching `where` and `where_document` (no ranking)."""
        col = self._open(name)
        if col is None:
            return []
        res = col.get(where=where or None, where_document=where_document or None, limit=limit,
                      include=["documents", "metadatas"])
        return _rows(res.get("ids"), res.get("documents"), res.get("metadatas"))

    def count(self, name: str) -> int:
        col = self._open(name)
        return col.count() if col is not None else 0

    def drop(self, name: str) -> None:
        with self._lock(name):
            if self.exists(name):
                self.client.delete_collection(name)
                logger.info("dropped collection %s", name)
