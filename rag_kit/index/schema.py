from __future__ import annotations

import hashlib
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

CODE_LEVELS = ("file-summary", "class", "method", "text")
DOCUMENT_LEVELS = ("pdf-page", "excel-sheet", "markdown-section", "text")

# Metadata keys persisted next to content + vector in every collection
RECORD_FIELDS = (
    "chunk_type",
    "file_path",
    "relative_path",
    "service_name",
    "file_type",
    "language",
    "symbol_name",
    "level",
    "start_line",
    "end_line",
)


def make_chunk_id(path: str, level: str, start: int | str, end: int, seq: int) -> str:
    """Stable content-location fingerprint; same inputs give the same id on every run."""
    raw = f"{path}|{level}|{start}|{end}|{seq}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


class Chunk(BaseModel):
    chunk_id: str
    content: str
    level: str
    chunk_type: Literal["code", "document"] = "code"
    file_path: str
    relative_path: str
    service_name: str = ""
    file_type: str = "unknown"
    language: str = ""
    start_line: int = 0
    end_line: int = 0
    symbol_name: Optional[str] = None
    parent_symbol: Optional[str] = None
    decorators: List[str] = Field(default_factory=list)
    imports: List[str] = Field(default_factory=list)
    exports: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check(self) -> "Chunk":
        allowed = CODE_LEVELS if self.chunk_type == "code" else DOCUMENT_LEVELS
        if self.level not in allowed:
            raise ValueError(f"level {self.level!r} not valid for {self.chunk_type} chunks")
        if self.end_line < self.start_line:
            raise ValueError(f"end_line {self.end_line} < start_line {self.start_line}")
        return self


class VectorRecord(BaseModel):
    id: str
    content: str
    vector: List[float]
    chunk_type: Literal["code", "document"]
    file_path: str
    relative_path: str
    service_name: str = ""
    file_type: str = ""
    language: str = ""
    symbol_name: str = ""
    level: str
    start_line: int = 0
    end_line: int = 0

    @classmethod
    def from_chunk(cls, chunk: Chunk, vector: List[float]) -> "VectorRecord":
        return cls(
            id=chunk.chunk_id,
            content=chunk.content,
            vector=[float(v) for v in vector],
            chunk_type=chunk.chunk_type,
            file_path=chunk.file_path,
            relative_path=chunk.relative_path,
            service_name=chunk.service_name,
            file_type=chunk.file_type,
            language=chunk.language,
            symbol_name=chunk.symbol_name or "",
            level=chunk.level,
            start_line=chunk.start_line,
            end_line=chunk.end_line,
        )

    def metadata(self) -> Dict[str, Any]:
        # Chroma metadata values must be str/int/float/bool (no None)
        return {k: getattr(self, k) for k in RECORD_FIELDS}


class SearchResult(BaseModel):
    """Retrieval-time view of a stored row. `score` is only comparable within one stage."""

    id: str
    content: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
    file_path: Optional[str] = None
    service_name: Optional[str] = None
    file_type: Optional[str] = None
    symbol_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any], score: float) -> "SearchResult":
        def _s(key: str) -> Optional[str]:
            v = row.get(key)
            return v if isinstance(v, str) and v else None

        return cls(
            id=str(row.get("id", "")),
            content=row.get("content") or "",
            score=float(score),
            metadata={k: row.get(k) for k in RECORD_FIELDS if k in row},
            file_path=_s("file_path"),
            service_name=_s("service_name"),
            file_type=_s("file_type"),
            symbol_name=_s("symbol_name"),
        )

    def with_score(self, score: float) -> "SearchResult":
        return self.model_copy(update={"score": float(score)})


class QueryAnalysis(BaseModel):
    original_query: str
    keywords: List[str] = Field(default_factory=list)
    service_filter: Optional[str] = None
    file_type_filter: Optional[str] = None
    entity_names: List[str] = Field(default_factory=list)
    is_architectural: bool = False


class SearchContext(BaseModel):
    content: str
    file_path: str
    service_name: str
    file_type: str
    score: float
    chunk_type: Literal["code", "document"] = "code"
    start_line: Optional[int] = None
