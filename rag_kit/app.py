from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from .answer.assemble import ContextAssembler
from .answer.prompts import build_rag_prompt, build_system_prompt
from .config import AppConfig
from .errors import ConfigError
from .index.embeddings import BatchEmbedder, EmbeddingProvider, make_embedder
from .index.manager import IndexManager, IndexStats
from .index.schema import Chunk, SearchContext, SearchResult, VectorRecord
from .ingest.chunker import CodeChunker
from .ingest.documents import chunk_document
from .ingest.scanner import DocumentScanner, FileScanner
from .retrieve.retriever import Retriever
from .utils.log import EventLog

logger = logging.getLogger(__name__)


@dataclass
class IndexCallbacks:
    on_progress: Optional[Callable[[int, int], None]] = None
    on_item: Optional[Callable[[str, int], None]] = None
    on_error: Optional[Callable[[str, Exception], None]] = None


@dataclass
class IndexResult:
    items_seen: int = 0
    items_indexed: int = 0
    chunks_indexed: int = 0
    errors: List[dict] = field(default_factory=list)
    elapsed_ms: int = 0


@dataclass
class RetrievalResult:
    results: List[SearchResult]
    contexts: List[SearchContext]


def _batches(items: list, size: int):
    for i in range(0, len(items), size):
        yield items[i : i + size]


class IndexService:
    """
    Scan -> chunk -> embed -> upsert, for code (per configured service) and documents.

    A file or document that fails to read or chunk is reported and skipped;
    embedding and store failures abort the run.
    """

    def __init__(self, config: AppConfig, manager: Optional[IndexManager] = None,
                 embedder: Optional[EmbeddingProvider] = None, event_log: Optional[EventLog] = None):
        self.config = config
        self.manager = manager or IndexManager.open(config.data_dir, config.embedding.dimensions)
        self.embedder = embedder or make_embedder(config.embedding)
        self.events = event_log or EventLog(Path(config.log_dir) / "index.log.jsonl")
        self.chunker = CodeChunker(config.index.chunk_size, config.index.chunk_overlap)
        self.batcher = BatchEmbedder(self.embedder, config.index.batch_size, config.index.batch_delay)

    def _fail(self, result: IndexResult, path: str, exc: Exception,
              callbacks: Optional[IndexCallbacks]) -> None:
        logger.warning("failed to index %s: %s", path, exc)
        result.errors.append({"path": path, "error": str(exc)})
        self.events.write("index_error", path=path, error=str(exc), error_type=type(exc).__name__)
        if callbacks and callbacks.on_error:
            callbacks.on_error(path, exc)

    def _store(self, chunks: List[Chunk], write: Callable[[List[VectorRecord]], int]) -> int:
        if not chunks:
            return 0
        vectors = self.batcher.embed_all([c.content for c in chunks])
        return write([VectorRecord.from_chunk(c, v) for c, v in zip(chunks, vectors)])

    def index_code(self, service: Optional[str] = None,
                   callbacks: Optional[IndexCallbacks] = None) -> IndexResult:
        t0 = time.perf_counter()
        scanner = FileScanner(self.config.index)
        files = scanner.list_service_files(service) if service else scanner.list_files()
        result = IndexResult(items_seen=len(files))
        logger.info("indexing %d files%s", len(files), f" for service {service}" if service else "")

        done = 0
        for batch in _batches(files, self.config.index.batch_size):
            chunks: List[Chunk] = []
            for fp in batch:
                try:
                    scanned = scanner.read_file(fp)
                    if scanned is None:
                        continue
                    file_chunks = self.chunker.chunk_file(scanned)
                except Exception as e:
                    self._fail(result, fp.relative_path, e, callbacks)
                    continue
                chunks.extend(file_chunks)
                result.items_indexed += 1
                if callbacks and callbacks.on_item:
                    callbacks.on_item(fp.relative_path, len(file_chunks))
            result.chunks_indexed += self._store(chunks, self.manager.index_code)
            done += len(batch)
            if callbacks and callbacks.on_progress:
                callbacks.on_progress(done, len(files))

        result.elapsed_ms = int((time.perf_counter() - t0) * 1000)
        self.events.write(
            "index_code",
            service=service,
            files=result.items_seen,
            indexed=result.items_indexed,
            chunks=result.chunks_indexed,
            errors=len(result.errors),
            ms=result.elapsed_ms,
        )
        return result

    def index_documents(self, path: str | Path,
                        callbacks: Optional[IndexCallbacks] = None) -> IndexResult:
        t0 = time.perf_counter()
        if not Path(path).exists():
            raise ConfigError(f"Document path not found: {path}")
        docs = DocumentScanner().scan(path)
        result = IndexResult(items_seen=len(docs))
        logger.info("indexing %d documents from %s", len(docs), path)

        done = 0
        for batch in _batches(docs, self.config.index.batch_size):
            chunks: List[Chunk] = []
            for doc in batch:
                try:
                    doc_chunks = chunk_document(doc, self.config.index.chunk_size,
                                                self.config.index.chunk_overlap)
                except Exception as e:
                    self._fail(result, doc.relative_path, e, callbacks)
                    continue
                chunks.extend(doc_chunks)
                result.items_indexed += 1
                if callbacks and callbacks.on_item:
                    callbacks.on_item(doc.relative_path, len(doc_chunks))
            result.chunks_indexed += self._store(chunks, self.manager.index_documents)
            done += len(batch)
            if callbacks and callbacks.on_progress:
                callbacks.on_progress(done, len(docs))

        result.elapsed_ms = int((time.perf_counter() - t0) * 1000)
        self.events.write(
            "index_documents",
            path=str(path),
            documents=result.items_seen,
            indexed=result.items_indexed,
            chunks=result.chunks_indexed,
            errors=len(result.errors),
            ms=result.elapsed_ms,
        )
        return result

    def clear_index(self) -> None:
        self.manager.clear()
        self.events.write("clear")

    def stats(self) -> IndexStats:
        return self.manager.stats()


class QueryService:
    """Retrieval plus optional answer generation over the indexed collections."""

    def __init__(self, config: AppConfig, manager: Optional[IndexManager] = None,
                 embedder: Optional[EmbeddingProvider] = None, llm=None, use_cloud: bool = False,
                 event_log: Optional[EventLog] = None):
        self.config = config
        self.manager = manager or IndexManager.open(config.data_dir, config.embedding.dimensions)
        self.embedder = embedder or make_embedder(config.embedding)
        self.events = event_log or EventLog(Path(config.log_dir) / "queries.log.jsonl")
        self.retriever = Retriever(self.embedder, self.manager, config.index.services, config.retrieval)
        self.assembler = ContextAssembler(config.context.max_tokens, config.context.max_chunks)
        self.use_cloud = use_cloud
        self._llm = llm

    @property
    def llm(self):
        if self._llm is None:
            from llm.factory import make_llm

            if self.use_cloud:
                if self.config.cloud is None:
                    raise ConfigError("Cloud LLM requested but no `cloud.llm` section is configured")
                self._llm = make_llm(self.config.cloud.llm)
            else:
                self._llm = make_llm(self.config.llm)
        return self._llm

    def retrieve(self, query: str, limit: Optional[int] = None) -> RetrievalResult:
        t0 = time.perf_counter()
        results = self.retriever.retrieve(query, limit)
        contexts = self.assembler.assemble(results)
        ms = int((time.perf_counter() - t0) * 1000)
        self.events.write(
            "query",
            query=query,
            limit=limit or self.config.retrieval.default_limit,
            results=len(results),
            contexts=[{"file_path": c.file_path, "score": round(c.score, 4)} for c in contexts],
            ms=ms,
        )
        return RetrievalResult(results=results, contexts=contexts)

    def validate_llm(self):
        """Build the answer provider now, so a missing credential fails before any embedding call."""
        return self.llm

    def _prompts(self, query: str, contexts: List[SearchContext],
                 preamble: Optional[str] = None) -> tuple[str, str]:
        prompt = build_rag_prompt(query, contexts, self.config)
        if preamble:
            prompt = f"{preamble}\n\n{prompt}"
        return prompt, build_system_prompt(self.config)

    def generate(self, query: str, retrieval: Optional[RetrievalResult] = None,
                 limit: Optional[int] = None) -> str:
        llm = self.validate_llm()
        retrieval = retrieval or self.retrieve(query, limit)
        prompt, system = self._prompts(query, retrieval.contexts)
        return llm.generate(prompt, system=system)

    def generate_stream(self, query: str, retrieval: Optional[RetrievalResult] = None,
                        limit: Optional[int] = None, preamble: Optional[str] = None) -> Iterator[str]:
        llm = self.validate_llm()
        retrieval = retrieval or self.retrieve(query, limit)
        prompt, system = self._prompts(query, retrieval.contexts, preamble)
        yield from llm.generate_stream(prompt, system=system)


@dataclass
class ChatTurn:
    result_count: int
    stream: Iterator[str]


class ChatService:
    """
    Multi-turn questions over the same index.

    The last `history_messages` entries (question and answer each count as
    one) are prefixed to the RAG prompt. A turn is recorded only once its
    stream has been consumed to the end.
    """

    def __init__(self, query_service: QueryService, history_messages: int = 4):
        self.queries = query_service
        self.history_messages = history_messages
        self.history: List[tuple[str, str]] = []

    def history_preamble(self) -> Optional[str]:
        recent = self.history[-self.history_messages:] if self.history_messages > 0 else []
        if not recent:
            return None
        lines = [f"{'Question' if role == 'user' else 'Answer'}: {text}" for role, text in recent]
        return "Previous conversation:\n" + "\n".join(lines)

    def ask(self, question: str, limit: Optional[int] = None) -> ChatTurn:
        self.queries.validate_llm()
        retrieval = self.queries.retrieve(question, limit)
        preamble = self.history_preamble()

        def stream() -> Iterator[str]:
            parts: List[str] = []
            for piece in self.queries.generate_stream(question, retrieval=retrieval, preamble=preamble):
                parts.append(piece)
                yield piece
            self.history.append(("user", question))
            self.history.append(("assistant", "".join(parts)))

        return ChatTurn(result_count=len(retrieval.results), stream=stream())

    def clear_history(self) -> None:
        self.history.clear()
