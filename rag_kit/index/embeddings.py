from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import numpy as np
import requests

from ..config import EmbeddingConfig, ollama_base_url, require_api_key
from ..errors import ConfigError, EmbeddingError

logger = logging.getLogger(__name__)

OLLAMA_HINT = "Check that Ollama is running (ollama serve) and the model is pulled"
OPENAI_HINT = "Check your API key and network connectivity"


def _timeouts() -> tuple[float, float]:
    """Return (connect_timeout, read_timeout) in seconds; env-overridable."""
    ct = float(os.getenv("RAG_KIT_EMBED_CONNECT_TIMEOUT", "10"))
    rt = float(os.getenv("RAG_KIT_EMBED_READ_TIMEOUT", "300"))
    return (ct, rt)


class EmbeddingProvider(ABC):
    name: str
    dimensions: int

    @abstractmethod
    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        ...

    def embed_text(self, text: str) -> List[float]:
        return self.embed_batch([text])[0]


class OllamaEmbedder(EmbeddingProvider):
    """POST /api/embed on a (usually local) Ollama server."""

    def __init__(self, model: str, dimensions: int, base_url: Optional[str] = None):
        self.model = model
        self.dimensions = dimensions
        self.base = ollama_base_url(base_url)
        self.name = f"ollama/{model}"

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        try:
            r = requests.post(
                f"{self.base}/api/embed",
                json={"model": self.model, "input": texts},
                timeout=_timeouts(),
            )
            r.raise_for_status()
            data = r.json() or {}
        except requests.RequestException as e:
            raise EmbeddingError(f"Ollama embedding failed: {e}", OLLAMA_HINT) from e
        embs = data.get("embeddings")
        if not isinstance(embs, list) or len(embs) != len(texts):
            raise EmbeddingError(
                f"Ollama returned {len(embs) if isinstance(embs, list) else 'no'} embeddings "
                f"for {len(texts)} inputs",
                OLLAMA_HINT,
            )
        return [[float(x) for x in e] for e in embs]


class OpenAIEmbedder(EmbeddingProvider):
    """POST /v1/embeddings; the key is checked at construction time."""

    def __init__(self, model: str, dimensions: int, api_key: Optional[str] = None,
                 base_url: Optional[str] = None):
        self.api_key = require_api_key(api_key, "OPENAI_API_KEY", "OpenAI")
        self.model = model
        self.dimensions = dimensions
        self.base = (base_url or "https://api.openai.com/v1").rstrip("/")
        self.name = f"openai/{model}"

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        try:
            r = requests.post(
                f"{self.base}/embeddings",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"model": self.model, "input": texts, "dimensions": self.dimensions},
                timeout=_timeouts(),
            )
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            raise EmbeddingError(f"OpenAI embedding failed: {e}", OPENAI_HINT) from e
        rows = sorted(data.get("data", []), key=lambda d: d.get("index", 0))
        return [[float(x) for x in row["embedding"]] for row in rows]


class FastEmbedEmbedder(EmbeddingProvider):
    def __init__(self, model: str, dimensions: int):
        from fastembed import TextEmbedding

        self.model_name = model
        self.dimensions = dimensions
        self.model = TextEmbedding(model_name=model)
        self.name = f"fastembed/{model}"

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [np.asarray(vec, dtype="float32").tolist() for vec in self.model.embed(texts)]


class SentenceTransformerEmbedder(EmbeddingProvider):
    def __init__(self, model: str, dimensions: int):
        self.model_name = model
        self.dimensions = dimensions
        self._model: Any = None
        self.name = f"sentence-transformers/{model}"

    def _ensure_model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        embs = self._ensure_model().encode(texts, normalize_embeddings=True, show_progress_bar=False)
        return np.asarray(embs, dtype="float32").tolist()


def make_embedder(cfg: EmbeddingConfig) -> EmbeddingProvider:
    provider = (cfg.provider or "ollama").lower()
    if provider == "ollama":
        return OllamaEmbedder(cfg.model, cfg.dimensions, cfg.base_url)
    if provider == "openai":
        return OpenAIEmbedder(cfg.model, cfg.dimensions, cfg.api_key, cfg.base_url)
    if provider == "fastembed":
        return FastEmbedEmbedder(cfg.model, cfg.dimensions)
    if provider == "sentence-transformers":
        return SentenceTransformerEmbedder(cfg.model, cfg.dimensions)
    raise ConfigError(
        f"Unsupported embedding provider: {cfg.provider!r}. "
        "Supported: ollama, openai, fastembed, sentence-transformers"
    )


class BatchEmbedder:
    """Embeds a long list of texts in fixed-size batches with an optional pause between calls."""

    def __init__(self, provider: EmbeddingProvider, batch_size: int = 20, delay: float = 0.0,
                 sleep=None):
        self.provider = provider
        self.batch_size = max(1, int(batch_size))
        self.delay = float(delay)
        self._sleep = sleep or time.sleep

    def embed_all(self, texts: List[str], on_progress=None) -> List[List[float]]:
        out: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            out.extend(self.provider.embed_batch(batch))
            logger.debug("embedded %d/%d texts via %s", len(out), len(texts), self.provider.name)
            if on_progress:
                on_progress(len(out), len(texts))
            if self.delay > 0 and start + self.batch_size < len(texts):
                self._sleep(self.delay)
        return out
