import hashlib
import math
import re
import sys
from pathlib import Path
from typing import Iterator, List, Optional

import pytest

# Repo root = one level above tests/
REPO_ROOT = Path(__file__).resolve().parents[1]

# Ensure repo root is on sys.path so `import cli` and `import llm` work (root modules).
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from rag_kit.config import AppConfig, EmbeddingConfig, IndexConfig, ServiceConfig  # noqa: E402
from rag_kit.index.embeddings import EmbeddingProvider  # noqa: E402
from rag_kit.index.manager import IndexManager  # noqa: E402

DIMS = 64


class HashEmbedder(EmbeddingProvider):
    """Bag-of-words hashed into a fixed number of buckets; no network, fully deterministic."""

    def __init__(self, dimensions: int = DIMS):
        self.dimensions = dimensions
        self.name = "test/hash"
        self.calls = 0

    def _vec(self, text: str) -> List[float]:
        v = [0.0] * self.dimensions
        v[-1] = 0.01  # never all-zero
        for tok in re.findall(r"\w+", text.lower()):
            idx = int(hashlib.md5(tok.encode("utf-8")).hexdigest(), 16) % (self.dimensions - 1)
            v[idx] += 1.0
        norm = math.sqrt(sum(x * x for x in v))
        return [x / norm for x in v]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        return [self._vec(t) for t in texts]


class FakeLLM:
    name = "test/fake"

    def __init__(self, reply: str = "fake answer"):
        self.reply = reply
        self.prompts = []

    def generate(self, prompt: str, system: Optional[str] = None) -> str:
        self.prompts.append((prompt, system))
        return self.reply

    def generate_stream(self, prompt: str, system: Optional[str] = None) -> Iterator[str]:
        self.prompts.append((prompt, system))
        for word in self.reply.split(" "):
            yield word + " "


@pytest.fixture
def embedder():
    return HashEmbedder()


@pytest.fixture
def manager(tmp_path):
    return IndexManager.open(tmp_path / "data", DIMS)


@pytest.fixture
def repo(tmp_path):
    """A tiny one-service code base plus a docs folder."""
    root = tmp_path / "repo"
    billing = root / "billing"
    billing.mkdir(parents=True)
    (billing / "invoice_service.py").write_text(
        "import decimal\n"
        "\n"
        "\n"
        "class InvoiceService:\n"
        "    def total(self, items):\n"
        "        return sum(i.amount for i in items)\n",
        encoding="utf-8",
    )
    (billing / "widgets.py").write_text(
        "def frobnicate(widget):\n"
        '    """Frobnicate the widget twice."""\n'
        "    return widget * 2\n",
        encoding="utf-8",
    )
    (billing / "models.py").write_text(
        "class Invoice:\n"
        "    amount = 0\n",
        encoding="utf-8",
    )
    docs = root / "docs"
    docs.mkdir()
    (docs / "guide.md").write_text(
        "# Billing guide\n\nInvoices are totalled nightly.\n\n## Refunds\n\nRefunds go through the ledger.\n",
        encoding="utf-8",
    )
    return root


@pytest.fixture
def config(tmp_path, repo):
    return AppConfig(
        embedding=EmbeddingConfig(provider="ollama", model="test", dimensions=DIMS),
        index=IndexConfig(
            target_path=str(repo),
            services=[ServiceConfig(name="billing-api", path="billing", framework="plain")],
            include_patterns=["**/*.py"],
        ),
        data_dir=str(tmp_path / "data"),
        log_dir=str(tmp_path / "logs"),
    )
