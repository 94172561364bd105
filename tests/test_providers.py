import json

import pytest
import requests

from llm.anthropic import AnthropicLLM
from llm.factory import make_llm
from llm.ollama import OllamaLLM
from llm.openai import OpenAILLM
from rag_kit.config import EmbeddingConfig, LLMConfig
from rag_kit.errors import ConfigError, EmbeddingError, LLMError
from rag_kit.index.embeddings import BatchEmbedder, OllamaEmbedder, make_embedder

from conftest import HashEmbedder


class _Resp:
    def __init__(self, payload=None, lines=(), status=200):
        self.payload = payload
        self.lines = list(lines)
        self.status = status
        self.closed = False

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"HTTP {self.status}")

    def json(self):
        return self.payload

    def iter_lines(self, decode_unicode=False):
        yield from self.lines

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False


def test_ollama_embedder(monkeypatch):
    seen = {}

    def fake_post(url, json=None, timeout=None, **kw):
        seen["url"], seen["body"] = url, json
        return _Resp({"embeddings": [[1, 2], [3, 4]]})

    monkeypatch.setattr(requests, "post", fake_post)
    emb = OllamaEmbedder("nomic-embed-text", 2, base_url="http://localhost:11434")
    assert emb.embed_batch(["a", "b"]) == [[1.0, 2.0], [3.0, 4.0]]
    assert seen["url"] == "http://localhost:11434/api/embed"
    assert seen["body"] == {"model": "nomic-embed-text", "input": ["a", "b"]}


def test_ollama_embedder_unreachable(monkeypatch):
    def boom(*a, **kw):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", boom)
    with pytest.raises(EmbeddingError) as ei:
        OllamaEmbedder("m", 2).embed_text("x")
    assert "ollama serve" in str(ei.value)


def test_openai_embedder_needs_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ConfigError):
        make_embedder(EmbeddingConfig(provider="openai", model="text-embedding-3-small", dimensions=1536))


def test_batch_embedder_batches_and_pauses():
    pauses = []
    inner = HashEmbedder()
    progress = []
    out = BatchEmbedder(inner, batch_size=2, delay=0.5, sleep=pauses.append).embed_all(
        ["a", "b", "c", "d", "e"], on_progress=lambda done, total: progress.append((done, total))
    )
    assert len(out) == 5
    assert inner.calls == 3
    assert pauses == [0.5, 0.5]
    assert progress == [(2, 5), (4, 5), (5, 5)]


def test_make_llm_providers(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    assert isinstance(make_llm(LLMConfig(provider="ollama")), OllamaLLM)
    with pytest.raises(ConfigError):
        make_llm(LLMConfig(provider="anthropic", model="claude"))
    assert isinstance(make_llm(LLMConfig(provider="openai", model="gpt", api_key="sk-x")), OpenAILLM)


def test_ollama_stream(monkeypatch):
    lines = [
        json.dumps({"message": {"content": "Hel"}, "done": False}),
        "",
        json.dumps({"message": {"content": "lo"}, "done": False}),
        json.dumps({"message": {"content": ""}, "done": True}),
        json.dumps({"message": {"content": "never"}}),
    ]
    resp = _Resp(lines=lines)
    monkeypatch.setattr(requests, "post", lambda *a, **kw: resp)
    pieces = list(OllamaLLM("m").generate_stream("hi", system="sys"))
    assert pieces == ["Hel", "lo"]
    assert resp.closed


def test_ollama_generate_error(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: _Resp(status=500))
    with pytest.raises(LLMError):
        OllamaLLM("m").generate("hi")


def test_openai_stream(monkeypatch):
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": "A"}}]}),
        ": keep-alive",
        "data: " + json.dumps({"choices": [{"delta": {"content": "B"}}]}),
        "data: [DONE]",
    ]
    monkeypatch.setattr(requests, "post", lambda *a, **kw: _Resp(lines=lines))
    assert "".join(OpenAILLM("gpt", api_key="sk").generate_stream("q")) == "AB"


class _HtmlResp(_Resp):
    def json(self):
        raise requests.JSONDecodeError("Expecting value", "<html>", 0)


@pytest.mark.parametrize(
    "client",
    [lambda: OpenAILLM("gpt", api_key="sk"), lambda: AnthropicLLM("claude", api_key="sk")],
)
def test_malformed_body_is_llm_error(monkeypatch, client):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: _HtmlResp())
    with pytest.raises(LLMError):
        client().generate("q")
