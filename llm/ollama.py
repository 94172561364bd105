# llm/ollama.py
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Iterator, Optional

import requests

from rag_kit.config import ollama_base_url
from rag_kit.errors import LLMError

from .base import LLM, chat_messages

logger = logging.getLogger(__name__)

HINT = "Is Ollama running? (ollama serve) Is the model pulled? (ollama pull <model>)"


def _timeouts() -> tuple[float, float]:
    """Return (connect_timeout, read_timeout) in seconds; env-overridable."""
    # Long read default: first token can wait on a cold model load
    ct = float(os.getenv("OLLAMA_CONNECT_TIMEOUT", "10"))
    rt = float(os.getenv("OLLAMA_READ_TIMEOUT", "600"))
    return (ct, rt)


class OllamaLLM(LLM):
    """
    Ollama /api/chat client.

    `generate` makes one non-streaming call; `generate_stream` reads the
    newline-delimited JSON stream one line at a time.
    """

    def __init__(self, model: str, base_url: Optional[str] = None, temperature: float = 0.1,
                 max_tokens: int = 4096, keep_alive: Optional[str] = None):
        self.model = model
        self.base = ollama_base_url(base_url)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.keep_alive = keep_alive
        self.name = f"ollama/{model}"

    def _payload(self, prompt: str, system: Optional[str], stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": chat_messages(prompt, system),
            "stream": stream,
            # Ollama uses num_predict for token limit
            "options": {"temperature": float(self.temperature), "num_predict": int(self.max_tokens)},
        }
        if self.keep_alive:
            payload["keep_alive"] = self.keep_alive
        return payload

    def generate(self, prompt: str, system: Optional[str] = None) -> str:
        try:
            r = requests.post(f"{self.base}/api/chat", json=self._payload(prompt, system, False),
                              timeout=_timeouts())
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            raise LLMError(f"Ollama generation failed: {e}", HINT) from e
        # Common shapes:
        #  - {"message":{"role":"assistant","content":"..."}}
        #  - {"response":"..."} (older/alt shape)
        msg = data.get("message", {})
        if isinstance(msg, dict) and "content" in msg:
            return msg["content"]
        return data.get("response", "")

    def generate_stream(self, prompt: str, system: Optional[str] = None) -> Iterator[str]:
        try:
            r = requests.post(f"{self.base}/api/chat", json=self._payload(prompt, system, True),
                              stream=True, timeout=_timeouts())
            r.raise_for_status()
        except requests.RequestException as e:
            raise LLMError(f"Ollama generation failed: {e}", HINT) from e
        with r:
            try:
                for line in r.iter_lines(decode_unicode=True):
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        logger.debug("skipping non-JSON stream line: %r", line[:80])
                        continue
                    if data.get("error"):
                        raise LLMError(f"Ollama error: {data['error']}", HINT)
                    piece = (data.get("message") or {}).get("content") or ""
                    if piece:
                        yield piece
                    if data.get("done"):
                        return
            except requests.RequestException as e:
                raise LLMError(f"Ollama stream interrupted: {e}", HINT) from e
