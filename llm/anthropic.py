from __future__ import annotations

from typing import Any, Dict, Iterator, Optional

import requests

from rag_kit.config import require_api_key
from rag_kit.errors import LLMError

from .base import LLM
from .sse import iter_sse_json

HINT = "Check your Anthropic API key and network connectivity"
API_VERSION = "2023-06-01"
TIMEOUT = (10.0, 300.0)


class AnthropicLLM(LLM):
    """Messages API; the system prompt goes in its own field, not as a message."""

    def __init__(self, model: str, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 temperature: float = 0.1, max_tokens: int = 4096):
        self.api_key = require_api_key(api_key, "ANTHROPIC_API_KEY", "Anthropic")
        self.model = model
        self.base = (base_url or "https://api.anthropic.com").rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.name = f"anthropic/{model}"

    def _post(self, prompt: str, system: Optional[str], stream: bool) -> requests.Response:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
            "stream": stream,
        }
        if system:
            payload["system"] = system
        try:
            r = requests.post(
                f"{self.base}/v1/messages",
                headers={"x-api-key": self.api_key, "anthropic-version": API_VERSION},
                json=payload,
                stream=stream,
                timeout=TIMEOUT,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            raise LLMError(f"Anthropic request failed: {e}", HINT) from e
        return r

    def generate(self, prompt: str, system: Optional[str] = None) -> str:
        r = self._post(prompt, system, False)
        try:
            data = r.json()
        except ValueError as e:
            raise LLMError(f"Anthropic returned a malformed response: {e}", HINT) from e
        return "".join(b.get("text", "") for b in data.get("content") or [] if b.get("type") == "text")

    def generate_stream(self, prompt: str, system: Optional[str] = None) -> Iterator[str]:
        r = self._post(prompt, system, True)
        with r:
            try:
                for event in iter_sse_json(r):
                    kind = event.get("type")
                    if kind == "error":
                        raise LLMError(f"Anthropic error: {event.get('error')}", HINT)
                    if kind == "content_block_delta":
                        piece = (event.get("delta") or {}).get("text")
                        if piece:
                            yield piece
                    elif kind == "message_stop":
                        return
            except requests.RequestException as e:
                raise LLMError(f"Anthropic stream interrupted: {e}", HINT) from e
