from __future__ import annotations

from typing import Any, Dict, Iterator, Optional

import requests

from rag_kit.config import require_api_key
from rag_kit.errors import LLMError

from .base import LLM, chat_messages
from .sse import iter_sse_json

HINT = "Check your OpenAI API key and network connectivity"
TIMEOUT = (10.0, 300.0)


class OpenAILLM(LLM):
    def __init__(self, model: str, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 temperature: float = 0.1, max_tokens: int = 4096):
        self.api_key = require_api_key(api_key, "OPENAI_API_KEY", "OpenAI")
        self.model = model
        self.base = (base_url or "https://api.openai.com/v1").rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.name = f"openai/{model}"

    def _post(self, prompt: str, system: Optional[str], stream: bool) -> requests.Response:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": chat_messages(prompt, system),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": stream,
        }
        try:
            r = requests.post(
                f"{self.base}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=payload,
                stream=stream,
                timeout=TIMEOUT,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            raise LLMError(f"OpenAI request failed: {e}", HINT) from e
        return r

    def generate(self, prompt: str, system: Optional[str] = None) -> str:
        r = self._post(prompt, system, False)
        try:
            data = r.json()
        except ValueError as e:
            raise LLMError(f"OpenAI returned a malformed response: {e}", HINT) from e
        choices = data.get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""

    def generate_stream(self, prompt: str, system: Optional[str] = None) -> Iterator[str]:
        r = self._post(prompt, system, True)
        with r:
            try:
                for event in iter_sse_json(r):
                    for choice in event.get("choices") or []:
                        piece = (choice.get("delta") or {}).get("content")
                        if piece:
                            yield piece
            except requests.RequestException as e:
                raise LLMError(f"OpenAI stream interrupted: {e}", HINT) from e
