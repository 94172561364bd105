from rag_kit.config import LLMConfig
from rag_kit.errors import ConfigError

from .anthropic import AnthropicLLM
from .base import LLM
from .ollama import OllamaLLM
from .openai import OpenAILLM


def make_llm(cfg: LLMConfig) -> LLM:
    provider = (cfg.provider or "ollama").lower()
    opts = {"temperature": cfg.temperature, "max_tokens": cfg.max_tokens}

    if provider == "ollama":
        return OllamaLLM(model=cfg.model, base_url=cfg.base_url, **opts)
    if provider == "openai":
        return OpenAILLM(model=cfg.model, api_key=cfg.api_key, base_url=cfg.base_url, **opts)
    if provider == "anthropic":
        return AnthropicLLM(model=cfg.model, api_key=cfg.api_key, base_url=cfg.base_url, **opts)

    raise ConfigError(f"Unsupported LLM provider: {cfg.provider!r}. Supported: ollama, openai, anthropic")
