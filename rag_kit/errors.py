from __future__ import annotations


class RagKitError(Exception):
    """Base class for errors raised by rag_kit."""


class ConfigError(RagKitError):
    """Invalid configuration, unknown service, missing credential. Raised before any network call."""


class ProviderError(RagKitError):
    """Transport or auth failure talking to an embedding / LLM backend."""

    def __init__(self, message: str, hint: str = ""):
        self.hint = hint
        super().__init__(f"{message}. {hint}" if hint else message)


class EmbeddingError(ProviderError):
    pass


class LLMError(ProviderError):
    pass
