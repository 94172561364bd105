from __future__ import annotations

import os
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import ConfigError

DEFAULT_OLLAMA = "http://localhost:11434"


class ProjectConfig(BaseModel):
    name: str = ""
    description: str = ""


class LLMConfig(BaseModel):
    provider: Literal["ollama", "openai", "anthropic"] = "ollama"
    model: str = "qwen2.5-coder:7b"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = Field(0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(4096, gt=0)


class CloudConfig(BaseModel):
    llm: LLMConfig


class EmbeddingConfig(BaseModel):
    provider: Literal["ollama", "openai", "fastembed", "sentence-transformers"] = "ollama"
    model: str = "nomic-embed-text"
    dimensions: int = Field(768, gt=0)
    base_url: Optional[str] = None
    api_key: Optional[str] = None


class ServiceConfig(BaseModel):
    name: str = Field(min_length=1)
    path: str = Field(min_length=1)
    framework: str = "unknown"
    role: str = "service"


class IndexConfig(BaseModel):
    target_path: str = "."
    services: List[ServiceConfig] = Field(default_factory=list)
    include_patterns: List[str] = Field(
        default_factory=lambda: ["**/*.py", "**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx"]
    )
    exclude_patterns: List[str] = Field(
        default_factory=lambda: [
            "**/node_modules/**",
            "**/dist/**",
            "**/build/**",
            "**/.git/**",
            "**/.venv/**",
            "**/__pycache__/**",
            "**/coverage/**",
            "**/*.d.ts",
            "**/migrations/**",
        ]
    )
    chunk_size: int = Field(1500, gt=0)
    chunk_overlap: int = Field(200, ge=0)
    max_file_size: int = Field(50_000, gt=0)
    batch_size: int = Field(20, gt=0)
    batch_delay: float = Field(0.0, ge=0.0)

    @model_validator(mode="after")
    def _unique_services(self) -> "IndexConfig":
        names = [s.name for s in self.services]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate service names: {names}")
        return self


class RetrievalConfig(BaseModel):
    default_limit: int = Field(6, gt=0)
    search_multiplier: int = Field(3, gt=0)
    rrf_k: int = Field(60, gt=0)
    proximity_range: int = Field(50, ge=0)
    proximity_limit: int = Field(3, ge=0)
    adjacent_score_factor: float = Field(0.5, ge=0.0, le=1.0)


class ContextConfig(BaseModel):
    max_tokens: int = Field(6000, gt=0)
    max_chunks: int = Field(8, gt=0)


class PromptsConfig(BaseModel):
    system_context: str = ""
    answer_guidelines: List[str] = Field(
        default_factory=lambda: [
            "Answer in the language the question was asked in.",
            "When referencing code, include the file path and a short snippet.",
            "Be concise and precise.",
            "If the provided context is insufficient, say what is missing.",
        ]
    )


class AppConfig(BaseModel):
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    cloud: Optional[CloudConfig] = None
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    prompts: PromptsConfig = Field(default_factory=PromptsConfig)
    data_dir: str = ".rag-kit/data"
    log_dir: str = ".rag-kit/logs"

    def service_names(self) -> List[str]:
        return [s.name for s in self.index.services]


def ollama_base_url(configured: Optional[str]) -> str:
    """config value > OLLAMA_HOST > default; ensure scheme; strip trailing slash."""
    cand = (configured or os.getenv("OLLAMA_HOST") or DEFAULT_OLLAMA).strip()
    if not cand.startswith(("http://", "https://")):
        cand = "http://" + cand
    return cand.rstrip("/")


def require_api_key(configured: Optional[str], env_var: str, provider: str) -> str:
    key = configured or os.getenv(env_var)
    if not key:
        raise ConfigError(
            f"{provider} API key is required. Set it in the config file or the {env_var} environment variable."
        )
    return key


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load and validate a YAML config. A missing default file yields built-in defaults."""
    if path is None:
        return AppConfig()
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    try:
        with open(p, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {p}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Config root must be a mapping: {p}")
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {p}:\n{e}") from e
