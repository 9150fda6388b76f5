"""Configuration models for the chat pipeline."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


class PipelineConfig(BaseModel):
    """Per-deployment knobs for evidence filtering and prompt history."""

    similarity_threshold: float = Field(default=0.35, ge=0.0, le=1.0)
    history_window: int = Field(default=6, ge=0)


class ClassifierConfig(BaseModel):
    """Configures the LLM query classification call and its gates."""

    confidence_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    fallback_keyword_limit: int = Field(default=5, ge=1)


class ChunkingConfig(BaseModel):
    """Configures paragraph/sentence chunk packing."""

    max_tokens: int = Field(default=200, ge=20)
    min_tokens: int = Field(default=20, ge=1)


class LLMConfig(BaseModel):
    """Connection settings for an OpenAI-compatible model server (Ollama by default)."""

    base_url: str | None = None
    api_key: str | None = None
    model: str = "gemma3:4b"
    classification_max_tokens: int = Field(default=200, ge=1)
    generation_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    @property
    def enabled(self) -> bool:
        return bool(self.base_url or self.api_key)

    @classmethod
    def from_env(cls) -> "LLMConfig":
        return cls(
            base_url=os.getenv("RAG_CHAT_LLM_BASE_URL") or None,
            api_key=os.getenv("OPENAI_API_KEY") or None,
            model=os.getenv("RAG_CHAT_MODEL", "gemma3:4b"),
        )
