"""Local RAG chat pipeline."""

from .chat.orchestrator import ChatOrchestrator
from .config import ChunkingConfig, ClassifierConfig, LLMConfig, PipelineConfig
from .query.classifier import QueryClassifier
from .retrieval.engine import LocalRagEngine

__all__ = [
    "ChatOrchestrator",
    "ChunkingConfig",
    "ClassifierConfig",
    "LLMConfig",
    "LocalRagEngine",
    "PipelineConfig",
    "QueryClassifier",
]
