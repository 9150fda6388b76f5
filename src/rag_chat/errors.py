"""Exception taxonomy for collaborator failures."""

from __future__ import annotations


class RagChatError(RuntimeError):
    """Base class for errors raised by rag_chat components."""


class EngineStateError(RagChatError):
    """Raised when the retrieval engine is used outside its ready state."""


class RetrievalError(RagChatError):
    """Raised when a retrieval service cannot answer a search."""


class GenerationError(RagChatError):
    """Raised when the generation endpoint fails mid-request."""
