"""Shared domain models and collaborator contracts."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, Union


class QueryType(str, Enum):
    DEFINITION = "definition"
    EXPLANATION = "explanation"
    FACTUAL = "factual"
    COMPARISON = "comparison"
    LISTING = "listing"
    SUMMARY = "summary"
    OPINION = "opinion"
    GREETING = "greeting"
    UNCLEAR = "unclear"
    UNKNOWN = "unknown"


class ExplicitCommand(str, Enum):
    """Slash commands that override intent classification."""

    SUMMARY = "summary"
    DEFINE = "define"
    MORE = "more"


class ContextStrategy(str, Enum):
    RELEVANCE_FIRST = "relevance_first"
    DOCUMENT_ORDER = "document_order"


class ResponseMode(str, Enum):
    STRICT = "strict"
    HYBRID = "hybrid"
    FALLBACK = "fallback"


class ResponseLanguage(str, Enum):
    ENGLISH = "en"
    KOREAN = "ko"


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class PipelineState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CLASSIFYING = "classifying"
    PARAMETER_MAPPING = "parameter_mapping"
    RETRIEVING = "retrieving"
    FILTERING = "filtering"
    MODE_SELECTING = "mode_selecting"
    PROMPT_BUILDING = "prompt_building"
    GENERATING = "generating"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"


class FailureKind(str, Enum):
    RETRIEVAL = "retrieval"
    GENERATION = "generation"
    EMPTY_RESPONSE = "empty_response"


@dataclass(frozen=True, slots=True)
class Query:
    """A user message captured for one pipeline run."""

    raw: str
    text: str
    command: ExplicitCommand | None = None

    @classmethod
    def capture(
        cls,
        raw: str,
        command: ExplicitCommand | None = None,
        *,
        text: str | None = None,
    ) -> "Query":
        """Freeze a message; `text` overrides the trimmed raw input when a prefix was parsed off."""
        return cls(raw=raw, text=(raw if text is None else text).strip(), command=command)


@dataclass(frozen=True, slots=True)
class QueryClassification:
    """Outcome of query understanding for one message."""

    is_valid: bool
    type: QueryType
    original_query: str
    normalized_query: str
    keywords: tuple[str, ...]
    confidence: float
    implicit_intent: str | None = None
    rejection_reason: str | None = None

    @classmethod
    def rejected(cls, original_query: str, reason: str) -> "QueryClassification":
        return cls(
            is_valid=False,
            type=QueryType.UNKNOWN,
            original_query=original_query,
            normalized_query="",
            keywords=(),
            confidence=0.0,
            rejection_reason=reason,
        )


@dataclass(frozen=True, slots=True)
class RetrievalParameters:
    adjacent_chunks: int
    token_budget: int
    top_k: int


@dataclass(frozen=True, slots=True)
class RetrievedChunk:
    """A search hit. Similarity 0.0 marks adjacency padding, not relevance."""

    chunk_id: str
    content: str
    similarity: float
    source: str
    position: int = 0


@dataclass(slots=True)
class AssembledContext:
    text: str
    estimated_tokens: int


@dataclass(slots=True)
class SearchResult:
    chunks: list[RetrievedChunk]
    context: AssembledContext


@dataclass(frozen=True, slots=True)
class ChatTurn:
    role: ChatRole
    content: str


@dataclass(slots=True)
class ProcessResult:
    """Everything a host needs to render one processed message."""

    response: str
    chunks: list[RetrievedChunk]
    estimated_tokens: int
    query_type: str
    retrieval_ms: float
    generation_ms: float
    total_ms: float
    state: PipelineState = PipelineState.COMPLETED
    is_rejected: bool = False
    rejection_reason: str | None = None
    failure: FailureKind | None = None
    error: str | None = None
    mode: ResponseMode | None = None
    best_similarity: float = 0.0
    trace_id: str | None = None

    @classmethod
    def rejected(cls, reason: str, *, total_ms: float = 0.0) -> "ProcessResult":
        return cls(
            response=reason,
            chunks=[],
            estimated_tokens=0,
            query_type="rejected",
            retrieval_ms=0.0,
            generation_ms=0.0,
            total_ms=total_ms,
            state=PipelineState.REJECTED,
            is_rejected=True,
            rejection_reason=reason,
        )


@dataclass(frozen=True, slots=True)
class TokenReceived:
    text: str


@dataclass(frozen=True, slots=True)
class StreamCompleted:
    final_text: str
    result: ProcessResult = field(compare=False)


ChatEvent = Union[TokenReceived, StreamCompleted]


class RetrievalService(Protocol):
    """Similarity search over the document index."""

    async def search(
        self,
        query: str,
        *,
        top_k: int,
        token_budget: int,
        adjacent_chunks: int,
        strategy: ContextStrategy = ContextStrategy.RELEVANCE_FIRST,
        single_source: bool = False,
    ) -> SearchResult:
        """Return ranked chunks plus the assembled context blob."""


class CompletionClient(Protocol):
    """Single-shot text completion used for query classification."""

    async def complete(self, prompt: str) -> str:
        """Return the model's raw text answer."""


class GenerationClient(Protocol):
    """Streaming chat generation endpoint."""

    def stream(
        self,
        system_message: str,
        history: Sequence[ChatTurn],
        user_message: str,
    ) -> AsyncIterator[str]:
        """Yield response text pieces in arrival order."""
