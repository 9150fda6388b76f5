"""Similarity-threshold filtering of retrieved evidence."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from rag_chat.types import RetrievedChunk

DEFAULT_SIMILARITY_THRESHOLD = 0.35

# Adjacency padding carries exactly this score and bypasses the threshold.
ADJACENCY_SIMILARITY = 0.0


@dataclass(slots=True)
class EvidenceSet:
    chunks: list[RetrievedChunk]
    dropped: int
    best_similarity: float

    @property
    def has_relevant_context(self) -> bool:
        return bool(self.chunks)


def filter_evidence(
    chunks: Sequence[RetrievedChunk],
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> list[RetrievedChunk]:
    return [
        chunk
        for chunk in chunks
        if chunk.similarity >= threshold or chunk.similarity == ADJACENCY_SIMILARITY
    ]


def best_similarity(chunks: Sequence[RetrievedChunk]) -> float:
    """Highest score among real hits; adjacency padding does not count."""
    return max((chunk.similarity for chunk in chunks if chunk.similarity > 0), default=0.0)


def collect_evidence(
    chunks: Sequence[RetrievedChunk],
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> EvidenceSet:
    kept = filter_evidence(chunks, threshold)
    return EvidenceSet(
        chunks=kept,
        dropped=len(chunks) - len(kept),
        best_similarity=best_similarity(kept),
    )
