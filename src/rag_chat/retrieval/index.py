"""In-memory chunk index with document positions for neighbour lookup."""

from __future__ import annotations

from dataclasses import dataclass
from math import sqrt


@dataclass(slots=True)
class StoredChunk:
    chunk_id: str
    doc_id: str
    source: str
    position: int
    text: str
    token_count: int
    embedding: list[float]


@dataclass(slots=True)
class ScoredChunk:
    chunk: StoredChunk
    score: float


class ChunkIndex:
    """Deterministic cosine-similarity index used by `LocalRagEngine`."""

    def __init__(self) -> None:
        self._chunks: dict[str, StoredChunk] = {}
        self._documents: dict[str, list[StoredChunk]] = {}

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def document_count(self) -> int:
        return len(self._documents)

    def upsert(self, chunks: list[StoredChunk]) -> None:
        for chunk in chunks:
            self._chunks[chunk.chunk_id] = chunk
            positions = self._documents.setdefault(chunk.doc_id, [])
            positions[:] = [item for item in positions if item.chunk_id != chunk.chunk_id]
            positions.append(chunk)
            positions.sort(key=lambda item: item.position)

    def similarity_search(
        self,
        query_embedding: list[float],
        k: int,
        *,
        doc_id: str | None = None,
    ) -> list[ScoredChunk]:
        """Top-k chunks by cosine similarity; non-positive scores are not hits."""

        scored = []
        for chunk in self._chunks.values():
            if doc_id is not None and chunk.doc_id != doc_id:
                continue
            score = min(1.0, _cosine_similarity(query_embedding, chunk.embedding))
            if score > 0.0:
                scored.append(ScoredChunk(chunk=chunk, score=score))

        ranks = {known: rank for rank, known in enumerate(self._documents)}
        scored.sort(key=lambda item: (-item.score, ranks[item.chunk.doc_id], item.chunk.position))
        return scored[:k]

    def neighbours(self, chunk: StoredChunk, window: int) -> list[StoredChunk]:
        if window <= 0:
            return []
        return [
            item
            for item in self._documents.get(chunk.doc_id, [])
            if item.chunk_id != chunk.chunk_id and abs(item.position - chunk.position) <= window
        ]

    def document_rank(self, doc_id: str) -> int:
        for rank, known in enumerate(self._documents):
            if known == doc_id:
                return rank
        return len(self._documents)

    def clear(self) -> None:
        self._chunks.clear()
        self._documents.clear()


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
