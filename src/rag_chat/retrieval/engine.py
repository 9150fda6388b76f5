"""Local retrieval engine: document index, lifecycle, and context assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from rag_chat.errors import EngineStateError, RetrievalError
from rag_chat.ingest.chunker import ParagraphChunker
from rag_chat.obs.tracing import estimate_token_count
from rag_chat.retrieval.embedder import Embedder, HashingEmbedder
from rag_chat.retrieval.evidence import ADJACENCY_SIMILARITY
from rag_chat.retrieval.index import ChunkIndex, ScoredChunk, StoredChunk
from rag_chat.types import AssembledContext, ContextStrategy, RetrievedChunk, SearchResult

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    CREATED = "created"
    READY = "ready"
    DISPOSED = "disposed"


@dataclass(slots=True)
class EngineStats:
    state: EngineState
    source_count: int
    chunk_count: int
    pending_chunks: int


class LocalRagEngine:
    """Owned retrieval service with an explicit lifecycle.

    `initialize()` moves the engine to READY, `dispose()` drops every indexed
    chunk and moves it to DISPOSED, and `reset()` does both to start from an
    empty index. Documents go through `add_document` into a pending set and
    become searchable only after `rebuild_index()`.
    """

    def __init__(
        self,
        *,
        embedder: Embedder | None = None,
        chunker: ParagraphChunker | None = None,
    ) -> None:
        self.embedder = embedder or HashingEmbedder()
        self.chunker = chunker or ParagraphChunker()
        self.state = EngineState.CREATED
        self._index = ChunkIndex()
        self._pending: list[StoredChunk] = []
        self._sources: dict[str, str] = {}
        self._doc_counter = 0

    def initialize(self) -> None:
        if self.state is EngineState.READY:
            return
        self.state = EngineState.READY
        logger.info("Retrieval engine ready")

    def dispose(self) -> None:
        self._index.clear()
        self._pending.clear()
        self._sources.clear()
        self._doc_counter = 0
        self.state = EngineState.DISPOSED
        logger.info("Retrieval engine disposed")

    def reset(self) -> None:
        self.dispose()
        self.initialize()

    def add_document(self, text: str, *, source: str | None = None) -> int:
        """Chunk and embed `text` into the pending set; returns the chunk count."""

        self._require_ready()
        pieces = self.chunker.split(text)
        if not pieces:
            return 0

        embeddings = self.embedder.embed_documents(pieces)
        if len(embeddings) != len(pieces):
            raise ValueError("embedder returned a different number of vectors than chunks")

        self._doc_counter += 1
        doc_id = f"doc-{self._doc_counter:04d}"
        self._sources[doc_id] = source or doc_id
        for position, (piece, embedding) in enumerate(zip(pieces, embeddings, strict=True)):
            self._pending.append(
                StoredChunk(
                    chunk_id=f"{doc_id}-chunk-{position:04d}",
                    doc_id=doc_id,
                    source=self._sources[doc_id],
                    position=position,
                    text=piece,
                    token_count=estimate_token_count(piece),
                    embedding=embedding,
                )
            )
        logger.info("Added %s (%d chunks pending)", self._sources[doc_id], len(pieces))
        return len(pieces)

    def rebuild_index(self) -> int:
        """Publish pending chunks to the searchable index."""

        self._require_ready()
        published = len(self._pending)
        self._index.upsert(self._pending)
        self._pending = []
        logger.info("Index rebuilt: %d new chunks, %d total", published, self._index.chunk_count)
        return published

    def stats(self) -> EngineStats:
        return EngineStats(
            state=self.state,
            source_count=self._index.document_count,
            chunk_count=self._index.chunk_count,
            pending_chunks=len(self._pending),
        )

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
        """Rank chunks, pad hits with neighbours, and assemble context.

        Hits are grouped with their neighbouring chunks (similarity 0.0) in
        document order. Groups are admitted best-hit first while they fit
        `token_budget`; a group that does not fit is reduced to its hit.
        The best hit is always admitted, so the budget is a soft cap.
        """

        self._require_ready()
        if not query.strip() or top_k <= 0:
            return SearchResult(chunks=[], context=AssembledContext(text="", estimated_tokens=0))

        try:
            query_embedding = self.embedder.embed_query(query)
        except Exception as exc:
            raise RetrievalError(f"query embedding failed: {exc}") from exc

        hits = self._index.similarity_search(query_embedding, top_k)
        if single_source and hits:
            best_doc = hits[0].chunk.doc_id
            hits = [hit for hit in hits if hit.chunk.doc_id == best_doc]

        selected = self._select_within_budget(self._group_with_neighbours(hits, adjacent_chunks), token_budget)
        if strategy is ContextStrategy.DOCUMENT_ORDER:
            selected.sort(key=lambda item: (self._index.document_rank(item[0].doc_id), item[0].position))

        chunks = [
            RetrievedChunk(
                chunk_id=stored.chunk_id,
                content=stored.text,
                similarity=score,
                source=stored.source,
                position=stored.position,
            )
            for stored, score in selected
        ]
        text = "\n\n".join(stored.text for stored, _ in selected)
        return SearchResult(
            chunks=chunks,
            context=AssembledContext(text=text, estimated_tokens=estimate_token_count(text)),
        )

    def _group_with_neighbours(
        self,
        hits: list[ScoredChunk],
        window: int,
    ) -> list[list[tuple[StoredChunk, float]]]:
        claimed = {hit.chunk.chunk_id for hit in hits}
        groups: list[list[tuple[StoredChunk, float]]] = []
        for hit in hits:
            members = [(hit.chunk, hit.score)]
            for neighbour in self._index.neighbours(hit.chunk, window):
                if neighbour.chunk_id in claimed:
                    continue
                claimed.add(neighbour.chunk_id)
                members.append((neighbour, ADJACENCY_SIMILARITY))
            members.sort(key=lambda item: item[0].position)
            groups.append(members)
        return groups

    @staticmethod
    def _select_within_budget(
        groups: list[list[tuple[StoredChunk, float]]],
        token_budget: int,
    ) -> list[tuple[StoredChunk, float]]:
        selected: list[tuple[StoredChunk, float]] = []
        used = 0
        for group in groups:
            hit_only = [item for item in group if item[1] > ADJACENCY_SIMILARITY]
            for candidates in (group, hit_only):
                if used + _token_total(candidates) <= token_budget:
                    break
            else:
                if selected:
                    continue
                candidates = hit_only
            selected.extend(candidates)
            used += _token_total(candidates)
        return selected

    def _require_ready(self) -> None:
        if self.state is not EngineState.READY:
            raise EngineStateError(f"retrieval engine is {self.state.value}, not ready")


def _token_total(items: list[tuple[StoredChunk, float]]) -> int:
    return sum(stored.token_count for stored, _ in items)
