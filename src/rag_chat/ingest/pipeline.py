"""Document ingestion: read -> add to engine -> rebuild index."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from rag_chat.retrieval.engine import LocalRagEngine

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".txt", ".md", ".markdown")


@dataclass(slots=True)
class AddDocumentResult:
    chunk_count: int
    total_sources: int
    total_chunks: int
    source: str | None = None


class DocumentIngestionService:
    """Adds user documents to the retrieval engine.

    Each add publishes immediately (`rebuild_index`) so the next chat message
    can retrieve from it. Binary formats (PDF/DOCX) need text extraction
    upstream; only plain text and markdown files are read here.
    """

    def __init__(self, engine: LocalRagEngine) -> None:
        self._engine = engine

    def add_text(self, text: str, *, source: str | None = None) -> AddDocumentResult:
        if not text.strip():
            raise ValueError("No text could be extracted from the document")

        chunk_count = self._engine.add_document(text, source=source)
        self._engine.rebuild_index()
        stats = self._engine.stats()
        logger.info(
            "Ingested %s: %d chunks (sources=%d, chunks=%d)",
            source or "text document",
            chunk_count,
            stats.source_count,
            stats.chunk_count,
        )
        return AddDocumentResult(
            chunk_count=chunk_count,
            total_sources=stats.source_count,
            total_chunks=stats.chunk_count,
            source=source,
        )

    def add_file(self, path: str | Path) -> AddDocumentResult:
        file_path = Path(path)
        if file_path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            raise ValueError(f"Unsupported file type: {file_path.suffix or file_path.name}")
        text = file_path.read_text(encoding="utf-8")
        return self.add_text(text, source=file_path.name)
