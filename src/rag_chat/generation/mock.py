"""Deterministic responder used when no language model is configured."""

from __future__ import annotations

from collections.abc import Sequence

from rag_chat.obs.tracing import preview
from rag_chat.types import RetrievedChunk

NO_DOCUMENTS_MESSAGE = (
    "No relevant documents found.\n\n"
    "Please add some documents first."
)


def build_mock_response(chunks: Sequence[RetrievedChunk], estimated_tokens: int) -> str:
    """Summarize retrieval evidence without calling a model.

    Keeps the same result contract as a real generation so hosts can run the
    whole pipeline offline. Lists at most three chunks.
    """

    if not chunks:
        return NO_DOCUMENTS_MESSAGE

    lines = [
        f"Found {len(chunks)} relevant chunks:",
        f"Using ~{estimated_tokens} tokens",
        "",
    ]
    for idx, chunk in enumerate(chunks[:3], start=1):
        lines.append(f"{idx}. {preview(chunk.content, 100)} [{chunk.chunk_id}]")
    lines.extend(["", "---", "This is a mock response. Configure a language model for real answers."])
    return "\n".join(lines)
