"""Response strategy selection from retrieval confidence."""

from __future__ import annotations

from rag_chat.types import ResponseMode

# Inclusive lower bounds. Tunable here, not per query.
HYBRID_THRESHOLD = 0.5
STRICT_THRESHOLD = 0.7


def select_mode(has_relevant_context: bool, best_similarity: float) -> ResponseMode:
    if not has_relevant_context:
        return ResponseMode.FALLBACK
    if best_similarity >= STRICT_THRESHOLD:
        return ResponseMode.STRICT
    if best_similarity >= HYBRID_THRESHOLD:
        return ResponseMode.HYBRID
    return ResponseMode.FALLBACK
