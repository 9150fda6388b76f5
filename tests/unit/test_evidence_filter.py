import pytest

from rag_chat.generation.modes import select_mode
from rag_chat.retrieval.evidence import best_similarity, collect_evidence, filter_evidence
from rag_chat.types import ResponseMode, RetrievedChunk


def _chunk(chunk_id: str, similarity: float) -> RetrievedChunk:
    return RetrievedChunk(chunk_id=chunk_id, content=f"text of {chunk_id}", similarity=similarity, source="doc")


def test_filter_keeps_threshold_and_adjacency_chunks() -> None:
    chunks = [_chunk("hit", 0.9), _chunk("below", 0.34), _chunk("edge", 0.35), _chunk("adjacent", 0.0)]

    kept = filter_evidence(chunks, 0.35)

    assert [chunk.chunk_id for chunk in kept] == ["hit", "edge", "adjacent"]


def test_collect_evidence_counts_dropped_and_best() -> None:
    evidence = collect_evidence([_chunk("a", 0.41), _chunk("b", 0.2), _chunk("c", 0.0), _chunk("d", 0.66)])

    assert evidence.dropped == 1
    assert evidence.best_similarity == pytest.approx(0.66)
    assert evidence.has_relevant_context


def test_all_below_threshold_means_no_context() -> None:
    evidence = collect_evidence([_chunk("a", 0.3), _chunk("b", 0.1)])

    assert evidence.chunks == []
    assert not evidence.has_relevant_context
    assert evidence.best_similarity == 0.0
    assert select_mode(evidence.has_relevant_context, evidence.best_similarity) is ResponseMode.FALLBACK


def test_adjacency_only_evidence_selects_fallback() -> None:
    evidence = collect_evidence([_chunk("a", 0.0), _chunk("b", 0.0)])

    assert evidence.has_relevant_context
    assert evidence.best_similarity == 0.0
    assert select_mode(evidence.has_relevant_context, evidence.best_similarity) is ResponseMode.FALLBACK


def test_threshold_is_configurable() -> None:
    chunks = [_chunk("a", 0.5), _chunk("b", 0.4)]

    assert [chunk.chunk_id for chunk in filter_evidence(chunks, 0.45)] == ["a"]
    assert [chunk.chunk_id for chunk in filter_evidence(chunks, 0.0)] == ["a", "b"]


def test_best_similarity_of_empty_sequence() -> None:
    assert best_similarity([]) == 0.0
