import pytest

from rag_chat.config import ChunkingConfig
from rag_chat.ingest.chunker import ParagraphChunker
from rag_chat.obs.tracing import estimate_token_count

_TWO_PARAGRAPHS = "Alpha beta gamma delta epsilon.\n\nZeta eta theta iota kappa."


def test_paragraph_boundary_closes_chunk_once_min_is_reached() -> None:
    chunker = ParagraphChunker(ChunkingConfig(max_tokens=20, min_tokens=5))

    assert chunker.split(_TWO_PARAGRAPHS) == [
        "Alpha beta gamma delta epsilon.",
        "Zeta eta theta iota kappa.",
    ]


def test_short_paragraphs_are_packed_together() -> None:
    chunker = ParagraphChunker(ChunkingConfig(max_tokens=20, min_tokens=10))

    assert chunker.split(_TWO_PARAGRAPHS) == [
        "Alpha beta gamma delta epsilon.\n\nZeta eta theta iota kappa.",
    ]


def test_long_sentence_is_cut_on_words_within_bounds() -> None:
    sentence = " ".join(f"word{index}" for index in range(50))
    chunker = ParagraphChunker(ChunkingConfig(max_tokens=20, min_tokens=5))

    chunks = chunker.split(sentence)

    assert [estimate_token_count(chunk) for chunk in chunks] == [20, 20, 10]
    assert " ".join(chunks) == sentence


def test_sentences_never_exceed_max_tokens() -> None:
    text = " ".join("Data governance requires strict access control." for _ in range(30))
    chunker = ParagraphChunker(ChunkingConfig(max_tokens=40, min_tokens=10))

    chunks = chunker.split(text)

    assert len(chunks) > 1
    assert all(estimate_token_count(chunk) <= 40 for chunk in chunks)


def test_empty_text_has_no_chunks() -> None:
    assert ParagraphChunker().split("  \n\n  ") == []


def test_min_above_max_is_rejected() -> None:
    with pytest.raises(ValueError):
        ParagraphChunker(ChunkingConfig(max_tokens=20, min_tokens=30))
