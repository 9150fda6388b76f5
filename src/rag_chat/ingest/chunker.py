"""Paragraph-aware chunking for document ingestion."""

from __future__ import annotations

import re

from rag_chat.config import ChunkingConfig
from rag_chat.obs.tracing import estimate_token_count

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?。！？])\s+")


class ParagraphChunker:
    """Packs sentences into chunks of at most `max_tokens` estimated tokens.

    Paragraphs are kept together where they fit. A paragraph boundary closes
    the current chunk once it holds `min_tokens`, so neighbouring chunks map
    to neighbouring passages, which is what adjacency expansion relies on.
    Sentences longer than `max_tokens` are cut on word boundaries.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()
        if self.config.min_tokens > self.config.max_tokens:
            raise ValueError("min_tokens must not exceed max_tokens")

    def split(self, text: str) -> list[str]:
        chunks: list[str] = []
        buffer = ""
        buffer_tokens = 0

        for paragraph in _PARAGRAPH_SPLIT.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            new_paragraph = True
            for sentence in _SENTENCE_SPLIT.split(paragraph):
                sentence = " ".join(sentence.split())
                if not sentence:
                    continue
                tokens = estimate_token_count(sentence)
                if tokens > self.config.max_tokens:
                    if buffer:
                        chunks.append(buffer)
                        buffer, buffer_tokens = "", 0
                    chunks.extend(self._split_long_sentence(sentence))
                    new_paragraph = False
                    continue
                if buffer and buffer_tokens + tokens > self.config.max_tokens:
                    chunks.append(buffer)
                    buffer, buffer_tokens = "", 0
                if buffer:
                    buffer += ("\n\n" if new_paragraph else " ") + sentence
                else:
                    buffer = sentence
                buffer_tokens += tokens
                new_paragraph = False

            if buffer_tokens >= self.config.min_tokens:
                chunks.append(buffer)
                buffer, buffer_tokens = "", 0

        if buffer:
            chunks.append(buffer)
        return chunks

    def _split_long_sentence(self, sentence: str) -> list[str]:
        pieces: list[str] = []
        words: list[str] = []
        tokens = 0
        for word in sentence.split():
            word_tokens = estimate_token_count(word)
            if words and tokens + word_tokens > self.config.max_tokens:
                pieces.append(" ".join(words))
                words, tokens = [], 0
            words.append(word)
            tokens += word_tokens
        if words:
            pieces.append(" ".join(words))
        return pieces
