"""LLM-backed query classification with a deterministic fallback."""

from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from string import Template
from typing import Any

from rag_chat.config import ClassifierConfig
from rag_chat.obs.tracing import Timer
from rag_chat.query.validator import validate
from rag_chat.types import CompletionClient, QueryClassification, QueryType

logger = logging.getLogger(__name__)

MSG_NOT_UNDERSTOOD = "I didn't understand the question. Please be more specific."
MSG_GREETING = "Hello! Please ask me a question about the documents."
MSG_REPHRASE = "I didn't understand the question. Please rephrase."

FALLBACK_CONFIDENCE = 0.5

_QUOTE_TRANSLATION = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"'})
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_FALLBACK_PUNCTUATION = re.compile(r"[?？!！.,。，]")
_WORD_PATTERN = re.compile(r"\w+", flags=re.UNICODE)

_CLASSIFICATION_PROMPT = Template(
    """
Analyze the user input. Respond ONLY in JSON.

Input: $query

Rules:
1. `normalized_query` and `keywords` MUST ONLY use words present in the input.
2. Do NOT invent new words not in the input.
3. Treat meaningless or ambiguous input as `is_valid: false`.

Analysis Fields:
1. is_valid: Is it a meaningful question/request? (true/false)
   - Ambiguous expressions like "I don't know", "What is it", "Hmm" -> false
   - Clear topic or keyword -> true
2. query_type: Question type
   - "definition": Asking for meaning (e.g., "What is X?", "Define X", or just "X")
   - "explanation": Asking for reason/method (e.g., "Why?", "How?")
   - "factual": Asking for facts (e.g., "When?", "Where?", "Who?", "How much?")
   - "comparison": Asking for comparison (e.g., "A vs B", "Difference")
   - "listing": Asking for a list (e.g., "List of...", "Types of...")
   - "summary": Asking for summary (e.g., "Summarize", "TLDR")
   - "opinion": Asking for an opinion or recommendation
   - "greeting": Greeting (e.g., "Hello", "Hi")
   - "unclear": Cannot determine intent
3. implicit_intent: inferred intent (based ONLY on input words)
4. normalized_query: Query for search (use ONLY words from input!)
5. keywords: Key keywords extracted from input (Array, ONLY words from input!)
6. confidence: Analysis confidence (0.0-1.0)
   - Ambiguous: 0.3 or less
   - Clear: 0.7 or more

JSON Format:
{
  "is_valid": true/false,
  "query_type": "...",
  "implicit_intent": "...",
  "normalized_query": "only words from input",
  "keywords": ["words", "from", "input"],
  "confidence": 0.0-1.0
}
""".strip()
)


class QueryClassifier:
    """Validates, classifies and normalizes a user query.

    The classification endpoint is optional. Without one, and whenever the
    call times out, raises, or returns text without a decodable JSON object,
    the deterministic fallback classification is used instead. `classify`
    therefore always returns a `QueryClassification`.
    """

    def __init__(
        self,
        client: CompletionClient | None = None,
        config: ClassifierConfig | None = None,
    ) -> None:
        self.client = client
        self.config = config or ClassifierConfig()

    async def classify(self, text: str) -> QueryClassification:
        query = text.strip()
        validation = validate(query)
        if not validation.passed:
            logger.info("Query rejected by validation: %s", validation.reason)
            return QueryClassification.rejected(query, validation.reason or MSG_NOT_UNDERSTOOD)

        with Timer() as timer:
            classification = await self._classify_with_llm(query)

        logger.info(
            "Query understanding (%.0fms): type=%s confidence=%.2f normalized=%r keywords=%s",
            timer.elapsed_ms,
            classification.type.value,
            classification.confidence,
            classification.normalized_query,
            list(classification.keywords),
        )

        if classification.is_valid and classification.confidence < self.config.confidence_threshold:
            return QueryClassification.rejected(query, MSG_NOT_UNDERSTOOD)
        return classification

    async def _classify_with_llm(self, query: str) -> QueryClassification:
        limit = self.config.fallback_keyword_limit
        if self.client is None:
            return fallback_classification(query, keyword_limit=limit)

        prompt = build_classification_prompt(query)
        try:
            raw = await asyncio.wait_for(
                self.client.complete(prompt),
                timeout=self.config.timeout_seconds,
            )
        except Exception as exc:
            logger.warning("Classification call failed, using fallback: %r", exc)
            return fallback_classification(query, keyword_limit=limit)

        logger.debug("Classification response: %s", raw)
        return parse_classification_response(query, raw, keyword_limit=limit)


def build_classification_prompt(query: str) -> str:
    return _CLASSIFICATION_PROMPT.substitute(query=json.dumps(query, ensure_ascii=False))


def parse_classification_response(
    original_query: str,
    response_text: str,
    *,
    keyword_limit: int = 5,
) -> QueryClassification:
    """Decode the first JSON object in a free-form model answer."""

    span = extract_json_object(response_text or "")
    if span is None:
        logger.warning("No JSON object found in classification response")
        return fallback_classification(original_query, keyword_limit=keyword_limit)

    try:
        payload = json.loads(sanitize_json_text(span))
    except json.JSONDecodeError as exc:
        logger.warning("Failed to decode classification JSON: %s", exc)
        return fallback_classification(original_query, keyword_limit=keyword_limit)

    if not isinstance(payload, dict):
        return fallback_classification(original_query, keyword_limit=keyword_limit)
    return _classification_from_payload(original_query, payload)


def extract_json_object(text: str) -> str | None:
    """Return the first balanced `{...}` span, ignoring braces inside strings."""

    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def sanitize_json_text(text: str) -> str:
    return _CONTROL_CHARS.sub("", text.translate(_QUOTE_TRANSLATION))


def fallback_classification(query: str, *, keyword_limit: int = 5) -> QueryClassification:
    return QueryClassification(
        is_valid=True,
        type=QueryType.DEFINITION,
        original_query=query,
        normalized_query=query,
        keywords=tuple(extract_simple_keywords(query, limit=keyword_limit)),
        confidence=FALLBACK_CONFIDENCE,
    )


def extract_simple_keywords(query: str, *, limit: int = 5) -> list[str]:
    cleaned = _FALLBACK_PUNCTUATION.sub(" ", query)
    return [word for word in cleaned.split() if len(word) > 1][:limit]


def parse_query_type(value: Any) -> QueryType:
    if not isinstance(value, str):
        return QueryType.UNKNOWN
    try:
        return QueryType(value.strip().lower())
    except ValueError:
        return QueryType.UNKNOWN


def ground_normalized_query(original_query: str, normalized_query: str) -> str:
    """Drop words the model invented; an empty result falls back to the input.

    A word counts as grounded when it appears inside some input word, so a
    stem cut from an agglutinated token ("광합성" from "광합성이란") survives.
    """

    vocabulary = _vocabulary(original_query)
    tokens = _WORD_PATTERN.findall(normalized_query)
    grounded = [token for token in tokens if _is_grounded(token, vocabulary)]
    if not grounded:
        return original_query
    if len(grounded) == len(tokens):
        return normalized_query.strip()
    return " ".join(grounded)


def ground_keywords(original_query: str, keywords: list[str]) -> tuple[str, ...]:
    vocabulary = _vocabulary(original_query)
    seen: set[str] = set()
    grounded: list[str] = []
    for keyword in keywords:
        tokens = _WORD_PATTERN.findall(keyword)
        if not tokens or not all(_is_grounded(token, vocabulary) for token in tokens):
            continue
        key = keyword.strip().casefold()
        if key in seen:
            continue
        seen.add(key)
        grounded.append(keyword.strip())
    return tuple(grounded)


def _classification_from_payload(original_query: str, payload: dict[str, Any]) -> QueryClassification:
    is_valid = payload.get("is_valid", True)
    if not isinstance(is_valid, bool):
        is_valid = True
    query_type = parse_query_type(payload.get("query_type"))

    if query_type is QueryType.GREETING:
        return QueryClassification.rejected(original_query, MSG_GREETING)
    if query_type in (QueryType.UNCLEAR, QueryType.UNKNOWN):
        return QueryClassification.rejected(original_query, MSG_NOT_UNDERSTOOD)
    if not is_valid:
        return QueryClassification.rejected(original_query, MSG_REPHRASE)

    normalized = payload.get("normalized_query")
    if not isinstance(normalized, str) or not normalized.strip():
        normalized = original_query
    raw_keywords = payload.get("keywords")
    keywords = [str(item) for item in raw_keywords] if isinstance(raw_keywords, list) else []
    implicit_intent = payload.get("implicit_intent")

    return QueryClassification(
        is_valid=True,
        type=query_type,
        original_query=original_query,
        normalized_query=ground_normalized_query(original_query, normalized),
        keywords=ground_keywords(original_query, keywords),
        confidence=_parse_confidence(payload.get("confidence")),
        implicit_intent=implicit_intent.strip() if isinstance(implicit_intent, str) and implicit_intent.strip() else None,
    )


def _parse_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return FALLBACK_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return FALLBACK_CONFIDENCE
    if math.isnan(confidence):
        return FALLBACK_CONFIDENCE
    return min(1.0, max(0.0, confidence))


def _vocabulary(text: str) -> set[str]:
    return {token.casefold() for token in _WORD_PATTERN.findall(text)}


def _is_grounded(token: str, vocabulary: set[str]) -> bool:
    folded = token.casefold()
    if folded in vocabulary:
        return True
    # Single characters match almost anything.
    return len(folded) >= 2 and any(folded in word for word in vocabulary)
