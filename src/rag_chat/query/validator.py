"""Structural validation of user input before any model call."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

MSG_EMPTY_QUERY = "Please enter a question."
MSG_TOO_SHORT = "Input is too short."
MSG_MEANINGFUL = "Please enter a meaningful question."
MSG_ONLY_NUMBERS = "Cannot understand a question with only numbers."

MIN_QUERY_LENGTH = 2

_ONLY_NUMBERS = re.compile(r"^[\d\s.,]+$")


@dataclass(frozen=True, slots=True)
class ValidationResult:
    passed: bool
    reason: str | None = None


def validate(text: str) -> ValidationResult:
    """Reject empty, too short, punctuation-only and numbers-only input."""

    query = text.strip()
    if not query:
        return ValidationResult(False, MSG_EMPTY_QUERY)
    if len(query) < MIN_QUERY_LENGTH:
        return ValidationResult(False, MSG_TOO_SHORT)
    if _only_punctuation_or_symbols(query):
        return ValidationResult(False, MSG_MEANINGFUL)
    if _ONLY_NUMBERS.match(query):
        return ValidationResult(False, MSG_ONLY_NUMBERS)
    return ValidationResult(True)


def _only_punctuation_or_symbols(text: str) -> bool:
    # Unicode categories P* (punctuation) and S* (symbols), whitespace allowed.
    return all(
        char.isspace() or unicodedata.category(char)[0] in ("P", "S")
        for char in text
    )
