"""Slash-command parsing for explicit retrieval intents."""

from __future__ import annotations

from dataclasses import dataclass

from rag_chat.types import ExplicitCommand

_COMMANDS: dict[str, ExplicitCommand] = {
    "/summary": ExplicitCommand.SUMMARY,
    "/define": ExplicitCommand.DEFINE,
    "/more": ExplicitCommand.MORE,
}


@dataclass(frozen=True, slots=True)
class ParsedInput:
    command: ExplicitCommand | None
    query: str
    error: str | None = None


def parse_input(text: str) -> ParsedInput:
    """Split a leading `/command` off the message.

    `/summary`, `/define` and `/more` select an explicit command and the rest
    of the message becomes the query. Any other leading `/word` is reported
    as an unknown command; text without a leading slash passes through.
    """

    stripped = text.strip()
    if not stripped.startswith("/"):
        return ParsedInput(command=None, query=stripped)

    head, *rest = stripped.split(maxsplit=1)
    command = _COMMANDS.get(head.lower())
    if command is None:
        return ParsedInput(
            command=None,
            query=stripped,
            error=f"Unknown command: {head}",
        )
    return ParsedInput(command=command, query=rest[0].strip() if rest else "")
