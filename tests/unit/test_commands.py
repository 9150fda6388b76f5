from rag_chat.query.commands import parse_input
from rag_chat.types import ExplicitCommand


def test_known_commands_split_off_query() -> None:
    parsed = parse_input("/summary chapter 3")

    assert parsed.command is ExplicitCommand.SUMMARY
    assert parsed.query == "chapter 3"
    assert parsed.error is None


def test_command_matching_is_case_insensitive() -> None:
    assert parse_input("  /DEFINE entropy ").command is ExplicitCommand.DEFINE


def test_command_without_query() -> None:
    parsed = parse_input("/more")

    assert parsed.command is ExplicitCommand.MORE
    assert parsed.query == ""


def test_unknown_command_reports_error() -> None:
    parsed = parse_input("/foo bar")

    assert parsed.command is None
    assert parsed.error == "Unknown command: /foo"


def test_plain_text_passes_through() -> None:
    parsed = parse_input("  What is 1/2?  ")

    assert parsed.command is None
    assert parsed.query == "What is 1/2?"
    assert parsed.error is None
