from rag_chat.generation.thinking import Segment, ThinkingSplitter


def test_reasoning_span_in_single_chunk() -> None:
    splitter = ThinkingSplitter()

    segments = splitter.feed("<think>plan the answer</think>Answer")

    assert segments == [Segment("plan the answer", True), Segment("Answer", False)]
    assert splitter.flush() == []


def test_markers_split_across_chunks() -> None:
    splitter = ThinkingSplitter()

    assert splitter.feed("Hello <thi") == [Segment("Hello ", False)]
    assert splitter.feed("nk>secret</th") == [Segment("secret", True)]
    assert splitter.in_thinking
    assert splitter.feed("ink> world") == [Segment(" world", False)]
    assert not splitter.in_thinking


def test_flush_releases_held_fragment() -> None:
    splitter = ThinkingSplitter()

    assert splitter.feed("a < b") == [Segment("a < b", False)]
    assert splitter.feed(" and <") == [Segment(" and ", False)]
    assert splitter.flush() == [Segment("<", False)]


def test_unclosed_reasoning_stays_hidden() -> None:
    splitter = ThinkingSplitter()

    segments = splitter.feed("<think>still thinking")

    assert all(segment.thinking for segment in segments)
    assert all(segment.thinking for segment in splitter.flush())
