"""Separates `<think>` reasoning spans from streamed model output."""

from __future__ import annotations

from dataclasses import dataclass

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"


@dataclass(frozen=True, slots=True)
class Segment:
    text: str
    thinking: bool


class ThinkingSplitter:
    """Incremental splitter for streamed text.

    Tags may arrive split across chunks (`"<thi"` + `"nk>"`), so a trailing
    fragment that could still become a marker is held back until the next
    `feed` or the final `flush`. Markers themselves are never emitted.
    """

    def __init__(self) -> None:
        self.in_thinking = False
        self._pending = ""

    def feed(self, chunk: str) -> list[Segment]:
        self._pending += chunk
        segments: list[Segment] = []
        while self._pending:
            marker = THINK_CLOSE if self.in_thinking else THINK_OPEN
            index = self._pending.find(marker)
            if index >= 0:
                if index:
                    segments.append(Segment(self._pending[:index], self.in_thinking))
                self._pending = self._pending[index + len(marker) :]
                self.in_thinking = not self.in_thinking
                continue

            held = _partial_marker_length(self._pending, marker)
            emit = self._pending[: len(self._pending) - held]
            if emit:
                segments.append(Segment(emit, self.in_thinking))
            self._pending = self._pending[len(emit) :]
            break
        return segments

    def flush(self) -> list[Segment]:
        if not self._pending:
            return []
        segment = Segment(self._pending, self.in_thinking)
        self._pending = ""
        return [segment]


def _partial_marker_length(text: str, marker: str) -> int:
    for size in range(min(len(marker) - 1, len(text)), 0, -1):
        if marker.startswith(text[-size:]):
            return size
    return 0
