"""Timing, token estimation, and per-message pipeline traces."""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from rag_chat.types import PipelineState, ProcessResult

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)


@dataclass(slots=True)
class PipelineTrace:
    trace_id: str
    timestamp_utc: str
    query: str
    query_type: str
    state: PipelineState
    state_path: list[PipelineState]
    mode: str | None
    best_similarity: float
    chunk_count: int
    estimated_tokens: int
    retrieval_ms: float
    generation_ms: float
    total_ms: float
    failure: str | None = None
    keywords: list[str] = field(default_factory=list)


class TraceStore:
    """In-memory trace storage for API-level observability."""

    def __init__(self, *, max_records: int = 1000) -> None:
        self._records: dict[str, PipelineTrace] = {}
        self._max_records = max_records

    def record(
        self,
        *,
        query: str,
        result: ProcessResult,
        state_path: list[PipelineState],
        keywords: list[str] | None = None,
    ) -> PipelineTrace:
        trace = PipelineTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            query=query,
            query_type=result.query_type,
            state=result.state,
            state_path=list(state_path),
            mode=result.mode.value if result.mode is not None else None,
            best_similarity=result.best_similarity,
            chunk_count=len(result.chunks),
            estimated_tokens=result.estimated_tokens,
            retrieval_ms=result.retrieval_ms,
            generation_ms=result.generation_ms,
            total_ms=result.total_ms,
            failure=result.failure.value if result.failure is not None else None,
            keywords=list(keywords or []),
        )
        self._records[trace.trace_id] = trace
        while len(self._records) > self._max_records:
            del self._records[next(iter(self._records))]
        return trace

    def get(self, trace_id: str) -> PipelineTrace:
        trace = self._records.get(trace_id)
        if trace is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return trace

    def list_recent(self, limit: int = 20) -> list[PipelineTrace]:
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int | dict[str, int]]:
        """Aggregate per-state counts and latency for dashboard display."""
        traces = list(self._records.values())
        total = len(traces)
        if total == 0:
            return {
                "total_requests": 0,
                "avg_total_ms": 0.0,
                "p95_total_ms": 0.0,
                "avg_retrieval_ms": 0.0,
                "avg_generation_ms": 0.0,
                "states": {},
                "modes": {},
            }

        latencies = sorted(trace.total_ms for trace in traces)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        states: dict[str, int] = {}
        modes: dict[str, int] = {}
        for trace in traces:
            states[trace.state.value] = states.get(trace.state.value, 0) + 1
            if trace.mode is not None:
                modes[trace.mode] = modes.get(trace.mode, 0) + 1

        return {
            "total_requests": total,
            "avg_total_ms": sum(latencies) / total,
            "p95_total_ms": latencies[p95_index],
            "avg_retrieval_ms": sum(trace.retrieval_ms for trace in traces) / total,
            "avg_generation_ms": sum(trace.generation_ms for trace in traces) / total,
            "states": states,
            "modes": modes,
        }


class Timer:
    """Context timer; works the same around awaited code."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


def estimate_token_count(text: str) -> int:
    return len(_TOKEN_PATTERN.findall(text))


def preview(text: str, max_length: int = 50) -> str:
    flat = text.replace("\n", " ")
    if len(flat) <= max_length:
        return flat
    return flat[: max_length - 3] + "..."
