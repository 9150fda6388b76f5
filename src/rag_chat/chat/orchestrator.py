"""Per-message pipeline: understand -> retrieve -> filter -> prompt -> generate."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field

from rag_chat.chat.history import ChatHistory
from rag_chat.config import PipelineConfig
from rag_chat.generation.mock import build_mock_response
from rag_chat.generation.modes import select_mode
from rag_chat.generation.prompts import build_prompt
from rag_chat.generation.thinking import ThinkingSplitter
from rag_chat.obs.tracing import Timer, TraceStore, preview
from rag_chat.query.classifier import MSG_NOT_UNDERSTOOD, QueryClassifier
from rag_chat.query.commands import parse_input
from rag_chat.query.parameters import map_to_parameters
from rag_chat.query.validator import validate
from rag_chat.retrieval.evidence import EvidenceSet, collect_evidence
from rag_chat.types import (
    ChatEvent,
    ContextStrategy,
    ExplicitCommand,
    FailureKind,
    GenerationClient,
    PipelineState,
    ProcessResult,
    Query,
    QueryClassification,
    ResponseLanguage,
    ResponseMode,
    RetrievalService,
    SearchResult,
    StreamCompleted,
    TokenReceived,
)

logger = logging.getLogger(__name__)

MSG_EMPTY_RESPONSE = "The model returned an empty response. Please try again."
MSG_RETRIEVAL_FAILED = "Document search failed: {error}"
MSG_GENERATION_FAILED = (
    "Language model error: {error}\n\n"
    "Make sure the model server is running and the model is installed."
)

TokenCallback = Callable[[str], None]


@dataclass(slots=True)
class _Run:
    """Bookkeeping for one in-flight message."""

    text: str
    started: float = field(default_factory=time.perf_counter)
    states: list[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])
    keywords: list[str] = field(default_factory=list)

    def enter(self, state: PipelineState) -> None:
        logger.debug("pipeline %s -> %s", self.states[-1].value, state.value)
        self.states.append(state)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000.0


class ChatOrchestrator:
    """Runs one conversation's messages through the RAG pipeline.

    One message is in flight at a time; the host keeps input disabled until
    `StreamCompleted` arrives. Every run ends in exactly one terminal state:

    - REJECTED: validation or classification found nothing actionable. Only
      reachable without an explicit command.
    - FAILED: retrieval or generation raised, or the model answered with
      nothing. The host still gets a displayable message.
    - COMPLETED: the user query and the final answer are appended to the
      history, which is the only place history is ever written.
    """

    def __init__(
        self,
        *,
        retrieval: RetrievalService,
        classifier: QueryClassifier,
        generator: GenerationClient | None = None,
        history: ChatHistory | None = None,
        config: PipelineConfig | None = None,
        trace_store: TraceStore | None = None,
    ) -> None:
        self.retrieval = retrieval
        self.classifier = classifier
        self.generator = generator
        self.config = config or PipelineConfig()
        self.trace_store = trace_store
        self._history = history if history is not None else ChatHistory()

    @property
    def history(self) -> ChatHistory:
        return self._history

    def new_chat(self) -> None:
        self._history.clear()
        logger.info("Chat history cleared")

    async def process_message(
        self,
        text: str,
        *,
        command: ExplicitCommand | None = None,
        language: ResponseLanguage = ResponseLanguage.ENGLISH,
        on_token: TokenCallback | None = None,
    ) -> ProcessResult:
        """Run the pipeline, forwarding visible tokens to `on_token` in order.

        `on_token` runs inline with stream consumption and must not block.
        """

        result: ProcessResult | None = None
        async for event in self.stream_message(text, command=command, language=language):
            if isinstance(event, TokenReceived):
                if on_token is not None:
                    on_token(event.text)
            else:
                result = event.result
        if result is None:
            raise RuntimeError("message pipeline ended without a result")
        return result

    async def stream_message(
        self,
        text: str,
        *,
        command: ExplicitCommand | None = None,
        language: ResponseLanguage = ResponseLanguage.ENGLISH,
    ) -> AsyncIterator[ChatEvent]:
        """Yield `TokenReceived` per visible chunk, then one `StreamCompleted`.

        Abandoning the iterator before `StreamCompleted` leaves the history
        untouched.
        """

        run = _Run(text=text)

        # Validating
        run.enter(PipelineState.VALIDATING)
        query_text = text
        if command is None:
            parsed = parse_input(text)
            if parsed.error is not None:
                yield self._reject(run, parsed.error)
                return
            command, query_text = parsed.command, parsed.query
        if command is not None and not query_text.strip():
            # A bare command searches with the message as typed.
            query_text = text.strip() or command.value
        query = Query.capture(text, command, text=query_text)

        validation = validate(query.text)
        if not validation.passed and query.command is None:
            yield self._reject(run, validation.reason or MSG_NOT_UNDERSTOOD)
            return

        # Classifying
        run.enter(PipelineState.CLASSIFYING)
        if validation.passed:
            classification = await self.classifier.classify(query.text)
        else:
            classification = QueryClassification.rejected(query.text, validation.reason or MSG_NOT_UNDERSTOOD)
        run.keywords = list(classification.keywords)
        if not classification.is_valid and query.command is None:
            yield self._reject(run, classification.rejection_reason or MSG_NOT_UNDERSTOOD)
            return

        # ParameterMapping
        run.enter(PipelineState.PARAMETER_MAPPING)
        parameters = map_to_parameters(classification, query.command)
        query_type = query.command.value if query.command is not None else classification.type.value
        logger.info(
            "Using type=%s adjacent=%d budget=%d topK=%d",
            query_type,
            parameters.adjacent_chunks,
            parameters.token_budget,
            parameters.top_k,
        )

        # Retrieving
        run.enter(PipelineState.RETRIEVING)
        search_query = classification.normalized_query or query.text
        search: SearchResult | None = None
        retrieval_error: Exception | None = None
        with Timer() as retrieval_timer:
            try:
                search = await self.retrieval.search(
                    search_query,
                    top_k=parameters.top_k,
                    token_budget=parameters.token_budget,
                    adjacent_chunks=parameters.adjacent_chunks,
                    strategy=ContextStrategy.RELEVANCE_FIRST,
                    single_source=False,
                )
            except Exception as exc:
                logger.exception("Retrieval failed for %r", search_query)
                retrieval_error = exc
        if search is None:
            yield self._fail(
                run,
                FailureKind.RETRIEVAL,
                MSG_RETRIEVAL_FAILED.format(error=retrieval_error),
                error=retrieval_error,
                query_type=query_type,
                retrieval_ms=retrieval_timer.elapsed_ms,
            )
            return
        self._log_search(search_query, search)

        # Filtering
        run.enter(PipelineState.FILTERING)
        evidence = collect_evidence(search.chunks, self.config.similarity_threshold)
        if evidence.dropped:
            logger.info(
                "Filtered %d low similarity chunks (<%.2f)",
                evidence.dropped,
                self.config.similarity_threshold,
            )

        # ModeSelecting
        run.enter(PipelineState.MODE_SELECTING)
        mode = select_mode(evidence.has_relevant_context, evidence.best_similarity)
        logger.info(
            "Response mode %s (best similarity %.3f, %d/%d chunks kept, ~%d tokens)",
            mode.value.upper(),
            evidence.best_similarity,
            len(evidence.chunks),
            len(search.chunks),
            search.context.estimated_tokens,
        )

        # PromptBuilding
        run.enter(PipelineState.PROMPT_BUILDING)
        context_text = search.context.text if evidence.has_relevant_context else ""
        prompt = build_prompt(mode, query.text, context_text, language)
        history_window = self._history.window(self.config.history_window)

        # Generating
        run.enter(PipelineState.GENERATING)
        visible: list[str] = []
        thinking: list[str] = []
        generation_error: Exception | None = None
        splitter = ThinkingSplitter()
        # Only time spent waiting on the model counts; consumer time between tokens is excluded.
        generation_ms = 0.0
        pieces = (
            self.generator.stream(prompt.system_message, history_window, prompt.user_message)
            if self.generator is not None
            else _single_piece(build_mock_response(evidence.chunks, search.context.estimated_tokens))
        )
        try:
            stream = aiter(pieces)
            while True:
                with Timer() as step:
                    piece = await anext(stream, None)
                generation_ms += step.elapsed_ms
                if piece is None:
                    break
                for segment in splitter.feed(piece):
                    if segment.thinking:
                        thinking.append(segment.text)
                        continue
                    visible.append(segment.text)
                    yield TokenReceived(segment.text)
            for segment in splitter.flush():
                if segment.thinking:
                    thinking.append(segment.text)
                    continue
                visible.append(segment.text)
                yield TokenReceived(segment.text)
        except Exception as exc:
            logger.exception("Generation failed")
            generation_error = exc

        if thinking:
            logger.debug("Model reasoning span: %s", "".join(thinking))

        outcome = dict(
            chunks=search.chunks,
            estimated_tokens=search.context.estimated_tokens,
            query_type=query_type,
            retrieval_ms=retrieval_timer.elapsed_ms,
            generation_ms=generation_ms,
            mode=mode,
            evidence=evidence,
        )
        if generation_error is not None:
            yield self._fail(
                run,
                FailureKind.GENERATION,
                MSG_GENERATION_FAILED.format(error=generation_error),
                error=generation_error,
                **outcome,
            )
            return

        final_text = "".join(visible).strip()
        if not final_text:
            yield self._fail(run, FailureKind.EMPTY_RESPONSE, MSG_EMPTY_RESPONSE, **outcome)
            return

        self._history.commit_exchange(query.raw, final_text)
        run.enter(PipelineState.COMPLETED)
        result = ProcessResult(
            response=final_text,
            chunks=search.chunks,
            estimated_tokens=search.context.estimated_tokens,
            query_type=query_type,
            retrieval_ms=retrieval_timer.elapsed_ms,
            generation_ms=generation_ms,
            total_ms=run.elapsed_ms,
            state=PipelineState.COMPLETED,
            mode=mode,
            best_similarity=evidence.best_similarity,
        )
        self._trace(run, result)
        logger.info(
            "Message completed in %.0fms (retrieval %.0fms, generation %.0fms)",
            result.total_ms,
            result.retrieval_ms,
            result.generation_ms,
        )
        yield StreamCompleted(final_text=final_text, result=result)

    def _reject(self, run: _Run, reason: str) -> StreamCompleted:
        run.enter(PipelineState.REJECTED)
        logger.info("Query rejected: %s", reason)
        result = ProcessResult.rejected(reason, total_ms=run.elapsed_ms)
        self._trace(run, result)
        return StreamCompleted(final_text=reason, result=result)

    def _fail(
        self,
        run: _Run,
        kind: FailureKind,
        message: str,
        *,
        query_type: str,
        retrieval_ms: float,
        error: Exception | None = None,
        chunks: Sequence | None = None,
        estimated_tokens: int = 0,
        generation_ms: float = 0.0,
        mode: ResponseMode | None = None,
        evidence: EvidenceSet | None = None,
    ) -> StreamCompleted:
        run.enter(PipelineState.FAILED)
        result = ProcessResult(
            response=message,
            chunks=list(chunks or []),
            estimated_tokens=estimated_tokens,
            query_type=query_type,
            retrieval_ms=retrieval_ms,
            generation_ms=generation_ms,
            total_ms=run.elapsed_ms,
            state=PipelineState.FAILED,
            failure=kind,
            error=str(error) if error is not None else message,
            mode=mode,
            best_similarity=evidence.best_similarity if evidence is not None else 0.0,
        )
        self._trace(run, result)
        return StreamCompleted(final_text=message, result=result)

    def _trace(self, run: _Run, result: ProcessResult) -> None:
        if self.trace_store is None:
            return
        trace = self.trace_store.record(
            query=run.text,
            result=result,
            state_path=run.states,
            keywords=run.keywords,
        )
        result.trace_id = trace.trace_id

    @staticmethod
    def _log_search(search_query: str, search: SearchResult) -> None:
        logger.info("Search for %r returned %d chunks", search_query, len(search.chunks))
        for index, chunk in enumerate(search.chunks[:5]):
            logger.debug("  [%d] sim=%.3f: %s", index, chunk.similarity, preview(chunk.content))


async def _single_piece(text: str) -> AsyncIterator[str]:
    yield text
