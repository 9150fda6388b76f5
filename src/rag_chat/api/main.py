"""FastAPI entrypoint for document, chat and trace endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import AsyncIterator
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, model_validator

from rag_chat.chat.orchestrator import ChatOrchestrator
from rag_chat.config import ClassifierConfig, LLMConfig, PipelineConfig
from rag_chat.ingest.pipeline import DocumentIngestionService
from rag_chat.llm import LangChainCompletionClient, LangChainGenerationClient, create_chat_model
from rag_chat.obs.tracing import TraceStore
from rag_chat.query.classifier import QueryClassifier
from rag_chat.retrieval.engine import LocalRagEngine
from rag_chat.types import ExplicitCommand, ResponseLanguage, StreamCompleted

logging.basicConfig(
    level=os.getenv("RAG_CHAT_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

MSG_BUSY = "A message is already being processed. Wait for it to finish."


class DocumentRequest(BaseModel):
    text: str | None = None
    path: str | None = None
    source: str | None = None

    @model_validator(mode="after")
    def _text_or_path(self) -> "DocumentRequest":
        if (self.text is None) == (self.path is None):
            raise ValueError("provide exactly one of `text` or `path`")
        return self


class ChatRequest(BaseModel):
    message: str
    command: ExplicitCommand | None = None
    language: ResponseLanguage = ResponseLanguage.ENGLISH


app = FastAPI(title="RAG Chat", version="0.1.0")

_llm_config = LLMConfig.from_env()
_engine = LocalRagEngine()
_engine.initialize()
_ingestion = DocumentIngestionService(_engine)
_trace_store = TraceStore()
_chat_lock = asyncio.Lock()

_classification_llm = create_chat_model(
    _llm_config,
    temperature=0.0,
    max_tokens=_llm_config.classification_max_tokens,
)
_generation_llm = create_chat_model(_llm_config, temperature=_llm_config.generation_temperature)

_orchestrator = ChatOrchestrator(
    retrieval=_engine,
    classifier=QueryClassifier(
        LangChainCompletionClient(_classification_llm) if _classification_llm is not None else None,
        ClassifierConfig(),
    ),
    generator=LangChainGenerationClient(_generation_llm) if _generation_llm is not None else None,
    config=PipelineConfig(),
    trace_store=_trace_store,
)
logger.info("Chat API ready (generation=%s)", "llm" if _generation_llm is not None else "mock")


@app.get("/health")
def health() -> dict[str, Any]:
    stats = _engine.stats()
    return {
        "status": "ok",
        "llm_configured": _llm_config.enabled,
        "generation_mode": "llm" if _generation_llm is not None else "mock",
        "engine_state": stats.state.value,
        "sources": stats.source_count,
        "chunks": stats.chunk_count,
        "trace_count": len(_trace_store.list_recent(limit=1000)),
    }


@app.post("/documents")
def add_document(request: DocumentRequest) -> dict[str, Any]:
    try:
        if request.path is not None:
            result = _ingestion.add_file(request.path)
        else:
            result = _ingestion.add_text(request.text or "", source=request.source)
    except (OSError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return asdict(result)


@app.post("/documents/rebuild")
def rebuild_index() -> dict[str, Any]:
    published = _engine.rebuild_index()
    return {"published_chunks": published, **jsonable_encoder(asdict(_engine.stats()))}


@app.post("/chat")
async def chat(request: ChatRequest) -> dict[str, Any]:
    _ensure_idle()
    async with _chat_lock:
        result = await _orchestrator.process_message(
            request.message,
            command=request.command,
            language=request.language,
        )
    return jsonable_encoder(asdict(result))


@app.post("/chat/stream")
async def chat_stream(request: ChatRequest) -> StreamingResponse:
    _ensure_idle()

    async def events() -> AsyncIterator[str]:
        async with _chat_lock:
            async for event in _orchestrator.stream_message(
                request.message,
                command=request.command,
                language=request.language,
            ):
                if isinstance(event, StreamCompleted):
                    payload = {"type": "completed", "text": event.final_text, "result": asdict(event.result)}
                else:
                    payload = {"type": "token", "text": event.text}
                yield json.dumps(jsonable_encoder(payload), ensure_ascii=False) + "\n"

    return StreamingResponse(events(), media_type="application/x-ndjson")


def _ensure_idle() -> None:
    # One message per conversation at a time; the client waits for completion.
    if _chat_lock.locked():
        raise HTTPException(status_code=409, detail=MSG_BUSY)


@app.post("/chat/new")
def new_chat() -> dict[str, Any]:
    _orchestrator.new_chat()
    return {"status": "ok"}


@app.get("/chat/history")
def chat_history() -> dict[str, Any]:
    return {"items": jsonable_encoder([asdict(turn) for turn in _orchestrator.history.turns])}


@app.get("/traces")
def traces(limit: int = 20) -> dict[str, Any]:
    records = [asdict(record) for record in _trace_store.list_recent(limit=limit)]
    return {"items": jsonable_encoder(records)}


@app.get("/traces/{trace_id}")
def trace_detail(trace_id: str) -> dict[str, Any]:
    try:
        record = _trace_store.get(trace_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return jsonable_encoder(asdict(record))


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _trace_store.summary()
