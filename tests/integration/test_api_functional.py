import asyncio
import json

import pytest
from fastapi.testclient import TestClient


def test_api_documents_chat_traces_metrics(monkeypatch: pytest.MonkeyPatch) -> None:
    # No model server configured: the API answers in mock mode.
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("RAG_CHAT_LLM_BASE_URL", raising=False)
    from rag_chat.api.main import app

    client = TestClient(app)

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["generation_mode"] == "mock"

    doc_resp = client.post(
        "/documents",
        json={
            "text": "Photosynthesis converts light energy into chemical energy.\n\n"
            "Chlorophyll absorbs red and blue light.",
            "source": "biology.txt",
        },
    )
    assert doc_resp.status_code == 200
    assert doc_resp.json()["chunk_count"] >= 1
    assert doc_resp.json()["total_sources"] >= 1

    bad_doc = client.post("/documents", json={"text": "   "})
    assert bad_doc.status_code == 400

    chat_resp = client.post("/chat", json={"message": "photosynthesis light energy"})
    assert chat_resp.status_code == 200
    payload = chat_resp.json()
    assert payload["state"] == "completed"
    assert payload["trace_id"]

    rejected = client.post("/chat", json={"message": "?"})
    assert rejected.status_code == 200
    assert rejected.json()["is_rejected"] is True

    stream_resp = client.post("/chat/stream", json={"message": "/define chlorophyll"})
    assert stream_resp.status_code == 200
    events = [json.loads(line) for line in stream_resp.text.splitlines() if line.strip()]
    assert events[-1]["type"] == "completed"
    assert events[-1]["result"]["query_type"] == "define"
    assert all(event["type"] == "token" for event in events[:-1])

    history = client.get("/chat/history").json()["items"]
    assert [item["role"] for item in history] == ["user", "assistant", "user", "assistant"]

    trace_resp = client.get(f"/traces/{payload['trace_id']}")
    assert trace_resp.status_code == 200
    assert trace_resp.json()["state"] == "completed"
    assert client.get("/traces/missing").status_code == 404

    metrics_resp = client.get("/metrics")
    assert metrics_resp.status_code == 200
    assert metrics_resp.json()["total_requests"] >= 3

    assert client.post("/chat/new").status_code == 200
    assert client.get("/chat/history").json()["items"] == []


def test_chat_rejects_second_message_while_one_is_in_flight(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("RAG_CHAT_LLM_BASE_URL", raising=False)
    from rag_chat.api import main

    client = TestClient(main.app)
    asyncio.run(main._chat_lock.acquire())
    try:
        busy = client.post("/chat", json={"message": "photosynthesis"})
        busy_stream = client.post("/chat/stream", json={"message": "photosynthesis"})
    finally:
        main._chat_lock.release()

    assert busy.status_code == 409
    assert busy.json()["detail"] == main.MSG_BUSY
    assert busy_stream.status_code == 409
    assert client.post("/chat", json={"message": "photosynthesis light energy"}).status_code == 200
