import sqlite3

import pytest
from conftest import SCENARIO_VECTORS, FakeChatModel, FakeEmbeddings
from fastapi.testclient import TestClient

from support_responder.api.main import create_app
from support_responder.config import AppConfig


@pytest.fixture
def config(tmp_path, docs_file) -> AppConfig:
    return AppConfig(db_path=str(tmp_path / "api.db"), docs_path=str(docs_file))


def test_api_chat_history_and_metrics(config) -> None:
    llm = FakeChatModel(reply="You can get a refund within 30 days.", total_tokens=55)
    app = create_app(config, embeddings=FakeEmbeddings(SCENARIO_VECTORS), llm=llm)

    with TestClient(app) as client:
        health = client.get("/health")
        assert health.status_code == 200
        assert health.json()["documents_indexed"] == 2

        greeting = client.post("/api/chat", json={"sessionId": "abc", "message": "hello"})
        assert greeting.status_code == 200
        assert greeting.json()["tokensUsed"] == 0

        answer = client.post(
            "/api/chat", json={"sessionId": "abc", "message": "What is your refund policy"}
        )
        assert answer.status_code == 200
        assert answer.json() == {"reply": "You can get a refund within 30 days.", "tokensUsed": 55}

        refusal = client.post("/api/chat", json={"sessionId": "abc", "message": "banana"})
        assert refusal.json()["tokensUsed"] == 0
        assert "rephrase" in refusal.json()["reply"]

        history = client.get("/api/conversations/abc")
        assert history.status_code == 200
        assert [item["role"] for item in history.json()] == ["assistant", "user", "assistant"]
        assert history.json()[1] == {"role": "user", "content": "What is your refund policy"}

        metrics = client.get("/metrics").json()
        assert metrics["total_turns"] == 3
        assert metrics["total_tokens"] == 55

        traces = client.get("/traces", params={"limit": 1}).json()["items"]
        assert traces[0]["route"] == "refusal"
        assert client.get(f"/traces/{traces[0]['trace_id']}").status_code == 200
        assert client.get("/traces/unknown").status_code == 404


@pytest.mark.parametrize(
    "body",
    [{"message": "hi"}, {"sessionId": "abc"}, {"sessionId": "", "message": "hi"}, {"sessionId": "abc", "message": "   "}],
)
def test_api_rejects_incomplete_requests(config, body) -> None:
    app = create_app(config, embeddings=FakeEmbeddings(SCENARIO_VECTORS), llm=FakeChatModel())

    with TestClient(app) as client:
        response = client.post("/api/chat", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "Missing data"}


def test_api_maps_generation_failure_to_server_error(config) -> None:
    app = create_app(
        config,
        embeddings=FakeEmbeddings(SCENARIO_VECTORS),
        llm=FakeChatModel(error=RuntimeError("provider 503")),
    )

    with TestClient(app) as client:
        response = client.post(
            "/api/chat", json={"sessionId": "abc", "message": "what is your refund policy"}
        )
        history = client.get("/api/conversations/abc")

    assert response.status_code == 500
    assert response.json() == {"error": "Server Error"}
    assert history.json() == []


def test_api_maps_storage_failure_to_server_error(config) -> None:
    app = create_app(config, embeddings=FakeEmbeddings(SCENARIO_VECTORS), llm=FakeChatModel())

    with TestClient(app) as client:
        with sqlite3.connect(config.db_path) as conn:
            conn.execute("DROP TABLE messages")
        chat = client.post("/api/chat", json={"sessionId": "abc", "message": "hello"})
        history = client.get("/api/conversations/abc")

    assert chat.status_code == 500
    assert chat.headers["content-type"].startswith("application/json")
    assert chat.json() == {"error": "Server Error"}
    assert history.status_code == 500
    assert history.json() == {"error": "Server Error"}


def test_startup_requires_credentials_without_injected_providers(config) -> None:
    assert config.api_key is None
    app = create_app(config)

    with pytest.raises(RuntimeError, match="API_KEY"):
        with TestClient(app):
            pass
