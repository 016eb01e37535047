# tests/unit/test_web_app.py

from __future__ import annotations
import sys
from pathlib import Path
from textwrap import dedent

import httpx
import pytest
from fastapi.testclient import TestClient

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from parley.web.app import create_app


def write_cfg(tmp_path: Path, provider: str = "echo") -> Path:
    cfg = tmp_path / "default.yaml"
    cfg.write_text(
        dedent(
            f"""
            model:
              provider: {provider}
            providers:
              echo:
                token_delay: 0
              ollama:
                endpoint: http://ollama.test
            runtime:
              stream: true
            system_prompt: Be kind.
            """
        ),
        encoding="utf-8",
    )
    return cfg


@pytest.fixture
def client(tmp_path: Path) -> TestClient:
    return TestClient(create_app(write_cfg(tmp_path)))


def test_config_and_models(client: TestClient):
    r = client.get("/api/config")
    assert r.status_code == 200
    body = r.json()
    assert body["provider"] == "echo"
    assert body["model"] == "echo-lorem"
    assert body["stream"] is True

    models = client.get("/api/models").json()["models"]
    keys = {m["key"]: m for m in models}
    assert {"deepseek", "chatgpt", "ollama", "echo"} <= set(keys)
    assert keys["echo"]["active"] is True
    assert keys["echo"]["available"] is True
    assert keys["deepseek"]["available"] is False


def test_chat_keeps_history_per_session(client: TestClient):
    sid = client.post("/api/session").json()["session_id"]

    r = client.post("/api/chat", json={"session_id": sid, "message": "hi"})
    assert r.status_code == 200
    assert r.json()["session_id"] == sid
    assert r.json()["reply"].startswith("Lorem ipsum")

    session = client.app.state.sessions[sid]
    assert [m.role for m in session.messages] == ["system", "user", "assistant"]
    assert session.messages[0].content == "Be kind."


def test_chat_unknown_session_starts_new_one(client: TestClient):
    r = client.post("/api/chat", json={"session_id": "nope", "message": "hi"})
    assert r.status_code == 200
    assert r.json()["session_id"] != "nope"


def test_empty_message_rejected(client: TestClient):
    assert client.post("/api/chat", json={"message": "   "}).status_code == 400
    assert client.post("/api/stream", json={"message": ""}).status_code == 400


def test_stream_returns_full_text(client: TestClient):
    r = client.post("/api/stream", json={"message": "hi"})
    assert r.status_code == 200
    assert r.headers["x-session-id"]
    assert r.text.startswith("Lorem ipsum dolor")
    assert r.text.endswith("ultricies nisi")


def test_provider_errors_map_to_status(tmp_path: Path):
    def refuse(request: httpx.Request):
        return httpx.Response(503, text="overloaded")

    app = create_app(
        write_cfg(tmp_path, provider="ollama"),
        provider_kwargs={"http_transport": httpx.MockTransport(refuse)},
    )
    client = TestClient(app)

    r = client.post("/api/chat", json={"message": "hi"})
    assert r.status_code == 502
    assert r.json()["error"] == "ProtocolError"

    r = client.post("/api/stream", json={"message": "hi"})
    assert r.status_code == 200
    assert "[error] ProtocolError" in r.text



def test_oldest_sessions_are_evicted(tmp_path: Path):
    client = TestClient(create_app(write_cfg(tmp_path), max_sessions=2))
    ids = [client.post("/api/session").json()["session_id"] for _ in range(3)]
    sessions = client.app.state.sessions
    assert len(sessions) == 2
    assert ids[0] not in sessions
    assert ids[2] in sessions
