import json
from typing import Any, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient

from nfa_proxy.auth import CredentialResolver
from nfa_proxy.exceptions import ConfigurationError, NO_SUPPORTED_MODEL_MESSAGE
from nfa_proxy.marketplace import DummySessionManager, LiveSessionManager
from nfa_proxy.routes import create_app
from nfa_proxy.settings import Settings


CONSUMER = "http://consumer.local:8082"
MARKETPLACE = "http://marketplace.local:9000"
DUMMY_MODEL = "LMR-Hermes-2-Theta-Llama-3-8B"


def _settings(**overrides: Any) -> Settings:
    data: Dict[str, Any] = {
        "consumer_node_url": CONSUMER,
        "marketplace_url": MARKETPLACE,
        "session_mode": "live",
        "session_sweep_enabled": False,
    }
    data.update(overrides)
    return Settings(**data)


def _chat_body(model: str = DUMMY_MODEL, **overrides: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": "Hello"}],
        "stream": False,
    }
    body.update(overrides)
    return body


@pytest.fixture
def dummy_manager() -> DummySessionManager:
    return DummySessionManager()


@pytest.fixture
def dummy_client(dummy_manager):
    app = create_app(_settings(session_mode="dummy"), manager=dummy_manager)
    with TestClient(app) as client:
        yield client


def test_health(dummy_client):
    resp = dummy_client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


def test_chat_completion_streams_sse(dummy_client, dummy_manager):
    resp = dummy_client.post("/v1/chat/completions", json=_chat_body())

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "text/event-stream"
    assert resp.headers["cache-control"] == "no-cache"
    assert resp.headers["session_id"] == dummy_manager.created_sessions[0]

    events = [line for line in resp.text.splitlines() if line.startswith("data: ")]
    assert events[-1] == "data: [DONE]"
    first = json.loads(events[0][len("data: "):])
    assert first["model"] == DUMMY_MODEL
    assert first["choices"][0]["delta"]["content"] == "Test "


def test_cold_requests_reuse_the_model_session(dummy_client, dummy_manager):
    first = dummy_client.post("/v1/chat/completions", json=_chat_body())
    second = dummy_client.post("/v1/chat/completions", json=_chat_body("lmr-hermes-2-theta-llama-3-8b"))

    assert first.status_code == second.status_code == 200
    assert len(dummy_manager.created_sessions) == 1
    assert first.headers["session_id"] == second.headers["session_id"]


def test_known_session_header_skips_model_resolution(dummy_client, dummy_manager):
    first = dummy_client.post("/v1/chat/completions", json=_chat_body())
    session_id = first.headers["session_id"]

    resp = dummy_client.post(
        "/v1/chat/completions",
        json=_chat_body("completely-unknown-model"),
        headers={"session_id": session_id},
    )

    assert resp.status_code == 200
    assert resp.headers["session_id"] == session_id
    assert len(dummy_manager.created_sessions) == 1


def test_unknown_session_header_falls_back_to_resolution(dummy_client, dummy_manager):
    resp = dummy_client.post(
        "/v1/chat/completions",
        json=_chat_body(),
        headers={"session_id": "0xstale"},
    )

    assert resp.status_code == 200
    assert resp.headers["session_id"] != "0xstale"
    assert len(dummy_manager.created_sessions) == 1


def test_unknown_model_is_rejected(dummy_client, dummy_manager):
    resp = dummy_client.post("/v1/chat/completions", json=_chat_body("nonexistent-model"))

    assert resp.status_code == 400
    payload = resp.json()
    assert payload["message"] == NO_SUPPORTED_MODEL_MESSAGE
    assert payload["code"] == 400
    assert dummy_manager.created_sessions == []


def test_empty_messages_are_rejected(dummy_client):
    resp = dummy_client.post("/v1/chat/completions", json=_chat_body(messages=[]))

    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_request"


def test_malformed_body_is_a_bad_request(dummy_client):
    resp = dummy_client.post("/v1/chat/completions", json={"messages": []})

    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_request"


def test_live_mode_without_consumer_node_fails_at_startup():
    with pytest.raises(ConfigurationError):
        create_app(_settings(consumer_node_url=None))


class FakeNode:
    """
    MockTransport handler standing in for the marketplace and consumer node.
    """

    def __init__(self, session_status: int = 200, session_body: Any = None) -> None:
        self.session_status = session_status
        self.session_body = session_body or {"sessionID": "0xsession"}
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url == f"{MARKETPLACE}/blockchain/models":
            return httpx.Response(
                200,
                json={"models": [{"id": "0xgpt4", "name": "gpt-4"}, {"id": "0xllama", "name": "llama-3"}]},
            )
        if url.startswith(f"{CONSUMER}/blockchain/models/") and url.endswith("/session"):
            return httpx.Response(self.session_status, json=self.session_body)
        if url == f"{CONSUMER}/v1/chat/completions":
            return httpx.Response(
                200,
                content=b'data: {"choices": [{"delta": {"content": "hi"}}]}\n\ndata: [DONE]\n\n',
                headers={"content-type": "text/event-stream"},
            )
        return httpx.Response(404, json={"error": "not found"})

    def calls_to(self, suffix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]


def _live_client(node: FakeNode) -> TestClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(node))
    manager = LiveSessionManager(
        http_client,
        consumer_node_url=CONSUMER,
        marketplace_url=MARKETPLACE,
        credentials=CredentialResolver(
            cookie_path="/nonexistent/.cookie", username="admin", password="secret"
        ),
        session_duration_seconds=3600,
        retry_delay=0,
    )
    app = create_app(_settings(), manager=manager, http_client=http_client)
    return TestClient(app)


def test_live_chat_forwards_original_handle_with_session():
    node = FakeNode()
    with _live_client(node) as client:
        resp = client.post("/v1/chat/completions", json=_chat_body("GPT-4", stake_amount=1000))

    assert resp.status_code == 200
    assert resp.text.endswith("data: [DONE]\n\n")

    session_calls = node.calls_to("/session")
    assert len(session_calls) == 1
    assert session_calls[0].url.path == "/blockchain/models/0xgpt4/session"
    assert json.loads(session_calls[0].content)["stake"] == "1000"

    chat_calls = node.calls_to("/v1/chat/completions")
    assert len(chat_calls) == 1
    forwarded = json.loads(chat_calls[0].content)
    assert forwarded["model"] == "GPT-4"
    assert forwarded["stream"] is True
    assert chat_calls[0].headers["session_id"] == "0xsession"


def test_live_model_list_is_cached_between_requests():
    node = FakeNode()
    with _live_client(node) as client:
        client.post("/v1/chat/completions", json=_chat_body("gpt-4"))
        client.post("/v1/chat/completions", json=_chat_body("gpt-4"))

    assert len(node.calls_to("/blockchain/models")) == 1
    assert len(node.calls_to("/session")) == 1


def test_no_provider_accepting_session_is_a_bad_request():
    node = FakeNode(session_status=400, session_body={"error": "no provider accepting session"})
    with _live_client(node) as client:
        resp = client.post("/v1/chat/completions", json=_chat_body("gpt-4"))

    assert resp.status_code == 400
    assert "no provider accepting session" in resp.json()["message"]
    assert node.calls_to("/v1/chat/completions") == []


def test_exhausted_session_retries_are_a_server_error():
    node = FakeNode(session_status=503, session_body={"error": "unavailable"})
    with _live_client(node) as client:
        resp = client.post("/v1/chat/completions", json=_chat_body("gpt-4"))

    assert resp.status_code == 500
    payload = resp.json()
    assert payload["error"] == "session_creation_failed"
    assert "3 attempts" in payload["message"]
    assert len(node.calls_to("/session")) == 3
