import json
from typing import List

import httpx
from fastapi.testclient import TestClient

from nfa_proxy.marketplace import DummySessionManager
from nfa_proxy.routes import create_app
from nfa_proxy.settings import Settings


MARKETPLACE = "http://marketplace.local:9000"


def _client(handler) -> TestClient:
    cfg = Settings(marketplace_url=MARKETPLACE, session_mode="dummy", session_sweep_enabled=False)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    app = create_app(cfg, manager=DummySessionManager(), http_client=http_client)
    return TestClient(app)


def test_models_listing_is_passed_through():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"models": [{"id": "0xabc", "name": "gpt-4"}]})

    with _client(handler) as client:
        resp = client.get("/blockchain/models", headers={"Authorization": "Basic abc"})

    assert resp.status_code == 200
    assert resp.json() == {"models": [{"id": "0xabc", "name": "gpt-4"}]}
    assert str(seen[0].url) == f"{MARKETPLACE}/blockchain/models"
    assert seen[0].headers["authorization"] == "Basic abc"


def test_subpaths_keep_method_body_and_status():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            201,
            json={"sessionID": "0xnew"},
            headers={"x-upstream": "yes"},
        )

    with _client(handler) as client:
        resp = client.post(
            "/blockchain/models/0xabc/session?verbose=1",
            json={"sessionDuration": "3600"},
        )

    assert resp.status_code == 201
    assert resp.json() == {"sessionID": "0xnew"}
    assert resp.headers["x-upstream"] == "yes"

    forwarded = seen[0]
    assert forwarded.method == "POST"
    assert forwarded.url.path == "/blockchain/models/0xabc/session"
    assert forwarded.url.params["verbose"] == "1"
    assert json.loads(forwarded.content) == {"sessionDuration": "3600"}


def test_upstream_errors_are_relayed_verbatim():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "model not found"})

    with _client(handler) as client:
        resp = client.delete("/blockchain/models/0xmissing")

    assert resp.status_code == 404
    assert resp.json() == {"error": "model not found"}


def test_unreachable_marketplace_is_a_bad_gateway():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with _client(handler) as client:
        resp = client.get("/blockchain/models")

    assert resp.status_code == 502
    assert resp.json()["error"] == "upstream_error"


def test_repeated_headers_survive_both_directions():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"models": []},
            headers=[("set-cookie", "a=1"), ("set-cookie", "b=2")],
        )

    with _client(handler) as client:
        resp = client.get(
            "/blockchain/models",
            headers=[("x-trace", "one"), ("x-trace", "two")],
        )

    assert resp.status_code == 200
    assert resp.headers.get_list("set-cookie") == ["a=1", "b=2"]
    assert seen[0].headers.get_list("x-trace") == ["one", "two"]
