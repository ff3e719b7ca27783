"""
tests/test_errors.py – error envelopes, 404 listing, request size guard, rate limits.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.ratelimit import limiter
from app.services.tokens import TokenUser, get_token_service


@pytest.fixture
def crashing_usage(monkeypatch):
    """Make GET /api/user/usage raise an unexpected error."""

    def _boom(*args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(app.state.usage, "snapshot", _boom)
    token = get_token_service().create_access_token(TokenUser(id="u", email="u@example.com"))
    with TestClient(app, raise_server_exceptions=False) as c:
        yield lambda: c.get("/api/user/usage", headers={"Authorization": f"Bearer {token}"})


def test_unknown_route_lists_endpoints(client: TestClient):
    resp = client.get("/api/nope")

    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Not Found"
    assert body["message"] == "Route GET /api/nope not found"
    assert body["error_id"].startswith("404_")
    assert "GET /api/health" in body["available_endpoints"]
    assert "POST /api/ai/text/generate" in body["available_endpoints"]


def test_validation_error_envelope(client: TestClient):
    resp = client.post("/api/auth/login", json={"email": "demo@example.com"})

    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "Validation Error"
    assert any(d["loc"][-1] == "password" for d in body["details"])


def test_request_size_limit(client: TestClient):
    resp = client.post(
        "/api/auth/login",
        content=b"{}",
        headers={"Content-Type": "application/json", "Content-Length": str(10**12)},
    )

    assert resp.status_code == 413
    assert resp.json()["error"] == "Request Too Large"


def test_unhandled_exception_is_500_envelope(crashing_usage):
    resp = crashing_usage()

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Internal Server Error"
    assert body["message"] == "kaboom"
    assert body["exception_type"] == "RuntimeError"


def test_unhandled_exception_message_masked_in_production(crashing_usage, monkeypatch):
    monkeypatch.setattr("app.errors.settings.environment", "production")

    resp = crashing_usage()

    body = resp.json()
    assert resp.status_code == 500
    assert "kaboom" not in body["message"]
    assert body["error_id"] in body["support_message"]


def test_login_rate_limit(client: TestClient, monkeypatch):
    monkeypatch.setattr(limiter, "enabled", True)
    limiter.reset()
    try:
        statuses = [
            client.post("/api/auth/login", json={"email": "x@example.com", "password": "bad"}).status_code
            for _ in range(6)
        ]
    finally:
        limiter.reset()

    assert statuses[:5] == [401] * 5
    assert statuses[5] == 429
