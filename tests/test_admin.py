"""
tests/test_admin.py – cache management and error metrics endpoints.
"""
from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app


def test_admin_routes_require_admin_role(client: TestClient, auth_headers):
    assert client.get("/api/admin/cache/stats").status_code == 401
    resp = client.get("/api/admin/cache/stats", headers=auth_headers)
    assert resp.status_code == 403


def test_cache_stats_lists_cached_health(client: TestClient, admin_headers):
    client.get("/api/health")

    resp = client.get("/api/admin/cache/stats", headers=admin_headers)

    assert resp.status_code == 200
    stats = resp.json()["data"]
    assert stats["total_entries"] == 1
    entry = stats["entries"][0]
    assert entry["key"] == "GET:/api/health:{}"
    assert entry["expired"] is False
    assert "memory_usage" in stats


def test_clear_cache_with_pattern(client: TestClient, admin_headers):
    client.get("/api/health")
    client.get("/api/health/detailed")

    resp = client.delete("/api/admin/cache", params={"pattern": "detailed"}, headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json()["data"]["removed"] == 1
    assert "GET:/api/health:{}" in app.state.response_cache
    assert client.get("/api/health/detailed").headers["X-Cache"] == "MISS"


def test_clear_whole_cache(client: TestClient, admin_headers):
    client.get("/api/health")
    client.get("/api/health/detailed")

    resp = client.delete("/api/admin/cache", headers=admin_headers)

    assert resp.json()["data"]["removed"] == 2
    assert len(app.state.response_cache) == 0


def test_clear_cache_with_malformed_pattern_is_400(client: TestClient, admin_headers):
    client.get("/api/health")

    resp = client.delete("/api/admin/cache", params={"pattern": "(["}, headers=admin_headers)

    assert resp.status_code == 400
    assert "Invalid cache key pattern" in resp.json()["message"]
    assert len(app.state.response_cache) == 1


def test_error_metrics_record_failures(client: TestClient, admin_headers):
    before = client.get("/api/admin/errors", headers=admin_headers).json()["data"]["total"]
    client.get("/api/does-not-exist")

    data = client.get("/api/admin/errors", headers=admin_headers).json()["data"]

    assert data["total"] == before + 1
    assert data["by_status"]["404"] >= 1
    assert data["recent"][-1]["url"] == "/api/does-not-exist"
