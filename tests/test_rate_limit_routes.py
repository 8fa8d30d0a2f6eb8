"""Integration tests for the rate-limited HTTP surface."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from leakybucket.core.app_factory import create_app
from leakybucket.core.config import settings
from leakybucket.core.errors import StorageError
from leakybucket.core.limiter import Limiter
from leakybucket.core.rate_limit import build_rate_limit_key, get_limiter


@pytest.fixture
def limiter_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings.limiter, "enabled", True)
    monkeypatch.setattr(settings.limiter, "backend", "memory")
    monkeypatch.setattr(settings.limiter, "rate", 1)
    monkeypatch.setattr(settings.limiter, "interval_seconds", 3600.0)
    monkeypatch.setattr(settings.limiter, "burst", 2)
    monkeypatch.setattr(settings.limiter, "include_headers", True)
    return settings.limiter


@pytest.fixture
def client(limiter_settings) -> TestClient:
    return TestClient(create_app())


class TestEnforceRateLimit:
    def test_allows_until_burst_then_429(self, client: TestClient) -> None:
        headers = {"X-API-Key": "benjamin"}

        assert client.get("/v1/ping", headers=headers).status_code == 200
        assert client.get("/v1/ping", headers=headers).status_code == 200

        blocked = client.get("/v1/ping", headers=headers)
        assert blocked.status_code == 429
        assert int(blocked.headers["Retry-After"]) > 0
        assert blocked.headers["X-RateLimit-Limit"] == "2"
        assert blocked.headers["X-RateLimit-Remaining"] == "0"

    def test_buckets_are_per_api_key(self, client: TestClient) -> None:
        for _ in range(2):
            client.get("/v1/ping", headers={"X-API-Key": "a"})

        assert client.get("/v1/ping", headers={"X-API-Key": "a"}).status_code == 429
        assert client.get("/v1/ping", headers={"X-API-Key": "b"}).status_code == 200

    def test_headers_can_be_suppressed(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings.limiter, "include_headers", False)
        for _ in range(2):
            client.get("/v1/ping", headers={"X-API-Key": "quiet"})

        blocked = client.get("/v1/ping", headers={"X-API-Key": "quiet"})
        assert blocked.status_code == 429
        assert "Retry-After" not in blocked.headers

    def test_disabled_limiter_never_blocks(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings.limiter, "enabled", False)

        for _ in range(5):
            assert client.get("/v1/ping", headers={"X-API-Key": "k"}).status_code == 200

    def test_storage_failure_returns_503(self, client: TestClient) -> None:
        error = StorageError(code="storage_unavailable", message="Redis get failed", key="x")
        with patch.object(Limiter, "consume", side_effect=error):
            resp = client.get("/v1/ping", headers={"X-API-Key": "x"})

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "storage_unavailable"


class TestLimitsRoutes:
    def test_consume_reports_decision(self, client: TestClient) -> None:
        first = client.post("/v1/limits/user-1/consume")
        client.post("/v1/limits/user-1/consume")
        third = client.post("/v1/limits/user-1/consume")

        assert first.status_code == 200
        assert first.json()["allowed"] is True
        assert first.json()["remaining"] == 1
        assert first.json()["retry_after_seconds"] is None

        body = third.json()
        assert third.status_code == 200
        assert body["allowed"] is False
        assert 0 < body["wait_seconds"] <= 3600
        assert body["retry_after_seconds"] == 3600
        assert third.headers["Retry-After"] == "3600"

    def test_config_endpoint(self, client: TestClient) -> None:
        resp = client.get("/v1/limits/config")

        assert resp.status_code == 200
        assert resp.json() == {
            "rate": 1,
            "interval_seconds": 3600.0,
            "burst": 2,
            "backend": "memory",
        }

    def test_health(self, client: TestClient) -> None:
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "backend": "memory"}


def test_limiter_rebuilt_when_config_changes(limiter_settings, monkeypatch) -> None:
    first = get_limiter()
    assert get_limiter() is first

    monkeypatch.setattr(settings.limiter, "burst", 7)
    second = get_limiter()

    assert second is not first
    assert second.burst == 7


def test_key_falls_back_to_client_ip() -> None:
    class _Client:
        host = "10.0.0.1"

    class _Request:
        client = _Client()

    assert build_rate_limit_key(_Request(), None) == "ip:10.0.0.1"
    assert build_rate_limit_key(_Request(), "tok") == "api_key:tok"


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("lock_timeout_seconds", 9.0),
        ("lock_blocking_timeout_seconds", 0.1),
        ("socket_timeout_seconds", 0.25),
    ],
)
def test_limiter_rebuilt_when_timeouts_change(limiter_settings, monkeypatch, field, value) -> None:
    first = get_limiter()

    monkeypatch.setattr(settings.limiter, field, value)

    assert get_limiter() is not first
