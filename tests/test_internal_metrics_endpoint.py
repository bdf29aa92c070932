from fastapi.testclient import TestClient

from lead_relay.main import app
from lead_relay.observability import incr_metric, reset_metrics
from lead_relay.routers import internal as internal_router


def test_metrics_unavailable_without_configured_secret(monkeypatch):
    monkeypatch.setattr(internal_router.settings, "internal_api_secret", None)
    client = TestClient(app)

    response = client.get("/internal/metrics", headers={"X-Internal-Secret": "anything"})

    assert response.status_code == 503


def test_metrics_rejects_wrong_secret(monkeypatch):
    monkeypatch.setattr(internal_router.settings, "internal_api_secret", "s3cret")
    client = TestClient(app)

    missing = client.get("/internal/metrics")
    wrong = client.get("/internal/metrics", headers={"X-Internal-Secret": "nope"})

    assert missing.status_code == 401
    assert wrong.status_code == 401


def test_metrics_returns_counter_snapshot(monkeypatch):
    monkeypatch.setattr(internal_router.settings, "internal_api_secret", "s3cret")
    reset_metrics()
    incr_metric("relay.submission.succeeded")
    incr_metric("relay.submission.succeeded")
    incr_metric("relay.submission.failed", type="transport_error")
    client = TestClient(app)

    response = client.get("/internal/metrics", headers={"X-Internal-Secret": "s3cret"})

    assert response.status_code == 200
    counters = response.json()["counters"]
    assert counters["relay.submission.succeeded"] == 2
    assert counters["relay.submission.failed|type=transport_error"] == 1
    reset_metrics()
