"""Tests for liveness and readiness endpoints."""
from unittest.mock import patch


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_readyz_with_schema(client):
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_readyz_reports_unreachable_database(client):
    with patch("academy.api.health.get_engine", side_effect=RuntimeError("down")):
        resp = client.get("/readyz")
    assert resp.status_code == 503
    assert resp.json()["detail"] == "database unreachable"


def test_readyz_lists_integrations_without_secrets(client, monkeypatch):
    from academy.core.config import settings

    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_hidden")
    monkeypatch.setattr(settings, "RESEND_API_KEY", None)
    monkeypatch.setattr(settings, "BLOB_BUCKET", None)

    resp = client.get("/readyz")
    assert resp.json()["integrations"] == {"billing": True, "email": False, "storage": False}
    assert "sk_test_hidden" not in resp.text
