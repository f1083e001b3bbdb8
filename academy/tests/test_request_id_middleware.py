"""Tests for request id propagation."""
import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from academy.core.logging import get_request_id, latency_bucket_ms, log_event, request_context
from academy.core.middleware.request_id import RequestIdMiddleware


def _app() -> FastAPI:
    test_app = FastAPI()
    test_app.add_middleware(RequestIdMiddleware)

    @test_app.get("/echo")
    def echo():
        return {"request_id": get_request_id()}

    return test_app


def test_request_id_is_generated():
    client = TestClient(_app())
    resp = client.get("/echo")
    rid = resp.headers.get("x-request-id")
    assert rid
    assert resp.json()["request_id"] == rid


def test_incoming_request_id_is_preserved():
    client = TestClient(_app())
    resp = client.get("/echo", headers={"x-request-id": "req-123"})
    assert resp.headers["x-request-id"] == "req-123"
    assert resp.json()["request_id"] == "req-123"


def test_latency_buckets():
    assert latency_bucket_ms(None) == "unknown"
    assert latency_bucket_ms(3) == "<10ms"
    assert latency_bucket_ms(250) == "100-500ms"
    assert latency_bucket_ms(4000) == ">=1000ms"


def test_log_event_redacts_secrets_and_carries_request_id(caplog):
    with request_context("req-log"), caplog.at_level(logging.INFO, logger="academy"):
        log_event("info", "auth.attempt", user_id="u1", extra={"password": "hunter22", "note": "x" * 600})

    record = next(r for r in caplog.records if r.getMessage() == "auth.attempt")
    assert record.password == "[redacted]"
    assert record.note.endswith("...<truncated>")
    assert record.user_id == "u1"
    assert record.request_id == "req-log"
