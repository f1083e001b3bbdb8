"""Tests for normalized error responses."""
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from academy.core.errors import (
    AppError,
    ConflictError,
    app_error_handler,
    integrity_error_handler,
    unhandled_exception_handler,
)
from academy.core.middleware.request_id import RequestIdMiddleware


def _error_app() -> FastAPI:
    test_app = FastAPI()
    test_app.add_middleware(RequestIdMiddleware)
    test_app.add_exception_handler(AppError, app_error_handler)
    test_app.add_exception_handler(IntegrityError, integrity_error_handler)
    test_app.add_exception_handler(Exception, unhandled_exception_handler)

    @test_app.get("/conflict")
    def conflict():
        raise ConflictError("Already enrolled in this course")

    @test_app.get("/boom")
    def boom():
        raise RuntimeError("secret internals")

    @test_app.get("/duplicate")
    def duplicate():
        raise IntegrityError("INSERT INTO enrollments", {}, Exception("UNIQUE constraint failed"))

    return test_app


def test_unauthenticated_has_standard_shape(client):
    resp = client.get("/api/user/profile")
    assert resp.status_code == 401
    body = resp.json()
    assert body["error"]["code"] == "unauthenticated"
    assert body["error"]["request_id"] == resp.headers.get("x-request-id")
    assert body["detail"] == body["error"]["message"]


def test_body_validation_is_400(client):
    resp = client.post("/api/auth/login", json={"email": "a@example.com"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert "password" in body["error"]["message"]


def test_unknown_route_is_normalized(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_app_error_keeps_status_and_code():
    client = TestClient(_error_app())
    resp = client.get("/conflict")
    assert resp.status_code == 409
    assert resp.json()["error"] == {
        "code": "conflict",
        "message": "Already enrolled in this course",
        "request_id": resp.headers["x-request-id"],
    }


def test_unexpected_error_hides_details():
    client = TestClient(_error_app(), raise_server_exceptions=False)
    resp = client.get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["code"] == "internal_error"
    assert "secret" not in body["error"]["message"]


def test_constraint_violation_becomes_conflict():
    client = TestClient(_error_app())
    resp = client.get("/duplicate")
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "conflict"
    assert "UNIQUE" not in resp.json()["error"]["message"]


def test_wrong_method_is_normalized(client):
    resp = client.delete("/healthz")
    assert resp.status_code == 405
    assert resp.json()["error"]["code"] == "method_not_allowed"
