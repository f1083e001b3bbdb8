"""Tests for outbound email (the Resend API is mocked)."""
from unittest.mock import patch

import httpx
import pytest

from academy.core.config import settings
from academy.features.email.sender import EmailDeliveryError, email_enabled, send_email
from academy.features.email.templates import admin_message, course_completed, send_welcome_email


def _response(status_code: int, payload: dict) -> httpx.Response:
    return httpx.Response(status_code, json=payload, request=httpx.Request("POST", settings.RESEND_API_URL))


@pytest.fixture
def email_on(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test_123")


def test_disabled_without_api_key(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", None)
    assert email_enabled() is False
    with pytest.raises(EmailDeliveryError):
        send_email("ana@example.com", "Hi", "<p>Hi</p>")


def test_send_posts_to_resend(email_on):
    with patch("academy.features.email.sender.httpx.post", return_value=_response(200, {"id": "msg_1"})) as mock_post:
        message_id = send_email("ana@example.com", "Hi", "<p>Hi</p>", "Hi")

    assert message_id == "msg_1"
    kwargs = mock_post.call_args.kwargs
    assert kwargs["json"]["to"] == ["ana@example.com"]
    assert kwargs["json"]["text"] == "Hi"
    assert kwargs["headers"]["Authorization"] == "Bearer re_test_123"


def test_provider_rejection_raises(email_on):
    with patch("academy.features.email.sender.httpx.post", return_value=_response(422, {"message": "bad"})):
        with pytest.raises(EmailDeliveryError):
            send_email("ana@example.com", "Hi", "<p>Hi</p>")


def test_network_error_raises(email_on):
    with patch("academy.features.email.sender.httpx.post", side_effect=httpx.ConnectError("refused")):
        with pytest.raises(EmailDeliveryError):
            send_email("ana@example.com", "Hi", "<p>Hi</p>")


def test_templates_escape_user_content():
    template = admin_message("Ana", "Heads up", "<script>alert(1)</script>")
    assert "<script>" not in template.html
    assert "&lt;script&gt;" in template.html
    assert "<script>alert(1)</script>" in template.text


def test_course_completed_links_certificate():
    template = course_completed("Ana", "Growth 101", "https://app.example.com/certificates/verify/VA-ABC")
    assert "Growth 101" in template.subject
    assert "https://app.example.com/certificates/verify/VA-ABC" in template.html


def test_welcome_email_uses_app_url(email_on, monkeypatch):
    monkeypatch.setattr(settings, "APP_URL", "https://academy.example.com/")
    with patch("academy.features.email.sender.httpx.post", return_value=_response(200, {"id": "msg_2"})) as mock_post:
        send_welcome_email("ana@example.com", "Ana")
    assert "https://academy.example.com/app/dashboard" in mock_post.call_args.kwargs["json"]["html"]


def test_registration_survives_email_failure(client, email_on):
    with patch("academy.features.email.sender.httpx.post", side_effect=httpx.ConnectError("refused")):
        resp = client.post("/api/auth/register", json={"email": "new@example.com", "password": "longenough"})
    assert resp.status_code == 201
