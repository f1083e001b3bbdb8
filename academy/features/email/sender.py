"""
Outbound email boundary.

A single call, send_email(to, subject, html, text), delivered through the
Resend REST API. Delivery mechanics stay behind this function.
"""
import logging
from typing import List, Optional, Union

import httpx

from academy.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or cannot receive a message."""
    pass


def email_enabled() -> bool:
    return bool(settings.RESEND_API_KEY)


def send_email(
    to: Union[str, List[str]],
    subject: str,
    html: str,
    text: Optional[str] = None,
) -> Optional[str]:
    """
    Send one email.

    Returns:
        Provider message id (may be None if the provider omits it)

    Raises:
        EmailDeliveryError: If email is not configured or delivery fails
    """
    if not email_enabled():
        raise EmailDeliveryError("RESEND_API_KEY not configured")

    recipients = to if isinstance(to, list) else [to]
    payload = {
        "from": settings.EMAIL_FROM,
        "to": recipients,
        "subject": subject,
        "html": html,
    }
    if text:
        payload["text"] = text

    try:
        response = httpx.post(
            settings.RESEND_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
            timeout=DEFAULT_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise EmailDeliveryError(f"Email provider returned {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise EmailDeliveryError(f"Email provider unreachable: {e}") from e

    message_id = response.json().get("id")
    logger.info(f"email.sent subject={subject!r} recipients={len(recipients)} id={message_id}")
    return message_id
