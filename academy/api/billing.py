"""
Billing API routes.

- POST /api/billing/checkout: checkout URL for the monthly membership
- POST /api/billing/portal: customer portal URL
- GET  /api/billing/status: the caller's locally stored subscription
- POST /api/webhooks/stripe: Stripe webhook receiver (signature verified)
"""
import logging

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from academy.core.errors import ExternalServiceError, ValidationError
from academy.core.session import Identity, require_identity
from academy.features.billing.provider import BillingProviderError, BillingWebhookError
from academy.features.billing.service import get_billing_status, process_webhook_event, start_checkout, start_portal
from academy.models.billing import BillingStatus, RedirectUrl

logger = logging.getLogger("academy")

router = APIRouter(tags=["billing"])


@router.post("/api/billing/checkout", response_model=RedirectUrl)
def create_checkout(identity: Identity = Depends(require_identity)):
    """
    Errors:
        409: subscription already active
        503: billing disabled
        502: Stripe API error
    """
    return RedirectUrl(url=start_checkout(identity))


@router.post("/api/billing/portal", response_model=RedirectUrl)
def create_portal(identity: Identity = Depends(require_identity)):
    return RedirectUrl(url=start_portal(identity))


@router.get("/api/billing/status", response_model=BillingStatus)
def billing_status(identity: Identity = Depends(require_identity)):
    return get_billing_status(identity.id)


@router.post("/api/webhooks/stripe")
async def stripe_webhook(request: Request):
    """
    Verifies the signature against the raw body, then applies the event
    once (duplicates are acknowledged without side effects).
    """
    body = await request.body()
    headers = {key.lower(): value for key, value in request.headers.items()}
    try:
        result = await run_in_threadpool(process_webhook_event, headers, body)
    except BillingWebhookError as e:
        logger.warning(f"billing.webhook_rejected: {e}")
        raise ValidationError("Invalid webhook", code="webhook_invalid")
    except BillingProviderError as e:
        logger.error("billing.webhook_failed", exc_info=e)
        raise ExternalServiceError("Webhook could not be processed", code="billing_unavailable")
    return {"received": True, "event_id": result.event_id}
