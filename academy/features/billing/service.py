"""
Billing service orchestrator.

Coordinates:
- Customer creation and checkout/portal sessions
- Local subscription state (the source of truth for entitlement)
- Webhook processing (idempotent via billing_events)

All Stripe-specific code is in stripe_provider.py.
"""
import hashlib
import logging
from typing import Any, Dict, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError

from academy.core.config import settings
from academy.core.database import billing_events, get_db_session, new_id, subscriptions, utcnow
from academy.core.errors import ConflictError, ExternalServiceError, ValidationError
from academy.core.logging import log_event
from academy.core.session import Identity
from academy.features.billing.provider import (
    BillingProvider,
    BillingProviderError,
    BillingWebhookError,
    BillingWebhookResult,
)
from academy.features.billing.stripe_provider import StripeProvider
from academy.features.email.templates import send_payment_failed_email, send_subscription_activated_email
from academy.features.notifications.service import notify_user
from academy.features.users.service import get_account, get_display_name
from academy.models.billing import BillingStatus, SubscriptionStatus
from academy.models.notification import NotificationType

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELED,
    "past_due": SubscriptionStatus.PAST_DUE,
    "trialing": SubscriptionStatus.TRIALING,
}

SUBSCRIPTION_EVENTS = ("customer.subscription.created", "customer.subscription.updated")


def map_provider_status(status: Optional[str]) -> SubscriptionStatus:
    """Stripe status -> local status; anything unrecognized is INCOMPLETE."""
    return _STATUS_MAP.get(status or "", SubscriptionStatus.INCOMPLETE)


def billing_enabled() -> bool:
    """Check if billing is enabled (Stripe configured)."""
    return bool(settings.STRIPE_SECRET_KEY)


def get_provider() -> Optional[BillingProvider]:
    """Get billing provider if billing is enabled."""
    if not billing_enabled():
        return None
    try:
        return StripeProvider()
    except BillingProviderError:
        logger.warning("billing.provider_unavailable", exc_info=True)
        return None


def _require_provider() -> BillingProvider:
    provider = get_provider()
    if provider is None:
        raise ExternalServiceError("Billing is not configured", code="billing_disabled", status_code=503)
    return provider


def _provider_failure(exc: Exception, action: str) -> ExternalServiceError:
    logger.error(f"billing.{action}_failed", exc_info=exc)
    return ExternalServiceError("Billing provider unavailable", code="billing_unavailable")


def get_subscription_row(session, user_id: str):
    return session.execute(select(subscriptions).where(subscriptions.c.user_id == user_id)).first()


def has_active_subscription(session, user_id: str) -> bool:
    row = get_subscription_row(session, user_id)
    return bool(row) and row.status == SubscriptionStatus.ACTIVE.value


def start_checkout(identity: Identity) -> str:
    """
    Start checkout for the monthly membership.

    Creates the provider customer on first use and records an INCOMPLETE
    subscription carrying the customer id.

    Raises:
        ConflictError: subscription already ACTIVE
        ExternalServiceError: billing disabled or provider failure
    """
    with get_db_session() as session:
        row = get_subscription_row(session, identity.id)
    if row and row.status == SubscriptionStatus.ACTIVE.value:
        raise ConflictError("Subscription is already active")

    provider = _require_provider()
    price_id = settings.STRIPE_PRICE_ID_MONTHLY
    if not price_id:
        raise ExternalServiceError("Billing is not configured", code="billing_disabled", status_code=503)

    customer_id = row.stripe_customer_id if row else None
    try:
        if not customer_id:
            with get_db_session() as session:
                name = get_display_name(session, identity.id)
            customer_id = provider.create_customer(identity.id, identity.email, name)

        with get_db_session() as session:
            if row:
                session.execute(
                    update(subscriptions)
                    .where(subscriptions.c.user_id == identity.id)
                    .values(stripe_customer_id=customer_id)
                )
            else:
                session.execute(
                    insert(subscriptions).values(
                        id=new_id(),
                        user_id=identity.id,
                        stripe_customer_id=customer_id,
                        status=SubscriptionStatus.INCOMPLETE.value,
                    )
                )

        app_url = settings.APP_URL.rstrip("/")
        return provider.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=f"{app_url}/app/membresia?success=true",
            cancel_url=f"{app_url}/app/membresia?canceled=true",
            metadata={"user_id": identity.id},
        )
    except BillingProviderError as e:
        raise _provider_failure(e, "checkout")


def start_portal(identity: Identity) -> str:
    """Portal session for the caller's stored customer id."""
    with get_db_session() as session:
        row = get_subscription_row(session, identity.id)
    if not row or not row.stripe_customer_id:
        raise ValidationError("No billing account found. Complete checkout first.")

    provider = _require_provider()
    try:
        return provider.create_portal_session(
            customer_id=row.stripe_customer_id,
            return_url=f"{settings.APP_URL.rstrip('/')}/app/membresia",
        )
    except BillingProviderError as e:
        raise _provider_failure(e, "portal")


def get_billing_status(user_id: str) -> BillingStatus:
    with get_db_session() as session:
        row = get_subscription_row(session, user_id)
    if not row:
        return BillingStatus(enabled=billing_enabled())
    return BillingStatus(
        enabled=billing_enabled(),
        status=row.status,
        active=row.status == SubscriptionStatus.ACTIVE.value,
        current_period_end=row.current_period_end,
        cancel_at_period_end=bool(row.cancel_at_period_end),
        has_customer=bool(row.stripe_customer_id),
    )


def _notify_activated(user_id: str) -> None:
    notify_user(
        user_id,
        NotificationType.BILLING,
        "Membership active",
        "Your membership is active. Enjoy full access to the academy.",
        "/app/cursos",
    )
    _send_billing_email(user_id, send_subscription_activated_email)


def _notify_payment_failed(user_id: str) -> None:
    notify_user(
        user_id,
        NotificationType.BILLING,
        "Payment failed",
        "We could not process your latest payment. Update your payment method to keep your access.",
        "/app/membresia",
    )
    _send_billing_email(user_id, send_payment_failed_email)


def _send_billing_email(user_id: str, sender) -> None:
    try:
        account = get_account(user_id)
        sender(account.email, account.display_name)
    except Exception:
        logger.warning("billing.email_failed", exc_info=True, extra={"user_id": user_id})


def _subscription_values(result: BillingWebhookResult) -> Dict[str, Any]:
    values: Dict[str, Any] = {
        "status": map_provider_status(result.status).value,
        "cancel_at_period_end": result.cancel_at_period_end,
    }
    if result.subscription_id:
        values["stripe_subscription_id"] = result.subscription_id
    if result.price_id:
        values["stripe_price_id"] = result.price_id
    if result.current_period_start:
        values["current_period_start"] = result.current_period_start
    if result.current_period_end:
        values["current_period_end"] = result.current_period_end
    return values


def apply_webhook_result(result: BillingWebhookResult) -> Optional[str]:
    """
    Apply a normalized event to the local subscription row.

    Returns:
        The affected user id, or None when the event has no local owner.
    """
    event_type = result.event_type
    previous_status = None
    user_id = None

    with get_db_session() as session:
        if event_type == "checkout.session.completed":
            user_id = result.user_id
            if not user_id:
                logger.warning(f"billing.webhook_missing_user event_id={result.event_id}")
                return None
            existing = get_subscription_row(session, user_id)
            values = _subscription_values(result)
            values["stripe_customer_id"] = result.customer_id
            values["cancel_at_period_end"] = False
            if existing:
                previous_status = existing.status
                session.execute(update(subscriptions).where(subscriptions.c.user_id == user_id).values(**values))
            else:
                session.execute(insert(subscriptions).values(id=new_id(), user_id=user_id, **values))
            new_status = values["status"]
        else:
            existing = session.execute(
                select(subscriptions).where(subscriptions.c.stripe_customer_id == result.customer_id)
            ).first() if result.customer_id else None
            if not existing:
                logger.warning(f"billing.webhook_unknown_customer event_id={result.event_id} type={event_type}")
                return None
            user_id = existing.user_id
            previous_status = existing.status

            if event_type in SUBSCRIPTION_EVENTS:
                values = _subscription_values(result)
            elif event_type == "customer.subscription.deleted":
                values = {"status": SubscriptionStatus.CANCELED.value, "cancel_at_period_end": True}
            elif event_type == "invoice.paid":
                values = {"status": SubscriptionStatus.ACTIVE.value}
                if result.current_period_start:
                    values["current_period_start"] = result.current_period_start
                if result.current_period_end:
                    values["current_period_end"] = result.current_period_end
            elif event_type == "invoice.payment_failed":
                values = {"status": SubscriptionStatus.PAST_DUE.value}
            else:
                logger.info(f"billing.webhook_ignored type={event_type}")
                return user_id

            session.execute(update(subscriptions).where(subscriptions.c.id == existing.id).values(**values))
            new_status = values["status"]

    log_event(
        "info",
        "billing.subscription_synced",
        user_id=user_id,
        event_type=event_type,
        extra={"status": new_status},
    )

    if new_status == SubscriptionStatus.ACTIVE.value and previous_status != SubscriptionStatus.ACTIVE.value:
        _notify_activated(user_id)
    elif event_type == "invoice.payment_failed":
        _notify_payment_failed(user_id)
    return user_id


def process_webhook_event(headers: Dict[str, str], body: bytes) -> BillingWebhookResult:
    """
    Process billing webhook event (idempotent).

    1. Verify signature
    2. Skip events already marked processed
    3. Record the event (or reuse the row left by a failed attempt)
    4. Apply state changes
    5. Mark as processed (or store the error and re-raise)

    A failed attempt leaves the row unprocessed, so the provider's retry
    of the same event is applied instead of being skipped as a duplicate.

    Raises:
        BillingWebhookError: If signature invalid or billing disabled
    """
    provider = get_provider()
    if not provider:
        raise BillingWebhookError("Billing not enabled")

    result = provider.handle_webhook(headers, body)
    payload_hash = hashlib.sha256(body).hexdigest()

    try:
        with get_db_session() as session:
            existing = session.execute(
                select(billing_events.c.processed, billing_events.c.error)
                .where(billing_events.c.stripe_event_id == result.event_id)
            ).first()
            if existing and existing.processed:
                logger.info(f"billing.webhook_duplicate event_id={result.event_id}")
                return result
            if existing:
                logger.info(f"billing.webhook_retry event_id={result.event_id} previous_error={existing.error!r}")
            else:
                session.execute(
                    insert(billing_events).values(
                        stripe_event_id=result.event_id,
                        event_type=result.event_type,
                        payload_hash=payload_hash,
                        processed=False,
                    )
                )
    except IntegrityError:
        # Race: another delivery recorded this event first
        return result

    try:
        apply_webhook_result(result)
        with get_db_session() as session:
            session.execute(
                update(billing_events)
                .where(billing_events.c.stripe_event_id == result.event_id)
                .values(processed=True, processed_at=utcnow(), error=None)
            )
    except Exception as e:
        with get_db_session() as session:
            session.execute(
                update(billing_events)
                .where(billing_events.c.stripe_event_id == result.event_id)
                .values(error=str(e)[:2000])
            )
        raise

    return result
