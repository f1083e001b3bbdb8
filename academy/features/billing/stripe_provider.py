"""
Stripe billing provider implementation.

Implements BillingProvider protocol using Stripe API.
Handles webhook signature verification and event parsing.
"""
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import stripe

from academy.core.config import settings
from academy.features.billing.provider import (
    BillingProviderError,
    BillingWebhookError,
    BillingWebhookResult,
)


def _as_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


def _ts(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, timezone.utc)


class StripeProvider:
    """Stripe implementation of BillingProvider protocol."""

    def __init__(self, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        """
        Initialize Stripe provider.

        Args:
            secret_key: Stripe secret key (defaults to settings.STRIPE_SECRET_KEY)
            webhook_secret: Stripe webhook secret (defaults to settings.STRIPE_WEBHOOK_SECRET)
        """
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET

        if not self.secret_key:
            raise BillingProviderError("STRIPE_SECRET_KEY not configured")

        stripe.api_key = self.secret_key

    def create_customer(self, user_id: str, email: Optional[str] = None, name: Optional[str] = None) -> str:
        """Create a Stripe customer tagged with our user id."""
        customer_data: Dict[str, Any] = {"metadata": {"user_id": user_id}}
        if email:
            customer_data["email"] = email
        if name:
            customer_data["name"] = name
        try:
            customer = stripe.Customer.create(**customer_data)
            return customer.id
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe customer creation failed: {e}")

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """Create Stripe checkout session."""
        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata or {},
                subscription_data={"metadata": metadata or {}},
            )
            return session.url
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe checkout session creation failed: {e}")

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create Stripe billing portal session."""
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
            )
            return session.url
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe portal session creation failed: {e}")

    def handle_webhook(self, headers: Dict[str, str], body: bytes) -> BillingWebhookResult:
        """Verify Stripe webhook signature and parse event."""
        if not self.webhook_secret:
            raise BillingWebhookError("STRIPE_WEBHOOK_SECRET not configured")

        sig_header = headers.get("stripe-signature") or headers.get("Stripe-Signature")
        if not sig_header:
            raise BillingWebhookError("Missing stripe-signature header")

        try:
            event = stripe.Webhook.construct_event(body, sig_header, self.webhook_secret)
        except ValueError as e:
            raise BillingWebhookError(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise BillingWebhookError(f"Invalid signature: {e}")

        return self.parse_event(_as_dict(event))

    def _retrieve_subscription(self, subscription_id: Optional[str]) -> Dict[str, Any]:
        if not subscription_id:
            return {}
        try:
            return _as_dict(stripe.Subscription.retrieve(subscription_id))
        except stripe.StripeError as e:
            raise BillingProviderError(f"Stripe subscription lookup failed: {e}")

    def parse_event(self, event: Dict[str, Any]) -> BillingWebhookResult:
        """Parse a Stripe event into a normalized BillingWebhookResult."""
        event_type = event["type"]
        data = _as_dict(event.get("data", {}).get("object", {}))
        result = BillingWebhookResult(
            event_id=event["id"],
            event_type=event_type,
            customer_id=data.get("customer"),
            metadata=dict(data.get("metadata") or {}),
        )

        if event_type == "checkout.session.completed":
            result.user_id = result.metadata.get("user_id")
            result.subscription_id = data.get("subscription")
            self._apply_subscription(result, self._retrieve_subscription(result.subscription_id))
        elif event_type.startswith("customer.subscription."):
            result.subscription_id = data.get("id")
            result.user_id = result.metadata.get("user_id")
            self._apply_subscription(result, data)
        elif event_type in ("invoice.paid", "invoice.payment_failed"):
            result.subscription_id = data.get("subscription")
            if event_type == "invoice.paid":
                self._apply_subscription(result, self._retrieve_subscription(result.subscription_id))

        return result

    @staticmethod
    def _apply_subscription(result: BillingWebhookResult, subscription: Dict[str, Any]) -> None:
        if not subscription:
            return
        items = (subscription.get("items") or {}).get("data") or []
        first_item = items[0] if items else {}
        result.status = subscription.get("status")
        result.price_id = (first_item.get("price") or {}).get("id")
        # Newer API versions report billing periods on the subscription item
        result.current_period_start = _ts(subscription.get("current_period_start") or first_item.get("current_period_start"))
        result.current_period_end = _ts(subscription.get("current_period_end") or first_item.get("current_period_end"))
        result.cancel_at_period_end = bool(subscription.get("cancel_at_period_end", False))
