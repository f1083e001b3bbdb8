"""
What the membership billing flow needs from a payment provider.

The academy sells one recurring plan. A provider has to open hosted
checkout and self-service portal pages for a customer, and turn its
signed webhook deliveries into BillingWebhookResult values that
service.apply_webhook_result can sync onto the local subscription row.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Protocol


class BillingProviderError(Exception):
    """The provider rejected or failed a call (surfaced as 502)."""


class BillingWebhookError(BillingProviderError):
    """A delivery that cannot be trusted or parsed (surfaced as 400)."""


@dataclass
class BillingWebhookResult:
    """One provider event, reduced to the fields the subscription row keeps.

    `user_id` is only known when the provider echoes back checkout metadata;
    otherwise the row is found through `customer_id`.
    """
    event_id: str
    event_type: str
    customer_id: Optional[str] = None
    user_id: Optional[str] = None
    subscription_id: Optional[str] = None
    price_id: Optional[str] = None
    status: Optional[str] = None  # provider vocabulary, mapped by map_provider_status
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


class BillingProvider(Protocol):
    def create_customer(self, user_id: str, email: Optional[str] = None, name: Optional[str] = None) -> str:
        """Register the member with the provider; returns the provider customer id."""
        ...

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Hosted checkout URL for the membership price. `metadata` must come back on the webhook."""
        ...

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """Hosted page where a member updates payment details or cancels."""
        ...

    def handle_webhook(self, headers: Dict[str, str], body: bytes) -> BillingWebhookResult:
        """Verify the delivery signature over the raw body, then parse it.

        Raises BillingWebhookError for a missing or bad signature or payload.
        """
        ...
