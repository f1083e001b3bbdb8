from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INCOMPLETE = "INCOMPLETE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    TRIALING = "TRIALING"


class BillingStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool
    status: Optional[SubscriptionStatus] = None
    active: bool = False
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    has_customer: bool = False


class RedirectUrl(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
