from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class UserSummary(BaseModel):
    """Public author shape attached to posts and comments."""
    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    avatar: Optional[str] = None
    role: str


class Profile(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    objective: Optional[str] = None
    level: Optional[str] = None
    onboarding_done: bool = False


class Account(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: str
    active: bool
    created_at: datetime
    display_name: str
    profile: Optional[Profile] = None
    subscription_status: Optional[str] = None


class SessionGrant(BaseModel):
    token: str
    user: Account
