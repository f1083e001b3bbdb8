from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class NotificationType(str, Enum):
    SYSTEM = "SYSTEM"
    COURSE = "COURSE"
    LIVE = "LIVE"
    COMMUNITY = "COMMUNITY"
    CERTIFICATE = "CERTIFICATE"
    BILLING = "BILLING"


class Notification(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    read: bool
    created_at: datetime


class NotificationList(BaseModel):
    model_config = ConfigDict(frozen=True)

    notifications: List[Notification]
    unread_count: int
