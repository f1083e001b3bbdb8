from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict

from academy.models.user import UserSummary


class LiveType(str, Enum):
    MARKETING = "MARKETING"
    MINDSET = "MINDSET"


class LiveEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    type: str
    mentor: Optional[UserSummary] = None
    scheduled_at: datetime
    duration: int
    meeting_url: Optional[str] = None
    replay_url: Optional[str] = None
    thumbnail: Optional[str] = None
    published: bool
