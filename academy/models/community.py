from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

from academy.models.user import UserSummary


class CommunityCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    color: Optional[str] = None
    order: int = 0
    post_count: int = 0


class CategoryRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    slug: str


class Post(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    type: str
    pinned: bool
    locked: bool
    category: CategoryRef
    author: UserSummary
    like_count: int = 0
    comment_count: int = 0
    liked_by_me: bool = False
    created_at: datetime
    updated_at: datetime


class Comment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    post_id: str
    parent_id: Optional[str] = None
    content: str
    author: UserSummary
    like_count: int = 0
    liked_by_me: bool = False
    created_at: datetime
    replies: List["Comment"] = []


class LikeToggle(BaseModel):
    model_config = ConfigDict(frozen=True)

    liked: bool
    like_count: int


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    name: str
    type: Optional[str] = None
    size: Optional[int] = None


class LessonComment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    lesson_id: str
    parent_id: Optional[str] = None
    content: str
    attachments: List[Attachment] = []
    pinned: bool = False
    author: UserSummary
    like_count: int = 0
    liked_by_me: bool = False
    created_at: datetime
    replies: List["LessonComment"] = []
