"""
Lesson routes: progress tracking and the per-lesson discussion.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from academy.core.session import Identity, require_identity
from academy.features.discussion.service import (
    create_lesson_comment,
    delete_lesson_comment,
    list_lesson_comments,
    toggle_lesson_comment_like,
    toggle_pin,
    update_lesson_comment,
)
from academy.features.progress.service import course_progress, record_progress
from academy.models.community import Attachment, LessonComment, LikeToggle
from academy.models.learning import CourseProgress, LessonProgress

router = APIRouter(prefix="/api/lessons", tags=["lessons"])


class ProgressRequest(BaseModel):
    lesson_id: str
    completed: Optional[bool] = None
    watch_time: Optional[int] = Field(default=None, ge=0)


class LessonCommentCreate(BaseModel):
    content: str
    parent_id: Optional[str] = None
    attachments: List[Attachment] = []


class LessonCommentUpdate(BaseModel):
    content: str


@router.post("/progress", response_model=LessonProgress)
def save_progress(body: ProgressRequest, identity: Identity = Depends(require_identity)):
    return record_progress(identity, body.lesson_id, body.completed, body.watch_time)


@router.get("/progress", response_model=CourseProgress)
def read_progress(course_id: str = Query(...), identity: Identity = Depends(require_identity)):
    return course_progress(identity, course_id)


@router.put("/comments/{comment_id}", response_model=LessonComment)
def edit_comment(comment_id: str, body: LessonCommentUpdate, identity: Identity = Depends(require_identity)):
    return update_lesson_comment(identity, comment_id, body.content)


@router.delete("/comments/{comment_id}")
def remove_comment(comment_id: str, identity: Identity = Depends(require_identity)):
    delete_lesson_comment(identity, comment_id)
    return {"ok": True}


@router.post("/comments/{comment_id}/like", response_model=LikeToggle)
def like_comment(comment_id: str, identity: Identity = Depends(require_identity)):
    return toggle_lesson_comment_like(identity, comment_id)


@router.post("/comments/{comment_id}/pin", response_model=LessonComment)
def pin_comment(comment_id: str, identity: Identity = Depends(require_identity)):
    """MENTOR/ADMIN only; toggles."""
    return toggle_pin(identity, comment_id)


@router.get("/{lesson_id}/comments", response_model=List[LessonComment])
def lesson_comments(lesson_id: str, identity: Identity = Depends(require_identity)):
    return list_lesson_comments(identity, lesson_id)


@router.post("/{lesson_id}/comments", response_model=LessonComment, status_code=201)
def comment_on_lesson(lesson_id: str, body: LessonCommentCreate, identity: Identity = Depends(require_identity)):
    return create_lesson_comment(
        identity,
        lesson_id,
        body.content,
        parent_id=body.parent_id,
        attachments=[item.model_dump() for item in body.attachments],
    )
