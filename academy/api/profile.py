"""
Profile, progress, certificate, notification and library routes under /api/user.
"""
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from academy.core.errors import NotFoundError, ValidationError
from academy.core.session import Identity, require_identity
from academy.features.certificates.service import issue_certificate, list_certificates
from academy.features.library.service import (
    add_bookmark,
    create_note,
    delete_note,
    list_bookmarks,
    list_notes,
    remove_bookmark,
    update_note,
)
from academy.features.notifications.service import list_notifications, mark_all_read, mark_read
from academy.features.profiles.service import complete_onboarding, get_profile, upsert_profile
from academy.features.progress.service import course_summary, lesson_progress_for, progress_history
from academy.models.learning import Bookmark, Certificate, CourseProgress, LessonNote, LessonProgress, ProgressEntry
from academy.models.notification import NotificationList
from academy.models.user import Profile

router = APIRouter(prefix="/api/user", tags=["user"])


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    objective: Optional[str] = None
    level: Optional[str] = None


class OnboardingRequest(ProfileUpdate):
    first_name: str


class CertificateRequest(BaseModel):
    course_id: str


class NotificationUpdate(BaseModel):
    notification_id: Optional[str] = None
    mark_all_read: bool = False


class BookmarkRequest(BaseModel):
    course_id: Optional[str] = None
    lesson_id: Optional[str] = None


class NoteCreate(BaseModel):
    lesson_id: str
    content: str
    timestamp: Optional[int] = None


class NoteUpdate(BaseModel):
    content: Optional[str] = None
    timestamp: Optional[int] = None


@router.get("/profile", response_model=Profile)
def read_profile(identity: Identity = Depends(require_identity)):
    profile = get_profile(identity.id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


@router.put("/profile", response_model=Profile)
def write_profile(body: ProfileUpdate, identity: Identity = Depends(require_identity)):
    return upsert_profile(identity.id, body.model_dump(exclude_unset=True))


@router.post("/onboarding", response_model=Profile)
def onboarding(body: OnboardingRequest, identity: Identity = Depends(require_identity)):
    return complete_onboarding(identity.id, body.model_dump(exclude_unset=True))


@router.get("/progress", response_model=Union[LessonProgress, CourseProgress, List[ProgressEntry]])
def read_progress(
    lesson_id: Optional[str] = Query(None),
    course_id: Optional[str] = Query(None),
    identity: Identity = Depends(require_identity),
):
    """One lesson, one course summary, or the full history when neither is given."""
    if lesson_id:
        return lesson_progress_for(identity.id, lesson_id)
    if course_id:
        return course_summary(identity.id, course_id)
    return progress_history(identity.id)


@router.get("/certificates", response_model=List[Certificate])
def my_certificates(identity: Identity = Depends(require_identity)):
    return list_certificates(identity.id)


@router.post("/certificates", response_model=Certificate)
def claim_certificate(body: CertificateRequest, identity: Identity = Depends(require_identity)):
    """Idempotent: a course already certified returns the existing certificate."""
    return issue_certificate(identity, body.course_id)


@router.get("/notifications", response_model=NotificationList)
def my_notifications(limit: int = Query(10, ge=1, le=100), identity: Identity = Depends(require_identity)):
    return list_notifications(identity.id, limit=limit)


@router.patch("/notifications")
def update_notifications(body: NotificationUpdate, identity: Identity = Depends(require_identity)):
    if body.mark_all_read:
        return {"ok": True, "updated": mark_all_read(identity.id)}
    if not body.notification_id:
        raise ValidationError("notification_id or mark_all_read is required")
    mark_read(identity.id, body.notification_id)
    return {"ok": True, "updated": 1}


@router.get("/bookmarks", response_model=List[Bookmark])
def my_bookmarks(identity: Identity = Depends(require_identity)):
    return list_bookmarks(identity.id)


@router.post("/bookmarks", response_model=Bookmark, status_code=201)
def bookmark(body: BookmarkRequest, identity: Identity = Depends(require_identity)):
    return add_bookmark(identity.id, body.course_id, body.lesson_id)


@router.delete("/bookmarks")
def unbookmark(
    course_id: Optional[str] = None,
    lesson_id: Optional[str] = None,
    identity: Identity = Depends(require_identity),
):
    remove_bookmark(identity.id, course_id, lesson_id)
    return {"ok": True}


@router.get("/notes", response_model=List[LessonNote])
def my_notes(lesson_id: Optional[str] = None, identity: Identity = Depends(require_identity)):
    return list_notes(identity.id, lesson_id)


@router.post("/notes", response_model=LessonNote, status_code=201)
def add_note(body: NoteCreate, identity: Identity = Depends(require_identity)):
    return create_note(identity.id, body.lesson_id, body.content, body.timestamp)


@router.patch("/notes/{note_id}", response_model=LessonNote)
def edit_note(note_id: str, body: NoteUpdate, identity: Identity = Depends(require_identity)):
    return update_note(identity.id, note_id, body.content, body.timestamp)


@router.delete("/notes/{note_id}")
def remove_note(note_id: str, identity: Identity = Depends(require_identity)):
    delete_note(identity.id, note_id)
    return {"ok": True}
