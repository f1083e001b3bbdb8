from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class Enrollment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    course_id: str
    enrolled_at: datetime
    completed_at: Optional[datetime] = None


class LessonProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    lesson_id: str
    completed: bool
    completed_at: Optional[datetime] = None
    watch_time: int = 0


class CourseProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    course_id: str
    total_lessons: int
    completed_lessons: int
    percentage: int
    course_completed: bool
    lessons: List[LessonProgress] = []


class Certificate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    course_id: str
    course_title: str
    course_slug: str
    verification_code: str
    issued_at: datetime


class CertificateVerification(BaseModel):
    model_config = ConfigDict(frozen=True)

    verification_code: str
    issued_at: datetime
    course_title: str
    student_name: str


class Bookmark(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    course_id: Optional[str] = None
    lesson_id: Optional[str] = None
    created_at: datetime


class LessonNote(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    lesson_id: str
    content: str
    timestamp: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ProgressEntry(BaseModel):
    """One lesson in the caller's progress history, with where it lives."""
    model_config = ConfigDict(frozen=True)

    lesson_id: str
    lesson_title: str
    module_title: str
    course_id: str
    course_title: str
    course_slug: str
    completed: bool
    completed_at: Optional[datetime] = None
    watch_time: int = 0
    updated_at: datetime
