from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class CourseCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    active: bool = True
    order: int = 0
    course_count: int = 0


class Lesson(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    module_id: str
    title: str
    description: Optional[str] = None
    video_url: Optional[str] = None  # obfuscated for student-facing payloads
    duration: Optional[int] = None
    notes: Optional[str] = None
    published: bool = True
    order: int = 0
    completed: Optional[bool] = None


class Module(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    course_id: str
    title: str
    description: Optional[str] = None
    order: int = 0
    lessons: List[Lesson] = []


class Course(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    slug: str
    title: str
    description: Optional[str] = None
    short_description: Optional[str] = None
    thumbnail: Optional[str] = None
    level: str
    category_id: Optional[str] = None
    mentor_id: Optional[str] = None
    duration: Optional[int] = None
    published: bool
    featured: bool
    order: int
    created_at: datetime
    updated_at: datetime
    lesson_count: int = 0
    enrollment_count: int = 0


class CourseDetail(Course):
    modules: List[Module] = []
    enrolled: bool = False
    progress_percentage: Optional[int] = None


class Resource(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    file_url: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    course_id: Optional[str] = None
    lesson_id: Optional[str] = None
    created_at: datetime


class ImportedCourse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    slug: str
    modules_count: int
    lessons_count: int


class ImportFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    error: str


class CourseImportReport(BaseModel):
    """Outcome of a bulk import; one bad entry never blocks the others."""
    model_config = ConfigDict(frozen=True)

    imported: int
    failed: int
    results: List[ImportedCourse] = []
    errors: List[ImportFailure] = []
