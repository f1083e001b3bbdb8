"""Response builders for the course catalog.

Student-facing lesson payloads carry obfuscated video URLs; staff payloads
(admin editing screens) carry the stored URL.
"""

from typing import Any, Dict, Iterable, List, Optional, Set

from academy.features.video.obfuscation import obfuscate_for_client
from academy.models.catalog import Course, CourseCategory, CourseDetail, Lesson, Module, Resource


def build_course_category(row: Any, course_count: int = 0) -> CourseCategory:
    return CourseCategory(
        id=row.id,
        name=row.name,
        slug=row.slug,
        description=row.description,
        icon=row.icon,
        color=row.color,
        active=bool(row.active),
        order=row.position,
        course_count=course_count,
    )


def _course_fields(row: Any) -> Dict[str, Any]:
    return {
        "id": row.id,
        "slug": row.slug,
        "title": row.title,
        "description": row.description,
        "short_description": row.short_description,
        "thumbnail": row.thumbnail,
        "level": row.level,
        "category_id": row.category_id,
        "mentor_id": row.mentor_id,
        "duration": row.duration,
        "published": bool(row.published),
        "featured": bool(row.featured),
        "order": row.position,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


def build_course(row: Any, lesson_count: int = 0, enrollment_count: int = 0) -> Course:
    return Course(lesson_count=lesson_count, enrollment_count=enrollment_count, **_course_fields(row))


def build_lesson(row: Any, *, for_client: bool = True, completed: Optional[bool] = None) -> Lesson:
    return Lesson(
        id=row.id,
        module_id=row.module_id,
        title=row.title,
        description=row.description,
        video_url=obfuscate_for_client(row.video_url) if for_client else row.video_url,
        duration=row.duration,
        notes=row.notes,
        published=bool(row.published),
        order=row.position,
        completed=completed,
    )


def build_module(row: Any, lesson_rows: Iterable[Any], *, for_client: bool = True, completed_ids: Optional[Set[str]] = None) -> Module:
    lessons: List[Lesson] = []
    for lesson_row in lesson_rows:
        completed = None if completed_ids is None else lesson_row.id in completed_ids
        lessons.append(build_lesson(lesson_row, for_client=for_client, completed=completed))
    return Module(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        description=row.description,
        order=row.position,
        lessons=lessons,
    )


def build_course_detail(
    row: Any,
    modules: List[Module],
    *,
    enrolled: bool = False,
    progress_percentage: Optional[int] = None,
    enrollment_count: int = 0,
) -> CourseDetail:
    lesson_count = sum(len(module.lessons) for module in modules)
    return CourseDetail(
        lesson_count=lesson_count,
        enrollment_count=enrollment_count,
        modules=modules,
        enrolled=enrolled,
        progress_percentage=progress_percentage,
        **_course_fields(row),
    )


def build_resource(row: Any) -> Resource:
    return Resource(
        id=row.id,
        title=row.title,
        description=row.description,
        file_url=row.file_url,
        file_type=row.file_type,
        file_size=row.file_size,
        course_id=row.course_id,
        lesson_id=row.lesson_id,
        created_at=row.created_at,
    )
