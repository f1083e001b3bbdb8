from typing import Any, Iterable, List

from academy.models.learning import CourseProgress, LessonProgress, ProgressEntry


def build_lesson_progress(row: Any) -> LessonProgress:
    return LessonProgress(
        lesson_id=row.lesson_id,
        completed=bool(row.completed),
        completed_at=row.completed_at,
        watch_time=row.watch_time or 0,
    )


def build_course_progress(course_id: str, lesson_ids: List[str], rows: Iterable[Any]) -> CourseProgress:
    """Summary over the course's published lessons; percentage is rounded."""
    items = [build_lesson_progress(row) for row in rows]
    completed = sum(1 for item in items if item.completed)
    total = len(lesson_ids)
    percentage = round(completed * 100 / total) if total else 0
    return CourseProgress(
        course_id=course_id,
        total_lessons=total,
        completed_lessons=completed,
        percentage=percentage,
        course_completed=total > 0 and completed == total,
        lessons=items,
    )


def build_progress_entry(row: Any) -> ProgressEntry:
    return ProgressEntry(
        lesson_id=row.lesson_id,
        lesson_title=row.lesson_title,
        module_title=row.module_title,
        course_id=row.course_id,
        course_title=row.course_title,
        course_slug=row.course_slug,
        completed=bool(row.completed),
        completed_at=row.completed_at,
        watch_time=row.watch_time or 0,
        updated_at=row.updated_at,
    )
