"""
Lesson progress.

Progress is recorded per (user, lesson) and only for enrolled users. When
every published lesson of a course is complete, the enrollment is stamped
with completed_at.
"""
import logging
from typing import List, Optional

from sqlalchemy import func, insert, select, update

from academy.core.database import courses, enrollments, get_db_session, lesson_progress, lessons, modules, new_id, utcnow
from academy.core.errors import NotFoundError, PermissionError, ValidationError
from academy.core.session import Identity
from academy.features.catalog.structure import course_id_for_lesson
from academy.features.enrollment.service import is_enrolled
from academy.features.progress.mapping import build_course_progress, build_lesson_progress, build_progress_entry
from academy.models.learning import CourseProgress, LessonProgress, ProgressEntry

logger = logging.getLogger(__name__)


def published_lesson_ids(session, course_id: str):
    return list(
        session.execute(
            select(lessons.c.id)
            .join(modules, modules.c.id == lessons.c.module_id)
            .where(modules.c.course_id == course_id, lessons.c.published.is_(True))
            .order_by(modules.c.position.asc(), lessons.c.position.asc())
        ).scalars()
    )


def completed_lesson_count(session, user_id: str, lesson_ids) -> int:
    if not lesson_ids:
        return 0
    return session.execute(
        select(func.count())
        .select_from(lesson_progress)
        .where(
            lesson_progress.c.user_id == user_id,
            lesson_progress.c.lesson_id.in_(lesson_ids),
            lesson_progress.c.completed.is_(True),
        )
    ).scalar_one()


def record_progress(
    identity: Identity,
    lesson_id: str,
    completed: Optional[bool] = None,
    watch_time: Optional[int] = None,
) -> LessonProgress:
    """Upsert the caller's progress row for one lesson."""
    if watch_time is not None and watch_time < 0:
        raise ValidationError("watch_time must be >= 0")

    with get_db_session() as session:
        course_id, _ = course_id_for_lesson(session, lesson_id)
        if not is_enrolled(session, identity.id, course_id):
            raise PermissionError("You must be enrolled in this course")

        existing = session.execute(
            select(lesson_progress).where(
                lesson_progress.c.user_id == identity.id,
                lesson_progress.c.lesson_id == lesson_id,
            )
        ).first()

        values = {}
        if completed is not None:
            values["completed"] = completed
            values["completed_at"] = utcnow() if completed else None
        if watch_time is not None:
            values["watch_time"] = watch_time

        if existing:
            # completed_at keeps the first completion time
            if completed and existing.completed:
                values.pop("completed_at", None)
            if values:
                session.execute(update(lesson_progress).where(lesson_progress.c.id == existing.id).values(**values))
        else:
            session.execute(
                insert(lesson_progress).values(
                    id=new_id(),
                    user_id=identity.id,
                    lesson_id=lesson_id,
                    completed=values.get("completed", False),
                    completed_at=values.get("completed_at"),
                    watch_time=values.get("watch_time", 0),
                )
            )

        lesson_ids = published_lesson_ids(session, course_id)
        done = completed_lesson_count(session, identity.id, lesson_ids)
        if lesson_ids and done == len(lesson_ids):
            result = session.execute(
                update(enrollments)
                .where(
                    enrollments.c.user_id == identity.id,
                    enrollments.c.course_id == course_id,
                    enrollments.c.completed_at.is_(None),
                )
                .values(completed_at=utcnow())
            )
            if result.rowcount:
                logger.info(f"enrollment.completed user_id={identity.id} course_id={course_id}")

        row = session.execute(
            select(lesson_progress).where(
                lesson_progress.c.user_id == identity.id,
                lesson_progress.c.lesson_id == lesson_id,
            )
        ).first()
    return build_lesson_progress(row)


def course_progress(identity: Identity, course_id: str) -> CourseProgress:
    with get_db_session() as session:
        if not is_enrolled(session, identity.id, course_id):
            raise NotFoundError("Enrollment not found")
        lesson_ids = published_lesson_ids(session, course_id)
        rows = session.execute(
            select(lesson_progress).where(
                lesson_progress.c.user_id == identity.id,
                lesson_progress.c.lesson_id.in_(lesson_ids),
            )
        ).all() if lesson_ids else []
    return build_course_progress(course_id, lesson_ids, rows)


def progress_percentage(session, user_id: str, course_id: str) -> int:
    lesson_ids = published_lesson_ids(session, course_id)
    if not lesson_ids:
        return 0
    return round(completed_lesson_count(session, user_id, lesson_ids) * 100 / len(lesson_ids))


def lesson_progress_for(user_id: str, lesson_id: str) -> LessonProgress:
    """The caller's row for one lesson; an untouched lesson reads as not started."""
    with get_db_session() as session:
        course_id_for_lesson(session, lesson_id)
        row = session.execute(
            select(lesson_progress).where(
                lesson_progress.c.user_id == user_id,
                lesson_progress.c.lesson_id == lesson_id,
            )
        ).first()
    if row is None:
        return LessonProgress(lesson_id=lesson_id, completed=False)
    return build_lesson_progress(row)


def course_summary(user_id: str, course_id: str) -> CourseProgress:
    """Like course_progress, without requiring an enrollment."""
    with get_db_session() as session:
        if not session.execute(select(courses.c.id).where(courses.c.id == course_id)).first():
            raise NotFoundError("Course not found")
        lesson_ids = published_lesson_ids(session, course_id)
        rows = session.execute(
            select(lesson_progress).where(
                lesson_progress.c.user_id == user_id,
                lesson_progress.c.lesson_id.in_(lesson_ids),
            )
        ).all() if lesson_ids else []
    return build_course_progress(course_id, lesson_ids, rows)


def progress_history(user_id: str) -> List[ProgressEntry]:
    """Every lesson the user has touched across all courses, most recent first."""
    with get_db_session() as session:
        rows = session.execute(
            select(
                lesson_progress.c.lesson_id,
                lesson_progress.c.completed,
                lesson_progress.c.completed_at,
                lesson_progress.c.watch_time,
                lesson_progress.c.updated_at,
                lessons.c.title.label("lesson_title"),
                modules.c.title.label("module_title"),
                courses.c.id.label("course_id"),
                courses.c.title.label("course_title"),
                courses.c.slug.label("course_slug"),
            )
            .join(lessons, lessons.c.id == lesson_progress.c.lesson_id)
            .join(modules, modules.c.id == lessons.c.module_id)
            .join(courses, courses.c.id == modules.c.course_id)
            .where(lesson_progress.c.user_id == user_id)
            .order_by(lesson_progress.c.updated_at.desc())
        ).all()
    return [build_progress_entry(row) for row in rows]
