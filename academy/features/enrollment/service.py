"""
Enrollment service.

Enrollment is gated on the locally stored subscription status; the billing
provider is never consulted here.
"""
import logging
from typing import List

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError

from academy.core.database import courses, enrollments, get_db_session, lesson_progress, lessons, modules, new_id
from academy.core.errors import ConflictError, NotFoundError, PermissionError
from academy.core.session import Identity
from academy.features.billing.service import has_active_subscription
from academy.features.enrollment.mapping import build_enrollment
from academy.models.learning import Enrollment

logger = logging.getLogger(__name__)


def enroll(identity: Identity, course_id: str) -> Enrollment:
    with get_db_session() as session:
        course = session.execute(select(courses.c.id).where(courses.c.id == course_id)).first()
        if not course:
            raise NotFoundError("Course not found")
        if not has_active_subscription(session, identity.id):
            raise PermissionError("An active subscription is required to enroll")

    enrollment_id = new_id()
    try:
        with get_db_session() as session:
            session.execute(insert(enrollments).values(id=enrollment_id, user_id=identity.id, course_id=course_id))
    except IntegrityError:
        raise ConflictError("Already enrolled in this course")

    logger.info(f"enrollment.created user_id={identity.id} course_id={course_id}")
    return get_enrollment(identity.id, course_id)


def get_enrollment(user_id: str, course_id: str) -> Enrollment:
    with get_db_session() as session:
        row = session.execute(
            select(enrollments).where(enrollments.c.user_id == user_id, enrollments.c.course_id == course_id)
        ).first()
    if not row:
        raise NotFoundError("Enrollment not found")
    return build_enrollment(row)


def list_enrollments(user_id: str) -> List[Enrollment]:
    with get_db_session() as session:
        rows = session.execute(
            select(enrollments).where(enrollments.c.user_id == user_id).order_by(enrollments.c.enrolled_at.desc())
        ).all()
    return [build_enrollment(row) for row in rows]


def is_enrolled(session, user_id: str, course_id: str) -> bool:
    return session.execute(
        select(enrollments.c.id).where(enrollments.c.user_id == user_id, enrollments.c.course_id == course_id)
    ).first() is not None


def unenroll(identity: Identity, course_id: str) -> None:
    """Drops the caller's progress for the course, then the enrollment."""
    course_lessons = (
        select(lessons.c.id)
        .join(modules, modules.c.id == lessons.c.module_id)
        .where(modules.c.course_id == course_id)
    )
    with get_db_session() as session:
        if not is_enrolled(session, identity.id, course_id):
            raise NotFoundError("Enrollment not found")
        session.execute(
            delete(lesson_progress).where(
                lesson_progress.c.user_id == identity.id,
                lesson_progress.c.lesson_id.in_(course_lessons),
            )
        )
        session.execute(
            delete(enrollments).where(enrollments.c.user_id == identity.id, enrollments.c.course_id == course_id)
        )
    logger.info(f"enrollment.deleted user_id={identity.id} course_id={course_id}")
