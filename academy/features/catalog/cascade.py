"""Ordered delete plans for catalog entities.

Dependents are listed before their parents. Plans are executed with
repository.delete_in_order inside a single session.
"""

from typing import List, Tuple

from sqlalchemy import delete, select
from sqlalchemy.sql.dml import Delete

from academy.core.database import (
    bookmarks,
    certificates,
    courses,
    enrollments,
    lesson_comment_likes,
    lesson_comments,
    lesson_notes,
    lesson_progress,
    lessons,
    modules,
    resources,
)

Plan = List[Tuple[str, Delete]]


def lesson_dependents_plan(lesson_ids) -> Plan:
    """Everything hanging off a set of lessons (given as a select of ids)."""
    comment_ids = select(lesson_comments.c.id).where(lesson_comments.c.lesson_id.in_(lesson_ids))
    return [
        ("lesson_progress", delete(lesson_progress).where(lesson_progress.c.lesson_id.in_(lesson_ids))),
        ("lesson_comment_likes", delete(lesson_comment_likes).where(lesson_comment_likes.c.comment_id.in_(comment_ids))),
        ("lesson_comments", delete(lesson_comments).where(lesson_comments.c.lesson_id.in_(lesson_ids))),
        ("lesson_notes", delete(lesson_notes).where(lesson_notes.c.lesson_id.in_(lesson_ids))),
        ("lesson_bookmarks", delete(bookmarks).where(bookmarks.c.lesson_id.in_(lesson_ids))),
        ("lesson_resources", delete(resources).where(resources.c.lesson_id.in_(lesson_ids))),
    ]


def lesson_plan(lesson_id: str) -> Plan:
    lesson_ids = select(lessons.c.id).where(lessons.c.id == lesson_id)
    return lesson_dependents_plan(lesson_ids) + [
        ("lessons", delete(lessons).where(lessons.c.id == lesson_id)),
    ]


def module_plan(module_id: str) -> Plan:
    lesson_ids = select(lessons.c.id).where(lessons.c.module_id == module_id)
    return lesson_dependents_plan(lesson_ids) + [
        ("lessons", delete(lessons).where(lessons.c.module_id == module_id)),
        ("modules", delete(modules).where(modules.c.id == module_id)),
    ]


def course_plan(course_id: str) -> Plan:
    """progress -> lessons -> modules -> enrollments -> resources -> course."""
    module_ids = select(modules.c.id).where(modules.c.course_id == course_id)
    lesson_ids = select(lessons.c.id).where(lessons.c.module_id.in_(module_ids))
    return lesson_dependents_plan(lesson_ids) + [
        ("lessons", delete(lessons).where(lessons.c.module_id.in_(module_ids))),
        ("modules", delete(modules).where(modules.c.course_id == course_id)),
        ("enrollments", delete(enrollments).where(enrollments.c.course_id == course_id)),
        ("resources", delete(resources).where(resources.c.course_id == course_id)),
        ("course_bookmarks", delete(bookmarks).where(bookmarks.c.course_id == course_id)),
        ("certificates", delete(certificates).where(certificates.c.course_id == course_id)),
        ("courses", delete(courses).where(courses.c.id == course_id)),
    ]
