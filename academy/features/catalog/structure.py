"""Modules and lessons: ordered children of a course."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import insert, select, update

from academy.core.database import courses, get_db_session, lessons, modules, new_id
from academy.core.errors import NotFoundError, ValidationError
from academy.core.repository import delete_in_order, reject_nulls, resolve_order
from academy.features.catalog.cascade import lesson_plan, module_plan
from academy.features.catalog.mapping import build_lesson, build_module
from academy.models.catalog import Lesson, Module

logger = logging.getLogger(__name__)

MODULE_FIELDS = ("title", "description")
LESSON_FIELDS = ("title", "description", "video_url", "duration", "notes", "published")


def _require_title(values: Dict[str, Any]) -> None:
    if "title" in values and not (values["title"] or "").strip():
        raise ValidationError("title is required")


def _module_lessons(session, module_id: str):
    return session.execute(
        select(lessons).where(lessons.c.module_id == module_id).order_by(lessons.c.position.asc())
    ).all()


def list_modules(course_id: str) -> List[Module]:
    with get_db_session() as session:
        rows = session.execute(
            select(modules).where(modules.c.course_id == course_id).order_by(modules.c.position.asc())
        ).all()
        return [build_module(row, _module_lessons(session, row.id), for_client=False) for row in rows]


def get_module(module_id: str) -> Module:
    with get_db_session() as session:
        row = session.execute(select(modules).where(modules.c.id == module_id)).first()
        if not row:
            raise NotFoundError("Module not found")
        return build_module(row, _module_lessons(session, row.id), for_client=False)


def create_module(course_id: str, title: str, description: Optional[str] = None, order: Optional[int] = None) -> Module:
    values = {"title": title, "description": description}
    _require_title(values)
    module_id = new_id()
    with get_db_session() as session:
        course = session.execute(select(courses.c.id).where(courses.c.id == course_id)).first()
        if not course:
            raise NotFoundError("Course not found")
        position = resolve_order(session, modules, "course_id", course_id, order)
        session.execute(insert(modules).values(id=module_id, course_id=course_id, position=position, **values))
    logger.info(f"module.created module_id={module_id} course_id={course_id} order={position}")
    return get_module(module_id)


def update_module(module_id: str, changes: Dict[str, Any]) -> Module:
    values = {key: changes[key] for key in MODULE_FIELDS if key in changes}
    if changes.get("order") is not None:
        values["position"] = changes["order"]
    reject_nulls(modules, values)
    _require_title(values)
    with get_db_session() as session:
        exists = session.execute(select(modules.c.id).where(modules.c.id == module_id)).first()
        if not exists:
            raise NotFoundError("Module not found")
        if values:
            session.execute(update(modules).where(modules.c.id == module_id).values(**values))
    return get_module(module_id)


def delete_module(module_id: str) -> Dict[str, int]:
    """Removes the module's lessons and everything hanging off them; the course stays."""
    with get_db_session() as session:
        exists = session.execute(select(modules.c.id).where(modules.c.id == module_id)).first()
        if not exists:
            raise NotFoundError("Module not found")
        removed = delete_in_order(session, module_plan(module_id))
    logger.info(f"module.deleted module_id={module_id} removed={removed}")
    return removed


def list_lessons(module_id: str) -> List[Lesson]:
    with get_db_session() as session:
        return [build_lesson(row, for_client=False) for row in _module_lessons(session, module_id)]


def get_lesson(lesson_id: str) -> Lesson:
    with get_db_session() as session:
        row = session.execute(select(lessons).where(lessons.c.id == lesson_id)).first()
    if not row:
        raise NotFoundError("Lesson not found")
    return build_lesson(row, for_client=False)


def create_lesson(module_id: str, data: Dict[str, Any]) -> Lesson:
    values = {key: data[key] for key in LESSON_FIELDS if data.get(key) is not None}
    if "title" not in values:
        raise ValidationError("title is required")
    _require_title(values)
    lesson_id = new_id()
    with get_db_session() as session:
        module = session.execute(select(modules.c.id).where(modules.c.id == module_id)).first()
        if not module:
            raise NotFoundError("Module not found")
        position = resolve_order(session, lessons, "module_id", module_id, data.get("order"))
        session.execute(insert(lessons).values(id=lesson_id, module_id=module_id, position=position, **values))
    logger.info(f"lesson.created lesson_id={lesson_id} module_id={module_id} order={position}")
    return get_lesson(lesson_id)


def update_lesson(lesson_id: str, changes: Dict[str, Any]) -> Lesson:
    values = {key: changes[key] for key in LESSON_FIELDS if key in changes}
    if changes.get("order") is not None:
        values["position"] = changes["order"]
    if changes.get("module_id") is not None:
        values["module_id"] = changes["module_id"]
    reject_nulls(lessons, values)
    _require_title(values)
    with get_db_session() as session:
        exists = session.execute(select(lessons.c.id).where(lessons.c.id == lesson_id)).first()
        if not exists:
            raise NotFoundError("Lesson not found")
        if "module_id" in values:
            module = session.execute(select(modules.c.id).where(modules.c.id == values["module_id"])).first()
            if not module:
                raise NotFoundError("Module not found")
        if values:
            session.execute(update(lessons).where(lessons.c.id == lesson_id).values(**values))
    return get_lesson(lesson_id)


def delete_lesson(lesson_id: str) -> Dict[str, int]:
    with get_db_session() as session:
        exists = session.execute(select(lessons.c.id).where(lessons.c.id == lesson_id)).first()
        if not exists:
            raise NotFoundError("Lesson not found")
        removed = delete_in_order(session, lesson_plan(lesson_id))
    logger.info(f"lesson.deleted lesson_id={lesson_id} removed={removed}")
    return removed


def course_id_for_lesson(session, lesson_id: str):
    """(course_id, lesson row) for a lesson, or NotFoundError."""
    row = session.execute(
        select(lessons, modules.c.course_id)
        .join(modules, modules.c.id == lessons.c.module_id)
        .where(lessons.c.id == lesson_id)
    ).first()
    if not row:
        raise NotFoundError("Lesson not found")
    return row.course_id, row
