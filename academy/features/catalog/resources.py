"""Downloadable resources attached to a course or lesson."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, insert, select, update

from academy.core.database import courses, get_db_session, lessons, new_id, resources
from academy.core.errors import NotFoundError, ValidationError
from academy.core.repository import reject_nulls
from academy.features.catalog.mapping import build_resource
from academy.models.catalog import Resource

logger = logging.getLogger(__name__)

RESOURCE_FIELDS = ("title", "description", "file_url", "file_type", "file_size", "course_id", "lesson_id")


def _ensure_targets(session, values: Dict[str, Any]) -> None:
    if values.get("course_id"):
        if not session.execute(select(courses.c.id).where(courses.c.id == values["course_id"])).first():
            raise NotFoundError("Course not found")
    if values.get("lesson_id"):
        if not session.execute(select(lessons.c.id).where(lessons.c.id == values["lesson_id"])).first():
            raise NotFoundError("Lesson not found")


def list_resources(course_id: Optional[str] = None, lesson_id: Optional[str] = None) -> List[Resource]:
    query = select(resources)
    if course_id:
        query = query.where(resources.c.course_id == course_id)
    if lesson_id:
        query = query.where(resources.c.lesson_id == lesson_id)
    with get_db_session() as session:
        rows = session.execute(query.order_by(resources.c.created_at.desc())).all()
    return [build_resource(row) for row in rows]


def get_resource(resource_id: str) -> Resource:
    with get_db_session() as session:
        row = session.execute(select(resources).where(resources.c.id == resource_id)).first()
    if not row:
        raise NotFoundError("Resource not found")
    return build_resource(row)


def create_resource(data: Dict[str, Any]) -> Resource:
    values = {key: data[key] for key in RESOURCE_FIELDS if data.get(key) is not None}
    if not values.get("title") or not values.get("file_url"):
        raise ValidationError("title and file_url are required")
    resource_id = new_id()
    with get_db_session() as session:
        _ensure_targets(session, values)
        session.execute(insert(resources).values(id=resource_id, **values))
    logger.info(f"resource.created resource_id={resource_id}")
    return get_resource(resource_id)


def update_resource(resource_id: str, changes: Dict[str, Any]) -> Resource:
    values = {key: changes[key] for key in RESOURCE_FIELDS if key in changes}
    reject_nulls(resources, values)
    for required in ("title", "file_url"):
        if required in values and not values[required]:
            raise ValidationError(f"{required} is required")
    with get_db_session() as session:
        if not session.execute(select(resources.c.id).where(resources.c.id == resource_id)).first():
            raise NotFoundError("Resource not found")
        _ensure_targets(session, values)
        if values:
            session.execute(update(resources).where(resources.c.id == resource_id).values(**values))
    return get_resource(resource_id)


def delete_resource(resource_id: str) -> None:
    with get_db_session() as session:
        result = session.execute(delete(resources).where(resources.c.id == resource_id))
        if result.rowcount == 0:
            raise NotFoundError("Resource not found")
    logger.info(f"resource.deleted resource_id={resource_id}")
