"""Course categories (admin-managed taxonomy)."""

import logging
from typing import Any, Dict, List

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError

from academy.core.database import course_categories, courses, get_db_session, new_id
from academy.core.errors import ConflictError, NotFoundError, ValidationError
from academy.core.repository import reject_nulls
from academy.features.catalog.courses import SLUG_RE
from academy.features.catalog.mapping import build_course_category
from academy.models.catalog import CourseCategory

logger = logging.getLogger(__name__)

CATEGORY_FIELDS = ("name", "slug", "description", "icon", "color", "active")


def _course_count(session, category_id: str) -> int:
    return session.execute(
        select(func.count()).select_from(courses).where(courses.c.category_id == category_id)
    ).scalar_one()


def _validate(values: Dict[str, Any]) -> None:
    if "name" in values and not (values["name"] or "").strip():
        raise ValidationError("name is required")
    if "slug" in values and not SLUG_RE.match(values["slug"] or ""):
        raise ValidationError("slug may only contain lowercase letters, numbers and dashes")


def list_categories(active_only: bool = False) -> List[CourseCategory]:
    counts = (
        select(courses.c.category_id, func.count(courses.c.id).label("course_count"))
        .group_by(courses.c.category_id)
        .subquery()
    )
    query = (
        select(course_categories, func.coalesce(counts.c.course_count, 0).label("course_count"))
        .outerjoin(counts, counts.c.category_id == course_categories.c.id)
        .order_by(course_categories.c.position.asc(), course_categories.c.name.asc())
    )
    if active_only:
        query = query.where(course_categories.c.active.is_(True))
    with get_db_session() as session:
        rows = session.execute(query).all()
    return [build_course_category(row, row.course_count) for row in rows]


def get_category(category_id: str) -> CourseCategory:
    with get_db_session() as session:
        row = session.execute(select(course_categories).where(course_categories.c.id == category_id)).first()
        if not row:
            raise NotFoundError("Category not found")
        return build_course_category(row, _course_count(session, category_id))


def create_category(data: Dict[str, Any]) -> CourseCategory:
    values = {key: data[key] for key in CATEGORY_FIELDS if data.get(key) is not None}
    if not values.get("name") or not values.get("slug"):
        raise ValidationError("name and slug are required")
    _validate(values)
    category_id = new_id()
    try:
        with get_db_session() as session:
            position = data.get("order")
            if position is None:
                current = session.execute(select(func.max(course_categories.c.position))).scalar()
                position = 0 if current is None else current + 1
            session.execute(insert(course_categories).values(id=category_id, position=position, **values))
    except IntegrityError:
        raise ConflictError("A category with this slug already exists")
    return get_category(category_id)


def update_category(category_id: str, changes: Dict[str, Any]) -> CourseCategory:
    values = {key: changes[key] for key in CATEGORY_FIELDS if key in changes}
    if changes.get("order") is not None:
        values["position"] = changes["order"]
    reject_nulls(course_categories, values)
    _validate(values)
    try:
        with get_db_session() as session:
            if not session.execute(select(course_categories.c.id).where(course_categories.c.id == category_id)).first():
                raise NotFoundError("Category not found")
            if values:
                session.execute(update(course_categories).where(course_categories.c.id == category_id).values(**values))
    except IntegrityError:
        raise ConflictError("A category with this slug already exists")
    return get_category(category_id)


def delete_category(category_id: str) -> None:
    """Categories still used by courses cannot be removed."""
    with get_db_session() as session:
        if not session.execute(select(course_categories.c.id).where(course_categories.c.id == category_id)).first():
            raise NotFoundError("Category not found")
        in_use = _course_count(session, category_id)
        if in_use:
            raise ConflictError(f"Category is used by {in_use} course(s)")
        session.execute(delete(course_categories).where(course_categories.c.id == category_id))
    logger.info(f"category.deleted category_id={category_id}")
