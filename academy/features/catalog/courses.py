"""
Course catalog service.

Public reads (published courses, course detail by slug) and the
content-management writes used by the admin screens.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError

from academy.core.authz import is_staff
from academy.core.database import (
    course_categories,
    courses,
    enrollments,
    get_db_session,
    lesson_progress,
    lessons,
    modules,
    new_id,
)
from academy.core.errors import ConflictError, NotFoundError, ValidationError
from academy.core.repository import delete_in_order, reject_nulls
from academy.core.session import Identity
from academy.features.catalog.cascade import course_plan
from academy.features.catalog.mapping import build_course, build_course_detail, build_module
from academy.models.catalog import Course, CourseDetail, CourseImportReport, ImportedCourse, ImportFailure

logger = logging.getLogger(__name__)

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
COURSE_LEVELS = ("BEGINNER", "INTERMEDIATE", "ADVANCED")
COURSE_FIELDS = (
    "slug",
    "title",
    "description",
    "short_description",
    "thumbnail",
    "level",
    "category_id",
    "mentor_id",
    "duration",
    "published",
    "featured",
)


def _validate_course_values(values: Dict[str, Any]) -> None:
    if "slug" in values and not SLUG_RE.match(values["slug"] or ""):
        raise ValidationError("slug may only contain lowercase letters, numbers and dashes")
    if "title" in values and not (values["title"] or "").strip():
        raise ValidationError("title is required")
    if "level" in values and values["level"] not in COURSE_LEVELS:
        raise ValidationError(f"level must be one of {', '.join(COURSE_LEVELS)}")


def _ensure_category(session, category_id: Optional[str]) -> None:
    if category_id is None:
        return
    exists = session.execute(select(course_categories.c.id).where(course_categories.c.id == category_id)).first()
    if not exists:
        raise NotFoundError("Category not found")


def _lesson_counts(session, course_ids: List[str], published_only: bool) -> Dict[str, int]:
    if not course_ids:
        return {}
    query = (
        select(modules.c.course_id, func.count(lessons.c.id))
        .select_from(lessons)
        .join(modules, modules.c.id == lessons.c.module_id)
        .where(modules.c.course_id.in_(course_ids))
        .group_by(modules.c.course_id)
    )
    if published_only:
        query = query.where(lessons.c.published.is_(True))
    return {course_id: count for course_id, count in session.execute(query).all()}


def _enrollment_counts(session, course_ids: List[str]) -> Dict[str, int]:
    if not course_ids:
        return {}
    rows = session.execute(
        select(enrollments.c.course_id, func.count(enrollments.c.id))
        .where(enrollments.c.course_id.in_(course_ids))
        .group_by(enrollments.c.course_id)
    ).all()
    return {course_id: count for course_id, count in rows}


def list_courses(*, published_only: bool = True, category_slug: Optional[str] = None) -> List[Course]:
    query = select(courses)
    if published_only:
        query = query.where(courses.c.published.is_(True))
    if category_slug:
        query = query.join(course_categories, course_categories.c.id == courses.c.category_id).where(
            course_categories.c.slug == category_slug
        )
    query = query.order_by(courses.c.featured.desc(), courses.c.position.asc(), courses.c.created_at.desc())

    with get_db_session() as session:
        rows = session.execute(query).all()
        ids = [row.id for row in rows]
        lesson_counts = _lesson_counts(session, ids, published_only)
        enrollment_counts = _enrollment_counts(session, ids)
    return [build_course(row, lesson_counts.get(row.id, 0), enrollment_counts.get(row.id, 0)) for row in rows]


def _load_detail(session, row, identity: Optional[Identity], *, for_client: bool) -> CourseDetail:
    staff_view = not for_client
    module_rows = session.execute(
        select(modules).where(modules.c.course_id == row.id).order_by(modules.c.position.asc())
    ).all()
    module_ids = [m.id for m in module_rows]

    lesson_query = select(lessons).where(lessons.c.module_id.in_(module_ids)).order_by(lessons.c.position.asc())
    if not staff_view:
        lesson_query = lesson_query.where(lessons.c.published.is_(True))
    lesson_rows = session.execute(lesson_query).all() if module_ids else []

    enrolled = False
    completed_ids = None
    if identity is not None:
        enrolled = session.execute(
            select(enrollments.c.id).where(enrollments.c.user_id == identity.id, enrollments.c.course_id == row.id)
        ).first() is not None
        if enrolled:
            lesson_ids = [lesson.id for lesson in lesson_rows]
            completed_ids = set(
                session.execute(
                    select(lesson_progress.c.lesson_id).where(
                        lesson_progress.c.user_id == identity.id,
                        lesson_progress.c.lesson_id.in_(lesson_ids),
                        lesson_progress.c.completed.is_(True),
                    )
                ).scalars()
            ) if lesson_ids else set()

    by_module: Dict[str, list] = {module_id: [] for module_id in module_ids}
    for lesson in lesson_rows:
        by_module[lesson.module_id].append(lesson)

    built = [
        build_module(module, by_module[module.id], for_client=for_client, completed_ids=completed_ids)
        for module in module_rows
    ]
    percentage = None
    if completed_ids is not None:
        total = len(lesson_rows)
        percentage = round(len(completed_ids) * 100 / total) if total else 0
    enrollment_count = _enrollment_counts(session, [row.id]).get(row.id, 0)
    return build_course_detail(
        row,
        built,
        enrolled=enrolled,
        progress_percentage=percentage,
        enrollment_count=enrollment_count,
    )


def get_course_by_slug(slug: str, identity: Optional[Identity]) -> CourseDetail:
    """Published course detail; drafts are visible to staff only."""
    with get_db_session() as session:
        row = session.execute(select(courses).where(courses.c.slug == slug)).first()
        if not row or (not row.published and not is_staff(identity)):
            raise NotFoundError("Course not found")
        return _load_detail(session, row, identity, for_client=True)


def get_course(course_id: str) -> CourseDetail:
    """Staff view of a course with raw video URLs and unpublished lessons."""
    with get_db_session() as session:
        row = session.execute(select(courses).where(courses.c.id == course_id)).first()
        if not row:
            raise NotFoundError("Course not found")
        return _load_detail(session, row, None, for_client=False)


def create_course(data: Dict[str, Any]) -> CourseDetail:
    """New courses always start unpublished."""
    values = {key: data[key] for key in COURSE_FIELDS if data.get(key) is not None}
    if "slug" not in values or "title" not in values:
        raise ValidationError("title and slug are required")
    _validate_course_values(values)
    values["published"] = False

    course_id = new_id()
    try:
        with get_db_session() as session:
            _ensure_category(session, values.get("category_id"))
            position = data.get("order")
            if position is None:
                current = session.execute(select(func.max(courses.c.position))).scalar()
                position = 0 if current is None else current + 1
            session.execute(insert(courses).values(id=course_id, position=position, **values))
    except IntegrityError:
        raise ConflictError("A course with this slug already exists")

    logger.info(f"course.created course_id={course_id} slug={values['slug']}")
    return get_course(course_id)


def update_course(course_id: str, changes: Dict[str, Any]) -> CourseDetail:
    values = {key: changes[key] for key in COURSE_FIELDS if key in changes}
    if "order" in changes and changes["order"] is not None:
        values["position"] = changes["order"]
    reject_nulls(courses, values)
    _validate_course_values(values)

    try:
        with get_db_session() as session:
            exists = session.execute(select(courses.c.id).where(courses.c.id == course_id)).first()
            if not exists:
                raise NotFoundError("Course not found")
            _ensure_category(session, values.get("category_id"))
            if values:
                session.execute(update(courses).where(courses.c.id == course_id).values(**values))
    except IntegrityError:
        raise ConflictError("A course with this slug already exists")

    logger.info(f"course.updated course_id={course_id} fields={sorted(values)}")
    return get_course(course_id)


def delete_course(course_id: str) -> Dict[str, int]:
    with get_db_session() as session:
        exists = session.execute(select(courses.c.id).where(courses.c.id == course_id)).first()
        if not exists:
            raise NotFoundError("Course not found")
        removed = delete_in_order(session, course_plan(course_id))
    logger.info(f"course.deleted course_id={course_id} removed={removed}")
    return removed


def unique_slug(session, base: str) -> str:
    """`base`, or the first of base-1, base-2, ... that no course uses yet."""
    taken = set(
        session.execute(
            select(courses.c.slug).where((courses.c.slug == base) | courses.c.slug.like(f"{base}-%"))
        ).scalars()
    )
    slug, counter = base, 1
    while slug in taken:
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def _import_one(session, mentor_id: str, data: Dict[str, Any]) -> ImportedCourse:
    values = {key: data[key] for key in COURSE_FIELDS if data.get(key) is not None}
    _validate_course_values(values)
    _ensure_category(session, values.get("category_id"))
    values["slug"] = unique_slug(session, values["slug"])
    values["mentor_id"] = mentor_id
    values["published"] = False

    course_id = new_id()
    session.execute(insert(courses).values(id=course_id, position=data.get("order") or 0, **values))

    lesson_total = 0
    module_list = data.get("modules") or []
    for module_index, module in enumerate(module_list):
        if not (module.get("title") or "").strip():
            raise ValidationError(f"module {module_index + 1} is missing a title")
        module_id = new_id()
        session.execute(
            insert(modules).values(
                id=module_id,
                course_id=course_id,
                title=module["title"],
                description=module.get("description"),
                position=module.get("order") if module.get("order") is not None else module_index,
            )
        )
        for lesson_index, lesson in enumerate(module.get("lessons") or []):
            if not (lesson.get("title") or "").strip():
                raise ValidationError(f"lesson {lesson_index + 1} of module {module_index + 1} is missing a title")
            session.execute(
                insert(lessons).values(
                    id=new_id(),
                    module_id=module_id,
                    title=lesson["title"],
                    description=lesson.get("description"),
                    video_url=lesson.get("video_url"),
                    duration=lesson.get("duration"),
                    notes=lesson.get("notes"),
                    published=True,
                    position=lesson.get("order") if lesson.get("order") is not None else lesson_index,
                )
            )
            lesson_total += 1

    return ImportedCourse(
        id=course_id,
        title=values["title"],
        slug=values["slug"],
        modules_count=len(module_list),
        lessons_count=lesson_total,
    )


def import_courses(identity: Identity, payload: List[Dict[str, Any]]) -> CourseImportReport:
    """Create each course with its modules and lessons as an unpublished draft.

    Every entry gets its own transaction. An entry missing title, slug or
    description, or failing validation, is reported and skipped. A taken
    slug gets a numeric suffix instead of failing.
    """
    results: List[ImportedCourse] = []
    errors: List[ImportFailure] = []
    for data in payload:
        title = data.get("title") or "Untitled"
        if not data.get("title") or not data.get("slug") or not data.get("description"):
            errors.append(ImportFailure(title=title, error="title, slug and description are required"))
            continue
        try:
            with get_db_session() as session:
                results.append(_import_one(session, identity.id, data))
        except (ValidationError, NotFoundError) as exc:
            errors.append(ImportFailure(title=title, error=exc.message))
        except IntegrityError:
            logger.warning(f"course.import_conflict slug={data.get('slug')}", exc_info=True)
            errors.append(ImportFailure(title=title, error="A course with this slug already exists"))

    logger.info(f"course.imported imported={len(results)} failed={len(errors)} by={identity.id}")
    return CourseImportReport(imported=len(results), failed=len(errors), results=results, errors=errors)
