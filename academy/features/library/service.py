"""
Personal library: bookmarks (a course or a lesson) and timestamped lesson
notes. Every row is owned by one user and only visible to that user.
"""
import logging
from typing import List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError

from academy.core.database import bookmarks, courses, get_db_session, lesson_notes, lessons, new_id
from academy.core.errors import ConflictError, NotFoundError, ValidationError
from academy.models.learning import Bookmark, LessonNote

logger = logging.getLogger(__name__)


def _build_bookmark(row) -> Bookmark:
    return Bookmark(id=row.id, course_id=row.course_id, lesson_id=row.lesson_id, created_at=row.created_at)


def _build_note(row) -> LessonNote:
    return LessonNote(
        id=row.id,
        lesson_id=row.lesson_id,
        content=row.content,
        timestamp=row.timestamp,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _target(course_id: Optional[str], lesson_id: Optional[str]):
    if bool(course_id) == bool(lesson_id):
        raise ValidationError("Provide exactly one of course_id or lesson_id")
    if course_id:
        return bookmarks.c.course_id, course_id
    return bookmarks.c.lesson_id, lesson_id


def list_bookmarks(user_id: str) -> List[Bookmark]:
    with get_db_session() as session:
        rows = session.execute(
            select(bookmarks).where(bookmarks.c.user_id == user_id).order_by(bookmarks.c.created_at.desc())
        ).all()
    return [_build_bookmark(row) for row in rows]


def add_bookmark(user_id: str, course_id: Optional[str] = None, lesson_id: Optional[str] = None) -> Bookmark:
    _target(course_id, lesson_id)
    bookmark_id = new_id()
    try:
        with get_db_session() as session:
            if course_id:
                exists = session.execute(select(courses.c.id).where(courses.c.id == course_id)).first()
            else:
                exists = session.execute(select(lessons.c.id).where(lessons.c.id == lesson_id)).first()
            if not exists:
                raise NotFoundError("Course not found" if course_id else "Lesson not found")
            session.execute(
                insert(bookmarks).values(id=bookmark_id, user_id=user_id, course_id=course_id, lesson_id=lesson_id)
            )
    except IntegrityError:
        raise ConflictError("Already bookmarked")
    with get_db_session() as session:
        row = session.execute(select(bookmarks).where(bookmarks.c.id == bookmark_id)).first()
    return _build_bookmark(row)


def remove_bookmark(user_id: str, course_id: Optional[str] = None, lesson_id: Optional[str] = None) -> None:
    column, value = _target(course_id, lesson_id)
    with get_db_session() as session:
        result = session.execute(delete(bookmarks).where(bookmarks.c.user_id == user_id, column == value))
        if result.rowcount == 0:
            raise NotFoundError("Bookmark not found")


def list_notes(user_id: str, lesson_id: Optional[str] = None) -> List[LessonNote]:
    query = select(lesson_notes).where(lesson_notes.c.user_id == user_id)
    if lesson_id:
        query = query.where(lesson_notes.c.lesson_id == lesson_id).order_by(
            lesson_notes.c.timestamp.asc(), lesson_notes.c.created_at.asc()
        )
    else:
        query = query.order_by(lesson_notes.c.updated_at.desc())
    with get_db_session() as session:
        rows = session.execute(query).all()
    return [_build_note(row) for row in rows]


def _validate_note(content: Optional[str], timestamp: Optional[int]) -> None:
    if content is not None and not content.strip():
        raise ValidationError("content is required")
    if timestamp is not None and timestamp < 0:
        raise ValidationError("timestamp must be >= 0")


def create_note(user_id: str, lesson_id: str, content: str, timestamp: Optional[int] = None) -> LessonNote:
    if content is None:
        raise ValidationError("content is required")
    _validate_note(content, timestamp)
    note_id = new_id()
    with get_db_session() as session:
        if not session.execute(select(lessons.c.id).where(lessons.c.id == lesson_id)).first():
            raise NotFoundError("Lesson not found")
        session.execute(
            insert(lesson_notes).values(
                id=note_id, user_id=user_id, lesson_id=lesson_id, content=content, timestamp=timestamp
            )
        )
    return _get_note(user_id, note_id)


def _get_note(user_id: str, note_id: str) -> LessonNote:
    """Someone else's note is reported as missing."""
    with get_db_session() as session:
        row = session.execute(
            select(lesson_notes).where(lesson_notes.c.id == note_id, lesson_notes.c.user_id == user_id)
        ).first()
    if not row:
        raise NotFoundError("Note not found")
    return _build_note(row)


def update_note(user_id: str, note_id: str, content: Optional[str] = None, timestamp: Optional[int] = None) -> LessonNote:
    _validate_note(content, timestamp)
    values = {}
    if content is not None:
        values["content"] = content
    if timestamp is not None:
        values["timestamp"] = timestamp
    _get_note(user_id, note_id)
    if values:
        with get_db_session() as session:
            session.execute(
                update(lesson_notes)
                .where(lesson_notes.c.id == note_id, lesson_notes.c.user_id == user_id)
                .values(**values)
            )
    return _get_note(user_id, note_id)


def delete_note(user_id: str, note_id: str) -> None:
    with get_db_session() as session:
        result = session.execute(
            delete(lesson_notes).where(lesson_notes.c.id == note_id, lesson_notes.c.user_id == user_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("Note not found")
