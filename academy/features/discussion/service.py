"""
Lesson discussion: threaded comments under a lesson, with attachments,
likes and staff pinning.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, insert, select, update

from academy.core.authz import CONTENT_ROLES, authorize
from academy.core.database import get_db_session, lesson_comment_likes, lesson_comments, lessons, new_id
from academy.core.errors import NotFoundError, PermissionError, ValidationError
from academy.core.repository import delete_in_order, descendant_ids, toggle_pair
from academy.core.session import Identity
from academy.features.discussion.mapping import build_lesson_comment, build_lesson_threads
from academy.features.notifications.service import notify_user
from academy.features.users.service import get_display_name, load_user_summaries
from academy.models.community import LessonComment, LikeToggle
from academy.models.notification import NotificationType

logger = logging.getLogger(__name__)

MAX_ATTACHMENTS = 5


def _lesson_row(session, lesson_id: str):
    row = session.execute(select(lessons.c.id, lessons.c.title).where(lessons.c.id == lesson_id)).first()
    if not row:
        raise NotFoundError("Lesson not found")
    return row


def _comment_row(session, comment_id: str):
    row = session.execute(select(lesson_comments).where(lesson_comments.c.id == comment_id)).first()
    if not row:
        raise NotFoundError("Comment not found")
    return row


def _like_counts(session, ids: List[str]) -> Dict[str, int]:
    if not ids:
        return {}
    rows = session.execute(
        select(lesson_comment_likes.c.comment_id, func.count())
        .where(lesson_comment_likes.c.comment_id.in_(ids))
        .group_by(lesson_comment_likes.c.comment_id)
    ).all()
    return {comment_id: count for comment_id, count in rows}


def _liked(session, user_id: Optional[str], ids: List[str]) -> set:
    if not user_id or not ids:
        return set()
    return set(
        session.execute(
            select(lesson_comment_likes.c.comment_id).where(
                lesson_comment_likes.c.user_id == user_id,
                lesson_comment_likes.c.comment_id.in_(ids),
            )
        ).scalars()
    )


def _single(session, comment_id: str, identity: Optional[Identity]) -> LessonComment:
    row = _comment_row(session, comment_id)
    authors = load_user_summaries(session, [row.author_id])
    return build_lesson_comment(
        row,
        authors.get(row.author_id),
        like_count=_like_counts(session, [row.id]).get(row.id, 0),
        liked_by_me=row.id in _liked(session, identity.id if identity else None, [row.id]),
    )


def list_lesson_comments(identity: Optional[Identity], lesson_id: str) -> List[LessonComment]:
    with get_db_session() as session:
        _lesson_row(session, lesson_id)
        rows = session.execute(select(lesson_comments).where(lesson_comments.c.lesson_id == lesson_id)).all()
        ids = [row.id for row in rows]
        authors = load_user_summaries(session, [row.author_id for row in rows])
        like_counts = _like_counts(session, ids)
        liked = _liked(session, identity.id if identity else None, ids)
    return build_lesson_threads(rows, authors, like_counts, liked)


def _clean_attachments(attachments: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
    if not attachments:
        return None
    if len(attachments) > MAX_ATTACHMENTS:
        raise ValidationError(f"At most {MAX_ATTACHMENTS} attachments per comment")
    cleaned = []
    for item in attachments:
        if not item.get("url") or not item.get("name"):
            raise ValidationError("attachments need a url and a name")
        cleaned.append({key: item.get(key) for key in ("url", "name", "type", "size")})
    return cleaned


def create_lesson_comment(
    identity: Identity,
    lesson_id: str,
    content: str,
    parent_id: Optional[str] = None,
    attachments: Optional[List[Dict[str, Any]]] = None,
) -> LessonComment:
    if not (content or "").strip():
        raise ValidationError("content is required")
    values = {"content": content, "attachments": _clean_attachments(attachments)}

    comment_id = new_id()
    parent = None
    with get_db_session() as session:
        lesson = _lesson_row(session, lesson_id)
        if parent_id:
            parent = session.execute(
                select(lesson_comments.c.lesson_id, lesson_comments.c.author_id).where(lesson_comments.c.id == parent_id)
            ).first()
            if not parent or parent.lesson_id != lesson_id:
                raise ValidationError("parent_id must be a comment on the same lesson")
        session.execute(
            insert(lesson_comments).values(
                id=comment_id,
                lesson_id=lesson_id,
                author_id=identity.id,
                parent_id=parent_id,
                **values,
            )
        )
        replier = get_display_name(session, identity.id) if parent else None

    if parent is not None and parent.author_id != identity.id:
        notify_user(
            parent.author_id,
            NotificationType.COURSE,
            "New reply",
            f'{replier or "Someone"} replied to your comment on "{lesson.title}"',
            f"/app/lecciones/{lesson_id}",
        )

    with get_db_session() as session:
        return _single(session, comment_id, identity)


def update_lesson_comment(identity: Identity, comment_id: str, content: str) -> LessonComment:
    if not (content or "").strip():
        raise ValidationError("content is required")
    with get_db_session() as session:
        row = _comment_row(session, comment_id)
        if row.author_id != identity.id:
            raise PermissionError("You can only edit your own comments")
        session.execute(update(lesson_comments).where(lesson_comments.c.id == comment_id).values(content=content))
    with get_db_session() as session:
        return _single(session, comment_id, identity)


def delete_lesson_comment(identity: Identity, comment_id: str) -> Dict[str, int]:
    with get_db_session() as session:
        row = _comment_row(session, comment_id)
        authorize(identity, CONTENT_ROLES, resource_owner_id=row.author_id)
        ids = descendant_ids(session, lesson_comments, comment_id)
        session.execute(update(lesson_comments).where(lesson_comments.c.id.in_(ids)).values(parent_id=None))
        removed = delete_in_order(
            session,
            [
                ("comment_likes", delete(lesson_comment_likes).where(lesson_comment_likes.c.comment_id.in_(ids))),
                ("comments", delete(lesson_comments).where(lesson_comments.c.id.in_(ids))),
            ],
        )
    logger.info(f"lesson_comment.deleted comment_id={comment_id} by={identity.id} removed={removed}")
    return removed


def toggle_lesson_comment_like(identity: Identity, comment_id: str) -> LikeToggle:
    with get_db_session() as session:
        _comment_row(session, comment_id)
    result = toggle_pair(lesson_comment_likes, {"user_id": identity.id, "comment_id": comment_id})
    with get_db_session() as session:
        count = _like_counts(session, [comment_id]).get(comment_id, 0)
    return LikeToggle(liked=result.active, like_count=count)


def toggle_pin(identity: Identity, comment_id: str) -> LessonComment:
    authorize(identity, CONTENT_ROLES, message="Only mentors and admins can pin comments")
    with get_db_session() as session:
        row = _comment_row(session, comment_id)
        session.execute(
            update(lesson_comments).where(lesson_comments.c.id == comment_id).values(pinned=not row.pinned)
        )
    with get_db_session() as session:
        return _single(session, comment_id, identity)
