from typing import Any, Dict, List, Optional

from academy.features.community.mapping import DELETED_AUTHOR
from academy.models.community import Attachment, LessonComment
from academy.models.user import UserSummary


def build_attachments(value: Optional[List[Dict[str, Any]]]) -> List[Attachment]:
    return [Attachment(**item) for item in (value or [])]


def build_lesson_comment(
    row: Any,
    author: Optional[UserSummary],
    *,
    like_count: int = 0,
    liked_by_me: bool = False,
    replies: Optional[List[LessonComment]] = None,
) -> LessonComment:
    return LessonComment(
        id=row.id,
        lesson_id=row.lesson_id,
        parent_id=row.parent_id,
        content=row.content,
        attachments=build_attachments(row.attachments),
        pinned=bool(row.pinned),
        author=author or DELETED_AUTHOR,
        like_count=like_count,
        liked_by_me=liked_by_me,
        created_at=row.created_at,
        replies=replies or [],
    )


def build_lesson_threads(
    rows: List[Any],
    authors: Dict[str, UserSummary],
    like_counts: Dict[str, int],
    liked_ids: set,
) -> List[LessonComment]:
    """Pinned threads first, then newest; replies oldest first."""
    children: Dict[Optional[str], List[Any]] = {}
    for row in rows:
        children.setdefault(row.parent_id, []).append(row)

    def build(row: Any) -> LessonComment:
        replies = sorted(children.get(row.id, []), key=lambda r: r.created_at)
        return build_lesson_comment(
            row,
            authors.get(row.author_id),
            like_count=like_counts.get(row.id, 0),
            liked_by_me=row.id in liked_ids,
            replies=[build(reply) for reply in replies],
        )

    top_level = sorted(children.get(None, []), key=lambda r: r.created_at, reverse=True)
    top_level.sort(key=lambda r: bool(r.pinned), reverse=True)
    return [build(row) for row in top_level]
