"""Response builders for community categories, posts and comments."""

from typing import Any, Dict, List, Optional

from academy.models.community import CategoryRef, Comment, CommunityCategory, Post
from academy.models.user import UserSummary

DELETED_AUTHOR = UserSummary(id="", display_name="Deleted user", role="STUDENT")


def build_community_category(row: Any, post_count: int = 0) -> CommunityCategory:
    return CommunityCategory(
        id=row.id,
        name=row.name,
        slug=row.slug,
        description=row.description,
        color=row.color,
        order=row.position,
        post_count=post_count,
    )


def build_post(
    row: Any,
    category: CategoryRef,
    author: Optional[UserSummary],
    *,
    like_count: int = 0,
    comment_count: int = 0,
    liked_by_me: bool = False,
) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        content=row.content,
        type=row.type,
        pinned=bool(row.pinned),
        locked=bool(row.locked),
        category=category,
        author=author or DELETED_AUTHOR,
        like_count=like_count,
        comment_count=comment_count,
        liked_by_me=liked_by_me,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def build_comment(
    row: Any,
    author: Optional[UserSummary],
    *,
    like_count: int = 0,
    liked_by_me: bool = False,
    replies: Optional[List[Comment]] = None,
) -> Comment:
    return Comment(
        id=row.id,
        post_id=row.post_id,
        parent_id=row.parent_id,
        content=row.content,
        author=author or DELETED_AUTHOR,
        like_count=like_count,
        liked_by_me=liked_by_me,
        created_at=row.created_at,
        replies=replies or [],
    )


def build_comment_tree(
    rows: List[Any],
    authors: Dict[str, UserSummary],
    like_counts: Dict[str, int],
    liked_ids: set,
) -> List[Comment]:
    """Nest replies under their parent; top level newest first, replies oldest first."""
    children: Dict[Optional[str], List[Any]] = {}
    for row in rows:
        children.setdefault(row.parent_id, []).append(row)

    def build(row: Any) -> Comment:
        replies = sorted(children.get(row.id, []), key=lambda r: r.created_at)
        return build_comment(
            row,
            authors.get(row.author_id),
            like_count=like_counts.get(row.id, 0),
            liked_by_me=row.id in liked_ids,
            replies=[build(reply) for reply in replies],
        )

    top_level = sorted(children.get(None, []), key=lambda r: r.created_at, reverse=True)
    return [build(row) for row in top_level]
