"""
Community forum service.

Posts live in categories; comments nest through parent_id; likes are
toggled per (user, post) and (user, comment). Authors edit and delete their
own content; MENTOR/ADMIN moderate (delete, pin, lock) and are the only
ones allowed to post announcements.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, insert, select, update

from academy.core.authz import CONTENT_ROLES, authorize, is_staff
from academy.core.database import comments, community_categories, get_db_session, likes, new_id, posts
from academy.core.errors import NotFoundError, PermissionError, ValidationError
from academy.core.repository import delete_in_order, descendant_ids, toggle_pair
from academy.core.session import Identity
from academy.features.community.mapping import build_comment, build_comment_tree, build_community_category, build_post
from academy.features.notifications.service import notify_all_users, notify_user
from academy.features.users.service import get_display_name, load_user_summaries
from academy.models.community import CategoryRef, Comment, CommunityCategory, LikeToggle, Post
from academy.models.notification import NotificationType

logger = logging.getLogger(__name__)

POST_TYPES = ("GENERAL", "QUESTION", "ANNOUNCEMENT", "WIN")
ANNOUNCEMENT = "ANNOUNCEMENT"
TITLE_PREVIEW = 40


def _preview(title: str) -> str:
    return title if len(title) <= TITLE_PREVIEW else title[:TITLE_PREVIEW] + "..."


def _count_by(session, column, ids: Iterable[str]) -> Dict[str, int]:
    ids = list(ids)
    if not ids:
        return {}
    rows = session.execute(
        select(column, func.count()).where(column.in_(ids)).group_by(column)
    ).all()
    return {key: count for key, count in rows}


def _liked(session, user_id: Optional[str], column, ids: Iterable[str]) -> set:
    ids = list(ids)
    if not user_id or not ids:
        return set()
    return set(session.execute(select(column).where(likes.c.user_id == user_id, column.in_(ids))).scalars())


def list_categories() -> List[CommunityCategory]:
    with get_db_session() as session:
        rows = session.execute(select(community_categories).order_by(community_categories.c.position.asc())).all()
        counts = _count_by(session, posts.c.category_id, [row.id for row in rows])
    return [build_community_category(row, counts.get(row.id, 0)) for row in rows]


def _post_query():
    return select(
        posts,
        community_categories.c.name.label("category_name"),
        community_categories.c.slug.label("category_slug"),
    ).join(community_categories, community_categories.c.id == posts.c.category_id)


def _build_posts(session, rows, identity: Optional[Identity]) -> List[Post]:
    ids = [row.id for row in rows]
    authors = load_user_summaries(session, [row.author_id for row in rows])
    like_counts = _count_by(session, likes.c.post_id, ids)
    comment_counts = _count_by(session, comments.c.post_id, ids)
    liked = _liked(session, identity.id if identity else None, likes.c.post_id, ids)
    return [
        build_post(
            row,
            CategoryRef(id=row.category_id, name=row.category_name, slug=row.category_slug),
            authors.get(row.author_id),
            like_count=like_counts.get(row.id, 0),
            comment_count=comment_counts.get(row.id, 0),
            liked_by_me=row.id in liked,
        )
        for row in rows
    ]


def list_posts(
    identity: Optional[Identity],
    category_slug: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> List[Post]:
    """Pinned first, then newest."""
    query = _post_query()
    if category_slug:
        query = query.where(community_categories.c.slug == category_slug)
    query = query.order_by(posts.c.pinned.desc(), posts.c.created_at.desc()).limit(limit).offset(offset)
    with get_db_session() as session:
        rows = session.execute(query).all()
        return _build_posts(session, rows, identity)


def _post_row(session, post_id: str):
    row = session.execute(_post_query().where(posts.c.id == post_id)).first()
    if not row:
        raise NotFoundError("Post not found")
    return row


def get_post(identity: Optional[Identity], post_id: str) -> Post:
    with get_db_session() as session:
        return _build_posts(session, [_post_row(session, post_id)], identity)[0]


def _validate_post(values: Dict[str, Any]) -> None:
    for key in ("title", "content"):
        if key in values and not (values[key] or "").strip():
            raise ValidationError(f"{key} is required")
    if "type" in values and values["type"] not in POST_TYPES:
        raise ValidationError(f"type must be one of {', '.join(POST_TYPES)}")


def _ensure_category(session, category_id: str) -> None:
    exists = session.execute(select(community_categories.c.id).where(community_categories.c.id == category_id)).first()
    if not exists:
        raise NotFoundError("Category not found")


def create_post(identity: Identity, title: str, content: str, category_id: str, type: str = "GENERAL") -> Post:
    if not category_id:
        raise ValidationError("category_id is required")
    values = {"title": title, "content": content, "type": type or "GENERAL"}
    _validate_post(values)
    if values["type"] == ANNOUNCEMENT:
        authorize(identity, CONTENT_ROLES, message="Only mentors and admins can post announcements")

    post_id = new_id()
    with get_db_session() as session:
        _ensure_category(session, category_id)
        session.execute(insert(posts).values(id=post_id, author_id=identity.id, category_id=category_id, **values))
    logger.info(f"post.created post_id={post_id} type={values['type']}")

    if values["type"] == ANNOUNCEMENT:
        notify_all_users(
            NotificationType.COMMUNITY,
            "New announcement",
            _preview(values["title"]),
            f"/app/comunidad/{post_id}",
            exclude_user_id=identity.id,
        )
    return get_post(identity, post_id)


def update_post(identity: Identity, post_id: str, changes: Dict[str, Any]) -> Post:
    """Author or staff edit the content; pinned/locked are staff only."""
    values = {key: changes[key] for key in ("title", "content", "type", "category_id") if changes.get(key) is not None}
    _validate_post(values)
    moderation = {key: bool(changes[key]) for key in ("pinned", "locked") if changes.get(key) is not None}

    with get_db_session() as session:
        row = _post_row(session, post_id)
        authorize(identity, CONTENT_ROLES, resource_owner_id=row.author_id)
        if moderation and not is_staff(identity):
            raise PermissionError("Only mentors and admins can pin or lock posts")
        if values.get("type") == ANNOUNCEMENT and not is_staff(identity):
            raise PermissionError("Only mentors and admins can post announcements")
        if "category_id" in values:
            _ensure_category(session, values["category_id"])
        values.update(moderation)
        if values:
            session.execute(update(posts).where(posts.c.id == post_id).values(**values))
    return get_post(identity, post_id)


def delete_post(identity: Identity, post_id: str) -> Dict[str, int]:
    post_comments = select(comments.c.id).where(comments.c.post_id == post_id)
    with get_db_session() as session:
        row = _post_row(session, post_id)
        authorize(identity, CONTENT_ROLES, resource_owner_id=row.author_id)
        # Detach replies so the self-reference never blocks the bulk delete
        session.execute(
            update(comments).where(comments.c.post_id == post_id).values(parent_id=None)
        )
        removed = delete_in_order(
            session,
            [
                ("comment_likes", delete(likes).where(likes.c.comment_id.in_(post_comments))),
                ("comments", delete(comments).where(comments.c.post_id == post_id)),
                ("post_likes", delete(likes).where(likes.c.post_id == post_id)),
                ("posts", delete(posts).where(posts.c.id == post_id)),
            ],
        )
    logger.info(f"post.deleted post_id={post_id} by={identity.id} removed={removed}")
    return removed


def list_comments(identity: Optional[Identity], post_id: str) -> List[Comment]:
    with get_db_session() as session:
        _post_row(session, post_id)
        rows = session.execute(select(comments).where(comments.c.post_id == post_id)).all()
        ids = [row.id for row in rows]
        authors = load_user_summaries(session, [row.author_id for row in rows])
        like_counts = _count_by(session, likes.c.comment_id, ids)
        liked = _liked(session, identity.id if identity else None, likes.c.comment_id, ids)
    return build_comment_tree(rows, authors, like_counts, liked)


def _comment_row(session, comment_id: str):
    row = session.execute(select(comments).where(comments.c.id == comment_id)).first()
    if not row:
        raise NotFoundError("Comment not found")
    return row


def _single_comment(session, comment_id: str, identity: Optional[Identity]) -> Comment:
    row = _comment_row(session, comment_id)
    authors = load_user_summaries(session, [row.author_id])
    like_count = _count_by(session, likes.c.comment_id, [row.id]).get(row.id, 0)
    liked = _liked(session, identity.id if identity else None, likes.c.comment_id, [row.id])
    return build_comment(row, authors.get(row.author_id), like_count=like_count, liked_by_me=row.id in liked)


def create_comment(identity: Identity, post_id: str, content: str, parent_id: Optional[str] = None) -> Comment:
    if not (content or "").strip():
        raise ValidationError("content is required")

    comment_id = new_id()
    with get_db_session() as session:
        post = _post_row(session, post_id)
        if post.locked:
            raise PermissionError("This post is locked")
        if parent_id:
            parent = session.execute(select(comments.c.post_id).where(comments.c.id == parent_id)).first()
            if not parent or parent.post_id != post_id:
                raise ValidationError("parent_id must be a comment on the same post")
        session.execute(
            insert(comments).values(
                id=comment_id,
                post_id=post_id,
                author_id=identity.id,
                parent_id=parent_id,
                content=content,
            )
        )
        commenter = get_display_name(session, identity.id) or "Someone"

    if post.author_id != identity.id:
        notify_user(
            post.author_id,
            NotificationType.COMMUNITY,
            "New comment",
            f'{commenter} commented on "{_preview(post.title)}"',
            f"/app/comunidad/{post_id}",
        )

    with get_db_session() as session:
        return _single_comment(session, comment_id, identity)


def update_comment(identity: Identity, comment_id: str, content: str) -> Comment:
    if not (content or "").strip():
        raise ValidationError("content is required")
    with get_db_session() as session:
        row = _comment_row(session, comment_id)
        if row.author_id != identity.id:
            raise PermissionError("You can only edit your own comments")
        session.execute(update(comments).where(comments.c.id == comment_id).values(content=content))
    with get_db_session() as session:
        return _single_comment(session, comment_id, identity)


def delete_comment(identity: Identity, comment_id: str) -> Dict[str, int]:
    """Removes the comment with its replies and their likes."""
    with get_db_session() as session:
        row = _comment_row(session, comment_id)
        authorize(identity, CONTENT_ROLES, resource_owner_id=row.author_id)
        ids = descendant_ids(session, comments, comment_id)
        session.execute(update(comments).where(comments.c.id.in_(ids)).values(parent_id=None))
        removed = delete_in_order(
            session,
            [
                ("comment_likes", delete(likes).where(likes.c.comment_id.in_(ids))),
                ("comments", delete(comments).where(comments.c.id.in_(ids))),
            ],
        )
    logger.info(f"comment.deleted comment_id={comment_id} by={identity.id} removed={removed}")
    return removed


def toggle_post_like(identity: Identity, post_id: str) -> LikeToggle:
    with get_db_session() as session:
        post = _post_row(session, post_id)

    result = toggle_pair(likes, {"user_id": identity.id, "post_id": post_id})

    with get_db_session() as session:
        count = _count_by(session, likes.c.post_id, [post_id]).get(post_id, 0)
        liker = get_display_name(session, identity.id) if result.created else None

    if result.created and post.author_id != identity.id:
        notify_user(
            post.author_id,
            NotificationType.COMMUNITY,
            "New like",
            f'{liker or "Someone"} liked "{_preview(post.title)}"',
            f"/app/comunidad/{post_id}",
        )
    return LikeToggle(liked=result.active, like_count=count)


def toggle_comment_like(identity: Identity, comment_id: str) -> LikeToggle:
    with get_db_session() as session:
        _comment_row(session, comment_id)
    result = toggle_pair(likes, {"user_id": identity.id, "comment_id": comment_id})
    with get_db_session() as session:
        count = _count_by(session, likes.c.comment_id, [comment_id]).get(comment_id, 0)
    return LikeToggle(liked=result.active, like_count=count)
