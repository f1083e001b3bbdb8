"""Tests for the community forum."""
import pytest
from sqlalchemy import insert

from academy.core.authz import Role
from academy.core.database import community_categories, get_db_session, new_id
from academy.core.errors import PermissionError, ValidationError
from academy.features.community.service import (
    create_comment,
    create_post,
    delete_comment,
    delete_post,
    get_post,
    list_categories,
    list_comments,
    list_posts,
    toggle_comment_like,
    toggle_post_like,
    update_comment,
    update_post,
)
from academy.features.notifications.service import list_notifications


@pytest.fixture
def category_id():
    category_id = new_id()
    with get_db_session() as session:
        session.execute(insert(community_categories).values(id=category_id, name="General", slug="general", position=0))
    return category_id


def test_like_then_unlike_notifies_once(make_user, category_id):
    author, fan = make_user(), make_user()
    post = create_post(author, "My first win", "Closed a client", category_id, "WIN")

    assert toggle_post_like(fan, post.id).liked is True
    unliked = toggle_post_like(fan, post.id)
    assert unliked.liked is False
    assert unliked.like_count == 0
    toggle_post_like(fan, post.id)

    inbox = list_notifications(author.id)
    assert inbox.unread_count == 2
    assert [n.title for n in inbox.notifications].count("New like") == 2


def test_liking_own_post_does_not_notify(make_user, category_id):
    author = make_user()
    post = create_post(author, "Hello", "World", category_id)
    toggle_post_like(author, post.id)
    assert list_notifications(author.id).unread_count == 0
    assert get_post(author, post.id).liked_by_me is True


def test_students_cannot_post_announcements(make_user, category_id):
    with pytest.raises(PermissionError):
        create_post(make_user(), "Big news", "Everyone read", category_id, "ANNOUNCEMENT")


def test_announcement_reaches_everyone_but_author(make_user, category_id):
    mentor = make_user(role=Role.MENTOR)
    students = [make_user() for _ in range(3)]

    create_post(mentor, "A very long announcement title that needs trimming", "Body", category_id, "ANNOUNCEMENT")

    for student in students:
        inbox = list_notifications(student.id)
        assert inbox.unread_count == 1
        assert inbox.notifications[0].message.endswith("...")
    assert list_notifications(mentor.id).unread_count == 0


def test_unknown_post_type(make_user, category_id):
    with pytest.raises(ValidationError):
        create_post(make_user(), "Hi", "There", category_id, "SPAM")


def test_pinned_posts_come_first(make_user, category_id):
    author = make_user()
    mentor = make_user(role=Role.MENTOR)
    older = create_post(author, "Older", "a", category_id)
    create_post(author, "Newer", "b", category_id)

    update_post(mentor, older.id, {"pinned": True})

    assert [p.title for p in list_posts(author, "general")] == ["Older", "Newer"]
    assert list_categories()[0].post_count == 2


def test_author_cannot_pin_or_lock(make_user, category_id):
    author = make_user()
    post = create_post(author, "Hi", "There", category_id)

    assert update_post(author, post.id, {"title": "Edited"}).title == "Edited"
    with pytest.raises(PermissionError):
        update_post(author, post.id, {"locked": True})
    with pytest.raises(PermissionError):
        update_post(make_user(), post.id, {"title": "Hijack"})


def test_locked_post_rejects_comments(make_user, category_id):
    author = make_user()
    admin = make_user(role=Role.ADMIN)
    post = create_post(author, "Hi", "There", category_id)
    update_post(admin, post.id, {"locked": True})

    with pytest.raises(PermissionError):
        create_comment(author, post.id, "Still here?")


def test_comment_tree_and_notifications(make_user, category_id):
    author, other = make_user(), make_user()
    post = create_post(author, "Question", "How?", category_id, "QUESTION")

    root = create_comment(other, post.id, "Like this")
    create_comment(author, post.id, "Thanks", parent_id=root.id)

    tree = list_comments(author, post.id)
    assert [c.id for c in tree] == [root.id]
    assert [r.content for r in tree[0].replies] == ["Thanks"]
    assert get_post(author, post.id).comment_count == 2
    assert list_notifications(author.id).unread_count == 1


def test_comment_parent_must_belong_to_post(make_user, category_id):
    user = make_user()
    first = create_post(user, "One", "1", category_id)
    second = create_post(user, "Two", "2", category_id)
    root = create_comment(user, first.id, "On one")

    with pytest.raises(ValidationError):
        create_comment(user, second.id, "Wrong post", parent_id=root.id)


def test_comment_edit_and_delete_permissions(make_user, category_id):
    author, other = make_user(), make_user()
    mentor = make_user(role=Role.MENTOR)
    post = create_post(author, "Hi", "There", category_id)
    comment = create_comment(other, post.id, "Original")
    create_comment(author, post.id, "Reply", parent_id=comment.id)
    toggle_comment_like(author, comment.id)

    with pytest.raises(PermissionError):
        update_comment(mentor, comment.id, "Moderated")
    assert update_comment(other, comment.id, "Edited").content == "Edited"

    with pytest.raises(PermissionError):
        delete_comment(author, comment.id)
    assert delete_comment(mentor, comment.id) == {"comment_likes": 1, "comments": 2}


def test_delete_post_cascades(make_user, category_id):
    author, other = make_user(), make_user()
    post = create_post(author, "Hi", "There", category_id)
    root = create_comment(other, post.id, "c1")
    create_comment(author, post.id, "c2", parent_id=root.id)
    toggle_post_like(other, post.id)
    toggle_comment_like(author, root.id)

    removed = delete_post(author, post.id)

    assert removed == {"comment_likes": 1, "comments": 2, "post_likes": 1, "posts": 1}
    assert list_posts(author) == []


def test_community_api(client, make_user, auth_headers, category_id):
    student = make_user()
    headers = auth_headers(student)

    resp = client.post(
        "/api/community/posts",
        headers=headers,
        json={"title": "News", "content": "Body", "category_id": category_id, "type": "ANNOUNCEMENT"},
    )
    assert resp.status_code == 403

    resp = client.post(
        "/api/community/posts",
        headers=headers,
        json={"title": "Hello", "content": "Body", "category_id": category_id},
    )
    assert resp.status_code == 201
    post_id = resp.json()["id"]

    resp = client.get("/api/community/posts", headers=headers, params={"category": "general"})
    assert [p["id"] for p in resp.json()] == [post_id]
