"""Tests for the per-lesson discussion."""
import pytest

from academy.core.authz import Role
from academy.core.errors import NotFoundError, PermissionError, ValidationError
from academy.features.discussion.service import (
    MAX_ATTACHMENTS,
    create_lesson_comment,
    delete_lesson_comment,
    list_lesson_comments,
    toggle_lesson_comment_like,
    toggle_pin,
    update_lesson_comment,
)
from academy.features.notifications.service import list_notifications


@pytest.fixture
def lesson_id(seed_course):
    return seed_course(lessons_count=1)["lesson_ids"][0]


def test_threads_nest_replies(make_user, lesson_id):
    alice, bob = make_user(), make_user()
    root = create_lesson_comment(alice, lesson_id, "How do I start?")
    create_lesson_comment(bob, lesson_id, "Watch lesson 1 first", parent_id=root.id)

    threads = list_lesson_comments(alice, lesson_id)

    assert [c.id for c in threads] == [root.id]
    assert [r.content for r in threads[0].replies] == ["Watch lesson 1 first"]


def test_reply_notifies_parent_author_once(make_user, lesson_id):
    alice, bob = make_user(), make_user()
    root = create_lesson_comment(alice, lesson_id, "Question")

    create_lesson_comment(alice, lesson_id, "Self reply", parent_id=root.id)
    assert list_notifications(alice.id).unread_count == 0

    create_lesson_comment(bob, lesson_id, "Answer", parent_id=root.id)
    inbox = list_notifications(alice.id)
    assert inbox.unread_count == 1
    assert inbox.notifications[0].type.value == "COURSE"


def test_reply_parent_must_be_on_same_lesson(make_user, seed_course):
    course = seed_course(lessons_count=2)
    user = make_user()
    root = create_lesson_comment(user, course["lesson_ids"][0], "First lesson")

    with pytest.raises(ValidationError):
        create_lesson_comment(user, course["lesson_ids"][1], "Wrong lesson", parent_id=root.id)


def test_attachment_rules(make_user, lesson_id):
    user = make_user()
    too_many = [{"url": f"https://cdn.example.com/{i}.pdf", "name": f"{i}.pdf"} for i in range(MAX_ATTACHMENTS + 1)]
    with pytest.raises(ValidationError):
        create_lesson_comment(user, lesson_id, "files", attachments=too_many)
    with pytest.raises(ValidationError):
        create_lesson_comment(user, lesson_id, "files", attachments=[{"url": "https://cdn.example.com/a.pdf"}])

    comment = create_lesson_comment(user, lesson_id, "files", attachments=[{"url": "https://cdn.example.com/a.pdf", "name": "a.pdf"}])
    assert comment.attachments[0].name == "a.pdf"


def test_only_author_edits(make_user, lesson_id):
    alice = make_user()
    admin = make_user(role=Role.ADMIN)
    comment = create_lesson_comment(alice, lesson_id, "Draft")

    with pytest.raises(PermissionError):
        update_lesson_comment(admin, comment.id, "Edited by admin")
    assert update_lesson_comment(alice, comment.id, "Edited").content == "Edited"


def test_delete_by_staff_removes_thread(make_user, lesson_id):
    alice, bob = make_user(), make_user()
    mentor = make_user(role=Role.MENTOR)
    root = create_lesson_comment(alice, lesson_id, "Root")
    create_lesson_comment(bob, lesson_id, "Reply", parent_id=root.id)
    toggle_lesson_comment_like(bob, root.id)

    with pytest.raises(PermissionError):
        delete_lesson_comment(bob, root.id)

    removed = delete_lesson_comment(mentor, root.id)
    assert removed == {"comment_likes": 1, "comments": 2}
    assert list_lesson_comments(alice, lesson_id) == []


def test_like_toggle(make_user, lesson_id):
    alice, bob = make_user(), make_user()
    comment = create_lesson_comment(alice, lesson_id, "Nice")

    liked = toggle_lesson_comment_like(bob, comment.id)
    assert liked.liked is True
    assert liked.like_count == 1
    assert list_lesson_comments(bob, lesson_id)[0].liked_by_me is True

    unliked = toggle_lesson_comment_like(bob, comment.id)
    assert unliked.liked is False
    assert unliked.like_count == 0


def test_pin_is_staff_only_and_sorts_first(make_user, lesson_id):
    student = make_user()
    mentor = make_user(role=Role.MENTOR)
    older = create_lesson_comment(student, lesson_id, "Older")
    create_lesson_comment(student, lesson_id, "Newer")

    with pytest.raises(PermissionError):
        toggle_pin(student, older.id)

    assert toggle_pin(mentor, older.id).pinned is True
    assert list_lesson_comments(student, lesson_id)[0].id == older.id


def test_missing_lesson(make_user):
    with pytest.raises(NotFoundError):
        list_lesson_comments(make_user(), "missing")


def test_lesson_comments_api(client, make_user, auth_headers, lesson_id):
    user = make_user()
    headers = auth_headers(user)

    assert client.get(f"/api/lessons/{lesson_id}/comments").status_code == 401

    resp = client.post(f"/api/lessons/{lesson_id}/comments", headers=headers, json={"content": "Hello"})
    assert resp.status_code == 201
    comment_id = resp.json()["id"]

    resp = client.post(f"/api/lessons/comments/{comment_id}/pin", headers=headers)
    assert resp.status_code == 403

    resp = client.get(f"/api/lessons/{lesson_id}/comments", headers=headers)
    assert [c["content"] for c in resp.json()] == ["Hello"]
