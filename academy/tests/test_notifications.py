"""Tests for notification fan-out and the inbox."""
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from academy.core.database import get_db_session, notifications
from academy.core.errors import NotFoundError
from academy.features.notifications.service import (
    list_notifications,
    mark_all_read,
    mark_read,
    notify_all_users,
    notify_user,
    notify_users,
)
from academy.models.notification import NotificationType


def _rows_for(user_id=None) -> int:
    query = select(func.count()).select_from(notifications)
    if user_id:
        query = query.where(notifications.c.user_id == user_id)
    with get_db_session() as session:
        return session.execute(query).scalar()


def test_broadcast_skips_the_author(make_user):
    users = [make_user() for _ in range(100)]
    author = users[0]

    created = notify_all_users(NotificationType.LIVE, "New live", "Starts soon", link="/app/lives", exclude_user_id=author.id)

    assert created == 99
    assert _rows_for() == 99
    assert _rows_for(author.id) == 0


def test_broadcast_skips_inactive_users(make_user):
    make_user()
    make_user(active=False)
    assert notify_all_users(NotificationType.SYSTEM, "Hi", "Hello") == 1


def test_notify_users_dedupes_recipients(make_user):
    a, b = make_user(), make_user()
    created = notify_users([a.id, b.id, a.id, None], NotificationType.COURSE, "Update", "New lesson")
    assert created == 2
    assert _rows_for(a.id) == 1


def test_notify_users_with_no_recipients():
    assert notify_users([], NotificationType.COURSE, "Update", "Nothing") == 0


def test_fanout_failure_returns_zero(make_user):
    user = make_user()
    with patch("academy.features.notifications.service.get_db_session", side_effect=RuntimeError("db down")):
        assert notify_users([user.id], NotificationType.SYSTEM, "t", "m") == 0
        assert notify_user(user.id, NotificationType.SYSTEM, "t", "m") is None


def test_inbox_lists_newest_first_with_unread_count(make_user):
    user = make_user()
    for i in range(3):
        notify_user(user.id, NotificationType.SYSTEM, f"title {i}", "m")

    inbox = list_notifications(user.id, limit=2)
    assert len(inbox.notifications) == 2
    assert inbox.unread_count == 3


def test_mark_read_and_mark_all(make_user):
    user = make_user()
    first = notify_user(user.id, NotificationType.SYSTEM, "one", "m")
    notify_user(user.id, NotificationType.SYSTEM, "two", "m")

    mark_read(user.id, first)
    assert list_notifications(user.id).unread_count == 1

    assert mark_all_read(user.id) == 1
    assert list_notifications(user.id).unread_count == 0


def test_mark_read_of_someone_elses_notification_is_404(make_user):
    owner, other = make_user(), make_user()
    notification_id = notify_user(owner.id, NotificationType.SYSTEM, "private", "m")

    with pytest.raises(NotFoundError):
        mark_read(other.id, notification_id)


def test_notifications_api(client, make_user, auth_headers):
    user = make_user()
    notification_id = notify_user(user.id, NotificationType.BILLING, "Paid", "Thanks")
    headers = auth_headers(user)

    resp = client.get("/api/user/notifications", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["unread_count"] == 1

    resp = client.patch("/api/user/notifications", headers=headers, json={"notification_id": notification_id})
    assert resp.status_code == 200

    resp = client.patch("/api/user/notifications", headers=headers, json={})
    assert resp.status_code == 400
