"""
Notification fan-out and inbox.

Writers (notify_user, notify_users, notify_all_users) are best-effort side
effects: they run after the triggering mutation has committed, in their own
transaction, and never raise. A failure is logged with its traceback and
reported as None / 0.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy import func, insert, select, update

from academy.core.database import get_db_session, new_id, notifications, utcnow
from academy.core.errors import NotFoundError
from academy.features.notifications.mapping import build_notification
from academy.features.users.service import active_user_ids
from academy.models.notification import NotificationList, NotificationType

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


def notify_user(
    user_id: str,
    type: NotificationType,
    title: str,
    message: str,
    link: Optional[str] = None,
) -> Optional[str]:
    """Create one notification; returns its id, or None on failure."""
    try:
        notification_id = new_id()
        with get_db_session() as session:
            session.execute(
                insert(notifications).values(
                    id=notification_id,
                    user_id=user_id,
                    type=NotificationType(type).value,
                    title=title,
                    message=message,
                    link=link,
                    read=False,
                )
            )
        return notification_id
    except Exception:
        logger.error("notification.create_failed", exc_info=True, extra={"user_id": user_id})
        return None


def _dedupe(user_ids: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for user_id in user_ids:
        if user_id and user_id not in seen:
            seen.add(user_id)
            ordered.append(user_id)
    return ordered


def notify_users(
    user_ids: Iterable[str],
    type: NotificationType,
    title: str,
    message: str,
    link: Optional[str] = None,
) -> int:
    """One row per distinct recipient; returns the number created."""
    try:
        recipients = _dedupe(user_ids)
        if not recipients:
            return 0
        kind = NotificationType(type).value
        now = utcnow()
        rows = [
            {
                "id": new_id(),
                "user_id": user_id,
                "type": kind,
                "title": title,
                "message": message,
                "link": link,
                "read": False,
                "created_at": now,
            }
            for user_id in recipients
        ]
        with get_db_session() as session:
            session.execute(insert(notifications), rows)
        logger.info(f"notification.fanout type={kind} recipients={len(rows)}")
        return len(rows)
    except Exception:
        logger.error("notification.fanout_failed", exc_info=True)
        return 0


def notify_all_users(
    type: NotificationType,
    title: str,
    message: str,
    link: Optional[str] = None,
    exclude_user_id: Optional[str] = None,
) -> int:
    """Broadcast to every active user except `exclude_user_id`."""
    try:
        recipients = active_user_ids(exclude_user_id=exclude_user_id)
    except Exception:
        logger.error("notification.broadcast_failed", exc_info=True)
        return 0
    return notify_users(recipients, type, title, message, link)


def list_notifications(user_id: str, limit: int = DEFAULT_LIMIT) -> NotificationList:
    with get_db_session() as session:
        rows = session.execute(
            select(notifications)
            .where(notifications.c.user_id == user_id)
            .order_by(notifications.c.created_at.desc())
            .limit(limit)
        ).all()
        unread = session.execute(
            select(func.count())
            .select_from(notifications)
            .where(notifications.c.user_id == user_id, notifications.c.read.is_(False))
        ).scalar_one()
    return NotificationList(
        notifications=[build_notification(row) for row in rows],
        unread_count=unread,
    )


def mark_read(user_id: str, notification_id: str) -> None:
    """Mark one of the caller's notifications read; someone else's is a 404."""
    with get_db_session() as session:
        result = session.execute(
            update(notifications)
            .where(notifications.c.id == notification_id, notifications.c.user_id == user_id)
            .values(read=True)
        )
        if result.rowcount == 0:
            raise NotFoundError("Notification not found")


def mark_all_read(user_id: str) -> int:
    with get_db_session() as session:
        result = session.execute(
            update(notifications)
            .where(notifications.c.user_id == user_id, notifications.c.read.is_(False))
            .values(read=True)
        )
        return result.rowcount
