from typing import Any

from academy.models.notification import Notification


def build_notification(row: Any) -> Notification:
    return Notification(
        id=row.id,
        type=row.type,
        title=row.title,
        message=row.message,
        link=row.link,
        read=bool(row.read),
        created_at=row.created_at,
    )
