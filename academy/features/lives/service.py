"""
Live sessions.

Members see published lives (upcoming or past); mentors and admins manage
them. Publishing a live broadcasts a LIVE notification to every active
user exactly once, on the transition to published.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, insert, select, update

from academy.core.database import get_db_session, live_events, new_id, utcnow
from academy.core.errors import NotFoundError, ValidationError
from academy.core.repository import reject_nulls
from academy.core.session import Identity
from academy.features.email.templates import send_live_reminder_email
from academy.features.notifications.service import notify_all_users
from academy.features.users.service import active_recipients, load_user_summaries
from academy.models.live import LiveEvent, LiveType
from academy.models.notification import NotificationType

logger = logging.getLogger(__name__)

LIVE_FIELDS = ("title", "description", "type", "scheduled_at", "duration", "meeting_url", "replay_url", "thumbnail", "published")
LIVE_FILTERS = ("upcoming", "past")


def _build(row, mentor=None) -> LiveEvent:
    return LiveEvent(
        id=row.id,
        title=row.title,
        description=row.description,
        type=row.type,
        mentor=mentor,
        scheduled_at=row.scheduled_at,
        duration=row.duration,
        meeting_url=row.meeting_url,
        replay_url=row.replay_url,
        thumbnail=row.thumbnail,
        published=bool(row.published),
    )


def _validate(values: Dict[str, Any]) -> None:
    if "title" in values and not (values["title"] or "").strip():
        raise ValidationError("title is required")
    if "type" in values:
        try:
            values["type"] = LiveType(values["type"]).value
        except ValueError:
            raise ValidationError(f"type must be one of {', '.join(t.value for t in LiveType)}")
    if "duration" in values and (values["duration"] is None or values["duration"] <= 0):
        raise ValidationError("duration must be a positive number of minutes")
    if "scheduled_at" in values and not isinstance(values["scheduled_at"], datetime):
        raise ValidationError("scheduled_at must be a datetime")


def list_lives(when: Optional[str] = None, include_unpublished: bool = False) -> List[LiveEvent]:
    """Upcoming lives soonest first; past lives most recent first."""
    if when is not None and when not in LIVE_FILTERS:
        raise ValidationError(f"filter must be one of {', '.join(LIVE_FILTERS)}")
    query = select(live_events)
    if not include_unpublished:
        query = query.where(live_events.c.published.is_(True))
    now = utcnow()
    if when == "upcoming":
        query = query.where(live_events.c.scheduled_at >= now).order_by(live_events.c.scheduled_at.asc())
    elif when == "past":
        query = query.where(live_events.c.scheduled_at < now).order_by(live_events.c.scheduled_at.desc())
    else:
        query = query.order_by(live_events.c.scheduled_at.asc())

    with get_db_session() as session:
        rows = session.execute(query).all()
        mentors = load_user_summaries(session, [row.mentor_id for row in rows])
    return [_build(row, mentors.get(row.mentor_id)) for row in rows]


def get_live(live_id: str) -> LiveEvent:
    with get_db_session() as session:
        row = session.execute(select(live_events).where(live_events.c.id == live_id)).first()
        if not row:
            raise NotFoundError("Live not found")
        mentors = load_user_summaries(session, [row.mentor_id])
    return _build(row, mentors.get(row.mentor_id))


def _announce(live: LiveEvent, exclude_user_id: Optional[str]) -> int:
    when = live.scheduled_at.strftime("%Y-%m-%d %H:%M UTC")
    return notify_all_users(
        NotificationType.LIVE,
        "New live scheduled",
        f'"{live.title}" on {when}',
        "/app/lives",
        exclude_user_id=exclude_user_id,
    )


def create_live(identity: Identity, data: Dict[str, Any]) -> LiveEvent:
    values = {key: data[key] for key in LIVE_FIELDS if data.get(key) is not None}
    if not values.get("title") or values.get("scheduled_at") is None:
        raise ValidationError("title and scheduled_at are required")
    _validate(values)
    live_id = new_id()
    with get_db_session() as session:
        session.execute(
            insert(live_events).values(id=live_id, mentor_id=data.get("mentor_id") or identity.id, **values)
        )
    logger.info(f"live.created live_id={live_id} published={bool(values.get('published'))}")

    live = get_live(live_id)
    if live.published:
        _announce(live, identity.id)
    return live


def update_live(identity: Identity, live_id: str, changes: Dict[str, Any]) -> LiveEvent:
    values = {key: changes[key] for key in LIVE_FIELDS if key in changes}
    if changes.get("mentor_id") is not None:
        values["mentor_id"] = changes["mentor_id"]
    reject_nulls(live_events, values)
    _validate(values)
    with get_db_session() as session:
        row = session.execute(select(live_events.c.published).where(live_events.c.id == live_id)).first()
        if not row:
            raise NotFoundError("Live not found")
        was_published = bool(row.published)
        if values:
            session.execute(update(live_events).where(live_events.c.id == live_id).values(**values))

    live = get_live(live_id)
    if live.published and not was_published:
        _announce(live, identity.id)
    return live


def delete_live(live_id: str) -> None:
    with get_db_session() as session:
        result = session.execute(delete(live_events).where(live_events.c.id == live_id))
        if result.rowcount == 0:
            raise NotFoundError("Live not found")
    logger.info(f"live.deleted live_id={live_id}")


def send_live_reminders(live_id: str) -> int:
    """Email every active user about a published live; returns emails sent."""
    live = get_live(live_id)
    if not live.published:
        raise ValidationError("Only published lives can be announced")
    if not live.meeting_url:
        raise ValidationError("This live has no meeting URL yet")

    when = live.scheduled_at.strftime("%Y-%m-%d %H:%M UTC")
    sent = 0
    for email, name in active_recipients():
        try:
            send_live_reminder_email(email, name, live.title, when, live.meeting_url)
            sent += 1
        except Exception:
            logger.warning("live.reminder_failed", exc_info=True, extra={"live_id": live_id})
    logger.info(f"live.reminders_sent live_id={live_id} sent={sent}")
    return sent
