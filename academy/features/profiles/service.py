"""Profile reads and upserts, including onboarding."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import insert, select, update

from academy.core.database import get_db_session, new_id, profiles
from academy.core.errors import ValidationError
from academy.features.users.mapping import build_profile
from academy.models.user import Profile

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "display_name", "bio", "avatar", "objective", "level")


def get_profile(user_id: str) -> Optional[Profile]:
    with get_db_session() as session:
        row = session.execute(select(profiles).where(profiles.c.user_id == user_id)).first()
    return build_profile(row) if row else None


def _default_display_name(values: Dict[str, Any]) -> Optional[str]:
    full = " ".join(part for part in (values.get("first_name"), values.get("last_name")) if part)
    return full.strip() or None


def upsert_profile(user_id: str, changes: Dict[str, Any]) -> Profile:
    """Create the profile on first write; display name defaults to "first last"."""
    values = {key: changes[key] for key in PROFILE_FIELDS if key in changes}
    if "onboarding_done" in changes:
        values["onboarding_done"] = bool(changes["onboarding_done"])

    with get_db_session() as session:
        existing = session.execute(select(profiles).where(profiles.c.user_id == user_id)).first()
        if existing:
            merged = {key: getattr(existing, key) for key in PROFILE_FIELDS}
            merged.update(values)
            if not merged.get("display_name"):
                values["display_name"] = _default_display_name(merged)
            if values:
                session.execute(update(profiles).where(profiles.c.user_id == user_id).values(**values))
        else:
            if not values.get("display_name"):
                values["display_name"] = _default_display_name(values)
            session.execute(insert(profiles).values(id=new_id(), user_id=user_id, **values))

    logger.info(f"profile.upserted user_id={user_id}")
    return get_profile(user_id)


def complete_onboarding(user_id: str, changes: Dict[str, Any]) -> Profile:
    first_name = (changes.get("first_name") or "").strip()
    if not first_name:
        raise ValidationError("first_name is required")
    payload = dict(changes)
    payload["first_name"] = first_name
    payload["onboarding_done"] = True
    return upsert_profile(user_id, payload)
