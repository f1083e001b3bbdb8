"""Response builders for accounts, profiles and author summaries."""

from typing import Any, Optional

from academy.models.user import Account, Profile, UserSummary


def display_name_for(email: str, profile_row: Optional[Any] = None) -> str:
    """Profile display name, else "first last", else the email local part."""
    if profile_row is not None:
        if profile_row.display_name and profile_row.display_name.strip():
            return profile_row.display_name.strip()
        full = " ".join(part for part in (profile_row.first_name, profile_row.last_name) if part)
        if full.strip():
            return full.strip()
    return email.split("@", 1)[0]


def build_profile(row: Any) -> Profile:
    return Profile(
        user_id=row.user_id,
        first_name=row.first_name,
        last_name=row.last_name,
        display_name=row.display_name,
        bio=row.bio,
        avatar=row.avatar,
        objective=row.objective,
        level=row.level,
        onboarding_done=bool(row.onboarding_done),
    )


def build_account(user_row: Any, profile_row: Optional[Any] = None, subscription_status: Optional[str] = None) -> Account:
    return Account(
        id=user_row.id,
        email=user_row.email,
        role=user_row.role,
        active=bool(user_row.active),
        created_at=user_row.created_at,
        display_name=display_name_for(user_row.email, profile_row),
        profile=build_profile(profile_row) if profile_row is not None else None,
        subscription_status=subscription_status,
    )


def build_user_summary(row: Any) -> UserSummary:
    """Build from a row carrying user columns plus the joined profile columns.

    Expected keys: id, email, role, display_name, first_name, last_name, avatar.
    """
    return UserSummary(
        id=row.id,
        display_name=display_name_for(row.email, row),
        avatar=row.avatar,
        role=row.role,
    )
