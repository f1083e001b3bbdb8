"""
User domain service.
- register_user / authenticate (credentials, bcrypt)
- get_account / list_users / update_user (admin)
- identity_for: Account -> session Identity
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import bcrypt
from sqlalchemy import insert, or_, select, update
from sqlalchemy.exc import IntegrityError

from academy.core.authz import Role
from academy.core.database import get_db_session, new_id, profiles, subscriptions, users
from academy.core.errors import ConflictError, NotFoundError, UnauthenticatedError, ValidationError
from academy.core.session import Identity
from academy.features.email.templates import send_welcome_email
from academy.features.users.mapping import build_account, build_user_summary, display_name_for
from academy.models.user import Account, UserSummary

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    return email.strip().lower()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _account_query():
    return (
        select(users, profiles, subscriptions.c.status.label("subscription_status"))
        .select_from(users)
        .outerjoin(profiles, profiles.c.user_id == users.c.id)
        .outerjoin(subscriptions, subscriptions.c.user_id == users.c.id)
    )


def _row_to_account(row) -> Account:
    mapping = row._mapping
    user_row = _Columns(mapping, users)
    profile_row = _Columns(mapping, profiles) if mapping[profiles.c.user_id] is not None else None
    return build_account(user_row, profile_row, mapping["subscription_status"])


class _Columns:
    """Attribute view over the columns of one table inside a joined row."""

    def __init__(self, mapping, table):
        self._mapping = mapping
        self._table = table

    def __getattr__(self, name):
        return self._mapping[self._table.c[name]]


def get_account(user_id: str) -> Account:
    with get_db_session() as session:
        row = session.execute(_account_query().where(users.c.id == user_id)).first()
    if not row:
        raise NotFoundError("User not found")
    return _row_to_account(row)


def identity_for(account: Account) -> Identity:
    return Identity(id=account.id, email=account.email, role=Role(account.role))


def register_user(
    email: str,
    password: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> Account:
    email = normalize_email(email)
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    user_id = new_id()
    try:
        with get_db_session() as session:
            session.execute(
                insert(users).values(
                    id=user_id,
                    email=email,
                    password_hash=hash_password(password),
                    role=Role.STUDENT.value,
                    active=True,
                )
            )
            session.execute(
                insert(profiles).values(
                    id=new_id(),
                    user_id=user_id,
                    first_name=first_name,
                    last_name=last_name,
                )
            )
    except IntegrityError:
        raise ConflictError("An account with this email already exists")

    account = get_account(user_id)
    logger.info(f"user.registered user_id={user_id}")

    try:
        send_welcome_email(account.email, account.display_name)
    except Exception:
        logger.warning("user.welcome_email_failed", exc_info=True, extra={"user_id": user_id})

    return account


def authenticate(email: str, password: str) -> Account:
    """Check credentials; any mismatch is the same 401."""
    with get_db_session() as session:
        row = session.execute(
            select(users.c.id, users.c.password_hash, users.c.active).where(users.c.email == normalize_email(email))
        ).first()
    if not row or not row.active or not verify_password(password, row.password_hash):
        raise UnauthenticatedError("Invalid email or password")
    return get_account(row.id)


def list_users(
    search: Optional[str] = None,
    role: Optional[Role] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Account]:
    query = _account_query()
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.where(
            or_(
                users.c.email.ilike(pattern),
                profiles.c.first_name.ilike(pattern),
                profiles.c.last_name.ilike(pattern),
                profiles.c.display_name.ilike(pattern),
            )
        )
    if role is not None:
        query = query.where(users.c.role == role.value)
    query = query.order_by(users.c.created_at.desc()).limit(limit).offset(offset)

    with get_db_session() as session:
        rows = session.execute(query).all()
    return [_row_to_account(row) for row in rows]


def update_user(actor: Identity, user_id: str, role: Optional[Role] = None, active: Optional[bool] = None) -> Account:
    if role is not None and user_id == actor.id:
        raise ValidationError("You cannot change your own role")

    values = {}
    if role is not None:
        values["role"] = role.value
    if active is not None:
        values["active"] = active

    with get_db_session() as session:
        exists = session.execute(select(users.c.id).where(users.c.id == user_id)).first()
        if not exists:
            raise NotFoundError("User not found")
        if values:
            session.execute(update(users).where(users.c.id == user_id).values(**values))

    logger.info(f"user.updated user_id={user_id} by={actor.id} fields={sorted(values)}")
    return get_account(user_id)


def active_user_ids(exclude_user_id: Optional[str] = None) -> List[str]:
    query = select(users.c.id).where(users.c.active.is_(True))
    if exclude_user_id:
        query = query.where(users.c.id != exclude_user_id)
    with get_db_session() as session:
        return list(session.execute(query).scalars())


def _summary_query():
    return (
        select(
            users.c.id,
            users.c.email,
            users.c.role,
            profiles.c.display_name,
            profiles.c.first_name,
            profiles.c.last_name,
            profiles.c.avatar,
        )
        .select_from(users)
        .outerjoin(profiles, profiles.c.user_id == users.c.id)
    )


def load_user_summaries(session, user_ids: Iterable[str]) -> Dict[str, UserSummary]:
    ids = {uid for uid in user_ids if uid}
    if not ids:
        return {}
    rows = session.execute(_summary_query().where(users.c.id.in_(ids))).all()
    return {row.id: build_user_summary(row) for row in rows}


def get_display_name(session, user_id: str) -> Optional[str]:
    row = session.execute(_summary_query().where(users.c.id == user_id)).first()
    if not row:
        return None
    return display_name_for(row.email, row)


def active_recipients() -> List[Tuple[str, str]]:
    """(email, display name) for every active user."""
    with get_db_session() as session:
        rows = session.execute(_summary_query().where(users.c.active.is_(True))).all()
    return [(row.email, display_name_for(row.email, row)) for row in rows]
