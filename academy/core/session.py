"""
Session resolution.

Turns the opaque session token carried by a request into an Identity.
Resolution fails open: any problem with the token yields None and the
authorization layer decides what an anonymous caller may do.

The token only proves who the caller is. Role and active status are read
from the users table once per request, so a demotion or deactivation
takes effect on the next request rather than when the token expires.
"""
import logging
from datetime import timedelta
from typing import Callable, Optional

import jwt
from fastapi import Depends, Request
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select

from academy.core.authz import Role, authorize
from academy.core.config import settings
from academy.core.database import get_db_session, users, utcnow

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: Role


def issue_session_token(identity: Identity, ttl_minutes: Optional[int] = None) -> str:
    now = utcnow()
    lifetime = timedelta(minutes=ttl_minutes if ttl_minutes is not None else settings.SESSION_TTL_MINUTES)
    claims = {
        "sub": identity.id,
        "email": identity.email,
        "role": identity.role.value,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(claims, settings.SESSION_SECRET, algorithm=ALGORITHM)


def resolve_identity(token: Optional[str]) -> Optional[Identity]:
    """Decode a session token; never raises."""
    if not token:
        return None
    try:
        claims = jwt.decode(token, settings.SESSION_SECRET, algorithms=[ALGORITHM])
        return Identity(id=claims["sub"], email=claims["email"], role=Role(claims["role"]))
    except jwt.ExpiredSignatureError:
        logger.info("session.expired")
        return None
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        logger.info(f"session.invalid: {type(e).__name__}")
        return None


def _token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def refresh_identity(identity: Optional[Identity]) -> Optional[Identity]:
    """Re-read role and status for a decoded identity; None for missing or inactive users."""
    if identity is None:
        return None
    with get_db_session() as session:
        row = session.execute(
            select(users.c.email, users.c.role, users.c.active).where(users.c.id == identity.id)
        ).first()
    if row is None or not row.active:
        logger.info(f"session.revoked user_id={identity.id}")
        return None
    return Identity(id=identity.id, email=row.email, role=Role(row.role))


def get_identity(request: Request) -> Optional[Identity]:
    """FastAPI dependency: nullable identity for the current request."""
    return refresh_identity(resolve_identity(_token_from_request(request)))


def require_identity(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
    """FastAPI dependency: identity or 401."""
    return authorize(identity, frozenset(Role))


def require_roles(*roles: Role) -> Callable[..., Identity]:
    """Dependency factory: identity holding one of `roles` (ADMIN always passes)."""
    allowed = frozenset(roles)

    def _dependency(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
        return authorize(identity, allowed)

    return _dependency
