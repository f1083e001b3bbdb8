"""
Role-based authorization.

`is_allowed` is a pure predicate over an already resolved identity; `authorize`
turns a negative answer into the right error: no identity is 401, an
identity without the needed role (or ownership) is 403.
"""
from enum import Enum
from typing import Iterable, Optional, TYPE_CHECKING

from academy.core.errors import PermissionError, UnauthenticatedError

if TYPE_CHECKING:
    from academy.core.session import Identity


class Role(str, Enum):
    GUEST = "GUEST"
    STUDENT = "STUDENT"
    MENTOR = "MENTOR"
    ADMIN = "ADMIN"


# Catalog content, lives, pinning and announcements
CONTENT_ROLES = frozenset({Role.MENTOR, Role.ADMIN})
# Catalog deletes and user management
ADMIN_ONLY = frozenset({Role.ADMIN})
# Everyone holding an account
MEMBER_ROLES = frozenset(Role)


def is_allowed(
    identity: Optional["Identity"],
    required_roles: Iterable[Role],
    resource_owner_id: Optional[str] = None,
) -> bool:
    if identity is None:
        return False
    if identity.role == Role.ADMIN:
        return True
    if identity.role in frozenset(required_roles):
        return True
    return resource_owner_id is not None and resource_owner_id == identity.id


def authorize(
    identity: Optional["Identity"],
    required_roles: Iterable[Role],
    resource_owner_id: Optional[str] = None,
    *,
    message: str = "You don't have permission to perform this action",
) -> "Identity":
    if identity is None:
        raise UnauthenticatedError("Authentication required")
    if not is_allowed(identity, required_roles, resource_owner_id):
        raise PermissionError(message)
    return identity


def is_staff(identity: Optional["Identity"]) -> bool:
    """MENTOR or ADMIN: the moderation tier."""
    return is_allowed(identity, CONTENT_ROLES)
