"""Tests for role-based authorization."""
import pytest

from academy.core.authz import ADMIN_ONLY, CONTENT_ROLES, Role, authorize, is_allowed, is_staff
from academy.core.errors import PermissionError, UnauthenticatedError
from academy.core.session import Identity


def _identity(role: Role, user_id: str = "u1") -> Identity:
    return Identity(id=user_id, email=f"{user_id}@example.com", role=role)


def test_anonymous_is_never_allowed():
    assert is_allowed(None, Role) is False


def test_admin_passes_every_check():
    admin = _identity(Role.ADMIN)
    assert is_allowed(admin, ADMIN_ONLY)
    assert is_allowed(admin, [])
    assert is_allowed(admin, [Role.STUDENT])


def test_role_membership():
    mentor = _identity(Role.MENTOR)
    assert is_allowed(mentor, CONTENT_ROLES)
    assert not is_allowed(mentor, ADMIN_ONLY)


def test_owner_passes_without_role():
    student = _identity(Role.STUDENT, "owner")
    assert is_allowed(student, CONTENT_ROLES, resource_owner_id="owner")
    assert not is_allowed(student, CONTENT_ROLES, resource_owner_id="someone-else")


def test_authorize_raises_401_for_anonymous():
    with pytest.raises(UnauthenticatedError) as exc:
        authorize(None, CONTENT_ROLES)
    assert exc.value.status_code == 401


def test_authorize_raises_403_with_message():
    with pytest.raises(PermissionError) as exc:
        authorize(_identity(Role.STUDENT), CONTENT_ROLES, message="Mentors only")
    assert exc.value.status_code == 403
    assert exc.value.message == "Mentors only"


def test_authorize_returns_identity():
    mentor = _identity(Role.MENTOR)
    assert authorize(mentor, CONTENT_ROLES) is mentor


def test_is_staff():
    assert is_staff(_identity(Role.MENTOR))
    assert is_staff(_identity(Role.ADMIN))
    assert not is_staff(_identity(Role.STUDENT))
    assert not is_staff(None)
