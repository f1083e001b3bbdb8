"""Tests for session token issue and resolution."""
import jwt
from sqlalchemy import update

from academy.core.authz import Role
from academy.core.config import settings
from academy.core.database import get_db_session, users
from academy.core.session import ALGORITHM, Identity, issue_session_token, refresh_identity, resolve_identity


def _identity() -> Identity:
    return Identity(id="user-1", email="ana@example.com", role=Role.MENTOR)


def test_token_round_trip():
    identity = _identity()
    resolved = resolve_identity(issue_session_token(identity))
    assert resolved == identity


def test_missing_token_resolves_to_none():
    assert resolve_identity(None) is None
    assert resolve_identity("") is None


def test_expired_token_resolves_to_none():
    token = issue_session_token(_identity(), ttl_minutes=-1)
    assert resolve_identity(token) is None


def test_tampered_token_resolves_to_none():
    token = issue_session_token(_identity())
    head, payload, signature = token.split(".")
    assert resolve_identity(f"{head}.{payload}.{signature[::-1]}") is None


def test_foreign_secret_resolves_to_none():
    token = jwt.encode({"sub": "x", "email": "x@example.com", "role": "ADMIN"}, "not-the-secret", algorithm=ALGORITHM)
    assert resolve_identity(token) is None


def test_unknown_role_resolves_to_none():
    token = jwt.encode({"sub": "x", "email": "x@example.com", "role": "ROOT"}, settings.SESSION_SECRET, algorithm=ALGORITHM)
    assert resolve_identity(token) is None


def test_cookie_is_accepted(client, make_user):
    user = make_user()
    client.cookies.set(settings.SESSION_COOKIE_NAME, issue_session_token(user))
    resp = client.get("/api/auth/me")
    assert resp.status_code == 200
    assert resp.json()["id"] == user.id


def test_bad_bearer_is_anonymous(client):
    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthenticated"


def _set_user(user_id, **values):
    with get_db_session() as session:
        session.execute(update(users).where(users.c.id == user_id).values(**values))


def test_demoted_admin_loses_admin_routes(client, make_user, auth_headers):
    admin = make_user(role=Role.ADMIN)
    headers = auth_headers(admin)
    assert client.get("/api/admin/users", headers=headers).status_code == 200

    _set_user(admin.id, role=Role.STUDENT.value)

    resp = client.get("/api/admin/users", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"


def test_deactivated_user_token_is_rejected(client, make_user, auth_headers):
    admin = make_user(role=Role.ADMIN)
    headers = auth_headers(admin)

    _set_user(admin.id, role=Role.STUDENT.value, active=False)

    assert client.get("/api/admin/users", headers=headers).status_code == 401
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_promotion_applies_without_new_token(make_user):
    student = make_user()
    _set_user(student.id, role=Role.MENTOR.value)

    refreshed = refresh_identity(resolve_identity(issue_session_token(student)))
    assert refreshed.role == Role.MENTOR


def test_token_for_deleted_user_is_anonymous():
    assert refresh_identity(_identity()) is None
