"""
Auth API routes.

- POST /api/auth/register: create a STUDENT account and start a session
- POST /api/auth/login: exchange credentials for a session
- POST /api/auth/logout: clear the session cookie
- GET  /api/auth/me: the caller's account
"""
from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from academy.core.config import settings
from academy.core.session import Identity, issue_session_token, require_identity
from academy.features.users.service import authenticate, get_account, identity_for, register_user
from academy.models.user import Account, SessionGrant

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: str
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


def _grant(response: Response, account: Account) -> SessionGrant:
    token = issue_session_token(identity_for(account))
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.SESSION_TTL_MINUTES * 60,
        httponly=True,
        secure=settings.ENV == "production",
        samesite="lax",
    )
    return SessionGrant(token=token, user=account)


@router.post("/register", response_model=SessionGrant, status_code=201)
def register(body: RegisterRequest, response: Response):
    account = register_user(body.email, body.password, body.first_name, body.last_name)
    return _grant(response, account)


@router.post("/login", response_model=SessionGrant)
def login(body: LoginRequest, response: Response):
    """Any credential mismatch (or a deactivated account) is a 401."""
    return _grant(response, authenticate(body.email, body.password))


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"ok": True}


@router.get("/me", response_model=Account)
def me(identity: Identity = Depends(require_identity)):
    return get_account(identity.id)
