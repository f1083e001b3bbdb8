"""
Admin user management (ADMIN only) and the debug diagnostics route.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from academy.core.authz import ADMIN_ONLY, Role
from academy.core.errors import ExternalServiceError, ValidationError
from academy.core.session import Identity, require_roles
from academy.features.admin.diagnostics import db_diagnostics
from academy.features.email.sender import EmailDeliveryError, email_enabled
from academy.features.email.templates import send_admin_message_email
from academy.features.users.service import get_account, list_users, update_user
from academy.models.user import Account

logger = logging.getLogger("academy")

router = APIRouter(prefix="/api/admin", tags=["admin-users"])

admin_only = require_roles(*ADMIN_ONLY)


class UserUpdate(BaseModel):
    role: Optional[Role] = None
    active: Optional[bool] = None


class AdminEmailRequest(BaseModel):
    subject: str
    message: str


@router.get("/users", response_model=List[Account])
def users(
    search: Optional[str] = None,
    role: Optional[Role] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(admin_only),
):
    return list_users(search=search, role=role, limit=limit, offset=offset)


@router.get("/users/{user_id}", response_model=Account)
def read_user(user_id: str, identity: Identity = Depends(admin_only)):
    return get_account(user_id)


@router.patch("/users/{user_id}", response_model=Account)
def edit_user(user_id: str, body: UserUpdate, identity: Identity = Depends(admin_only)):
    """Admins cannot change their own role."""
    return update_user(identity, user_id, role=body.role, active=body.active)


@router.post("/users/{user_id}/email")
def email_user(user_id: str, body: AdminEmailRequest, identity: Identity = Depends(admin_only)):
    if not body.subject.strip() or not body.message.strip():
        raise ValidationError("subject and message are required")
    if not email_enabled():
        raise ExternalServiceError("Email is not configured", code="email_disabled", status_code=503)
    account = get_account(user_id)
    try:
        message_id = send_admin_message_email(account.email, account.display_name, body.subject, body.message)
    except EmailDeliveryError as e:
        logger.error("admin.email_failed", exc_info=e, extra={"user_id": user_id})
        raise ExternalServiceError("Email delivery failed", code="email_unavailable")
    logger.info(f"admin.email_sent to={user_id} by={identity.id}")
    return {"ok": True, "message_id": message_id}


@router.get("/debug/db")
def debug_db(identity: Identity = Depends(admin_only)):
    """404 unless DEBUG_ROUTES_ENABLED outside production."""
    return db_diagnostics()
