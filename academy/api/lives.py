"""
Live session routes: member listing plus staff management under /api/admin/lives.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from academy.core.authz import ADMIN_ONLY, CONTENT_ROLES, is_staff
from academy.core.session import Identity, require_identity, require_roles
from academy.features.lives.service import create_live, delete_live, list_lives, send_live_reminders, update_live
from academy.models.live import LiveEvent

router = APIRouter(tags=["lives"])


class LiveCreate(BaseModel):
    title: str
    scheduled_at: datetime
    description: Optional[str] = None
    type: str = "MARKETING"
    duration: int = 60
    meeting_url: Optional[str] = None
    replay_url: Optional[str] = None
    thumbnail: Optional[str] = None
    published: bool = False
    mentor_id: Optional[str] = None


class LiveUpdate(BaseModel):
    title: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    description: Optional[str] = None
    type: Optional[str] = None
    duration: Optional[int] = None
    meeting_url: Optional[str] = None
    replay_url: Optional[str] = None
    thumbnail: Optional[str] = None
    published: Optional[bool] = None
    mentor_id: Optional[str] = None


@router.get("/api/lives", response_model=List[LiveEvent])
def lives(
    filter: Optional[str] = Query(None, description="upcoming or past"),
    identity: Identity = Depends(require_identity),
):
    """Published lives; staff also see drafts."""
    return list_lives(filter, include_unpublished=is_staff(identity))


@router.post("/api/admin/lives", response_model=LiveEvent, status_code=201)
def new_live(body: LiveCreate, identity: Identity = Depends(require_roles(*CONTENT_ROLES))):
    return create_live(identity, body.model_dump())


@router.patch("/api/admin/lives/{live_id}", response_model=LiveEvent)
def edit_live(live_id: str, body: LiveUpdate, identity: Identity = Depends(require_roles(*CONTENT_ROLES))):
    return update_live(identity, live_id, body.model_dump(exclude_unset=True))


@router.delete("/api/admin/lives/{live_id}")
def remove_live(live_id: str, identity: Identity = Depends(require_roles(*ADMIN_ONLY))):
    delete_live(live_id)
    return {"ok": True}


@router.post("/api/admin/lives/{live_id}/remind")
def remind_live(live_id: str, identity: Identity = Depends(require_roles(*CONTENT_ROLES))):
    return {"ok": True, "sent": send_live_reminders(live_id)}
