"""
Media gallery routes (ADMIN only).
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from academy.core.authz import ADMIN_ONLY
from academy.core.session import Identity, require_roles
from academy.features.media.service import DEFAULT_LIMIT, MAX_LIMIT, delete_media, list_media
from academy.models.media import MediaPage

router = APIRouter(prefix="/api/admin/gallery", tags=["admin-media"])

admin_only = require_roles(*ADMIN_ONLY)


@router.get("", response_model=MediaPage)
def gallery(
    folder: Optional[str] = None,
    type: Optional[str] = Query(None, description="content type prefix, e.g. image"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    identity: Identity = Depends(admin_only),
):
    return list_media(folder=folder, type_prefix=type, page=page, limit=limit)


@router.delete("/{media_id}")
def remove_media(media_id: str, identity: Identity = Depends(admin_only)):
    delete_media(media_id)
    return {"ok": True}
