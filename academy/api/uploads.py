"""
Upload routes (MENTOR/ADMIN only).

- POST /api/upload: images, 2MB max
- POST /api/upload/attachments: documents and images, 50MB max
"""
from fastapi import APIRouter, Depends, File, UploadFile
from starlette.concurrency import run_in_threadpool

from academy.core.authz import CONTENT_ROLES
from academy.core.session import Identity, require_roles
from academy.features.uploads.service import POLICIES, store_upload, validate_upload
from academy.models.media import UploadCategory, UploadedFile

router = APIRouter(prefix="/api/upload", tags=["uploads"])


async def _handle(identity: Identity, category: UploadCategory, file: UploadFile) -> UploadedFile:
    max_bytes = POLICIES[category].max_bytes
    if file.size is not None:
        # Reject on the declared size before buffering anything
        validate_upload(category, file.content_type, file.size)
    # One byte past the ceiling is enough for store_upload to reject it
    body = await file.read(max_bytes + 1)
    return await run_in_threadpool(store_upload, identity, category, file.filename, file.content_type, body)


@router.post("", response_model=UploadedFile)
async def upload_image(
    file: UploadFile = File(...),
    identity: Identity = Depends(require_roles(*CONTENT_ROLES)),
):
    return await _handle(identity, UploadCategory.IMAGE, file)


@router.post("/attachments", response_model=UploadedFile)
async def upload_attachment(
    file: UploadFile = File(...),
    identity: Identity = Depends(require_roles(*CONTENT_ROLES)),
):
    return await _handle(identity, UploadCategory.ATTACHMENT, file)
