"""
File uploads for course content.

Images (thumbnails, avatars) and attachments (documents for lessons and
comments) have separate type and size limits. Stored objects are named
"{folder}/{millis}-{random}.{ext}" so client file names never reach the
bucket key.
"""
import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from sqlalchemy import insert

from academy.core.database import get_db_session, media, new_id
from academy.core.errors import ExternalServiceError, ValidationError
from academy.core.session import Identity
from academy.features.uploads.storage import BlobStore, BlobStoreError, get_blob_store
from academy.models.media import UploadCategory, UploadedFile

logger = logging.getLogger(__name__)

MB = 1024 * 1024

IMAGE_TYPES = frozenset({"image/webp", "image/jpeg", "image/jpg", "image/png"})
ATTACHMENT_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/zip",
    "application/x-zip-compressed",
    "image/webp",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
})

EXTENSIONS: Dict[str, str] = {
    "image/jpg": "jpg",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-powerpoint": "ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "application/zip": "zip",
    "application/x-zip-compressed": "zip",
}


@dataclass(frozen=True)
class UploadPolicy:
    folder: str
    allowed_types: FrozenSet[str]
    max_bytes: int
    label: str


POLICIES = {
    UploadCategory.IMAGE: UploadPolicy("courses", IMAGE_TYPES, 2 * MB, "WebP, JPEG or PNG"),
    UploadCategory.ATTACHMENT: UploadPolicy(
        "attachments", ATTACHMENT_TYPES, 50 * MB, "PDF, Word, Excel, PowerPoint, ZIP or images"
    ),
}


def _extension(content_type: str, filename: Optional[str]) -> str:
    if content_type in EXTENSIONS:
        return EXTENSIONS[content_type]
    if filename and "." in filename:
        return filename.rsplit(".", 1)[1].lower()
    return "bin"


def object_key(folder: str, content_type: str, filename: Optional[str] = None) -> str:
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(8))
    return f"{folder}/{int(time.time() * 1000)}-{suffix}.{_extension(content_type, filename)}"


def validate_upload(category: UploadCategory, content_type: Optional[str], size: int) -> UploadPolicy:
    policy = POLICIES[category]
    if size <= 0:
        raise ValidationError("No file provided")
    if (content_type or "").lower() not in policy.allowed_types:
        raise ValidationError(f"File type not allowed. Use {policy.label}.")
    if size > policy.max_bytes:
        raise ValidationError(f"File too large. Maximum size is {policy.max_bytes // MB}MB.")
    return policy


def store_upload(
    identity: Identity,
    category: UploadCategory,
    filename: Optional[str],
    content_type: Optional[str],
    body: bytes,
    store: Optional[BlobStore] = None,
) -> UploadedFile:
    policy = validate_upload(category, content_type, len(body))
    content_type = content_type.lower()
    key = object_key(policy.folder, content_type, filename)

    try:
        store = store or get_blob_store()
        url = store.put(key, body, content_type)
    except BlobStoreError as e:
        logger.error("upload.store_failed", exc_info=e, extra={"user_id": identity.id})
        raise ExternalServiceError("File storage unavailable", code="storage_unavailable")

    logger.info(f"upload.stored key={key} size={len(body)} by={identity.id}")

    try:
        with get_db_session() as session:
            session.execute(
                insert(media).values(
                    id=new_id(),
                    filename=filename or key.rsplit("/", 1)[1],
                    url=url,
                    content_type=content_type,
                    size=len(body),
                    folder=policy.folder,
                    object_key=key,
                    uploaded_by=identity.id,
                )
            )
    except Exception:
        logger.warning("upload.media_record_failed", exc_info=True, extra={"user_id": identity.id})

    return UploadedFile(
        url=url,
        filename=key.rsplit("/", 1)[1],
        original_name=filename or "",
        content_type=content_type,
        size=len(body),
    )
