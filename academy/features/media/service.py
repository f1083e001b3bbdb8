"""
Media gallery over the uploads catalog (ADMIN only).

Lists what has been uploaded, newest first, with who uploaded it and how
much each folder holds. Deleting an entry removes the catalog row even
when the bucket refuses to drop the object.
"""
import logging
import math
from typing import Optional

from sqlalchemy import delete, func, select

from academy.core.database import get_db_session, media, profiles, users
from academy.core.errors import NotFoundError, ValidationError
from academy.features.uploads.storage import BlobStore, BlobStoreError, get_blob_store
from academy.models.media import FolderUsage, MediaItem, MediaPage, Pagination

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _build_item(row) -> MediaItem:
    return MediaItem(
        id=row.id,
        filename=row.filename,
        url=row.url,
        content_type=row.content_type,
        size=row.size,
        folder=row.folder,
        uploaded_by=row.uploaded_by,
        uploader_email=row.uploader_email,
        uploader_name=row.display_name or row.first_name,
        created_at=row.created_at,
    )


def list_media(
    folder: Optional[str] = None,
    type_prefix: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_LIMIT,
) -> MediaPage:
    """
    One page of media rows.

    `type_prefix` matches the start of the content type ("image",
    "application/pdf"). Folder usage ignores both filters.
    """
    if page < 1:
        raise ValidationError("page must be >= 1")
    if not 1 <= limit <= MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")

    filters = []
    if folder:
        filters.append(media.c.folder == folder)
    if type_prefix:
        filters.append(media.c.content_type.startswith(type_prefix, autoescape=True))

    with get_db_session() as session:
        total = session.execute(select(func.count()).select_from(media).where(*filters)).scalar_one()
        rows = session.execute(
            select(
                media,
                users.c.email.label("uploader_email"),
                profiles.c.display_name,
                profiles.c.first_name,
            )
            .outerjoin(users, users.c.id == media.c.uploaded_by)
            .outerjoin(profiles, profiles.c.user_id == media.c.uploaded_by)
            .where(*filters)
            .order_by(media.c.created_at.desc(), media.c.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).all()
        usage = session.execute(
            select(media.c.folder, func.count(), func.coalesce(func.sum(media.c.size), 0))
            .group_by(media.c.folder)
            .order_by(media.c.folder.asc())
        ).all()

    return MediaPage(
        items=[_build_item(row) for row in rows],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
        folders=[FolderUsage(name=name, count=count, size=size) for name, count, size in usage],
    )


def delete_media(media_id: str, store: Optional[BlobStore] = None) -> None:
    with get_db_session() as session:
        row = session.execute(select(media.c.object_key, media.c.url).where(media.c.id == media_id)).first()
        if not row:
            raise NotFoundError("Media not found")

        if row.object_key:
            try:
                (store or get_blob_store()).delete(row.object_key)
            except BlobStoreError:
                logger.warning("media.blob_delete_failed", exc_info=True, extra={"media_id": media_id})
        else:
            logger.warning(f"media.no_object_key media_id={media_id} url={row.url}")

        session.execute(delete(media).where(media.c.id == media_id))
    logger.info(f"media.deleted media_id={media_id}")
