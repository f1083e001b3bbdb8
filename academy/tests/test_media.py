"""Tests for the admin media gallery (the bucket is always mocked)."""
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest
from sqlalchemy import func, insert, select

from academy.core.authz import Role
from academy.core.database import get_db_session, media, new_id
from academy.core.errors import NotFoundError, ValidationError
from academy.features.media.service import delete_media, list_media
from academy.features.uploads.service import store_upload
from academy.features.uploads.storage import BlobStoreError
from academy.models.media import UploadCategory

START = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _add_media(uploaded_by=None, folder="courses", content_type="image/png", size=100, minutes=0, object_key="courses/1-a.png"):
    media_id = new_id()
    with get_db_session() as session:
        session.execute(
            insert(media).values(
                id=media_id,
                filename=f"file-{media_id[:6]}",
                url=f"https://cdn.example.com/{object_key}",
                content_type=content_type,
                size=size,
                folder=folder,
                object_key=object_key,
                uploaded_by=uploaded_by,
                created_at=START + timedelta(minutes=minutes),
            )
        )
    return media_id


def _media_count() -> int:
    with get_db_session() as session:
        return session.execute(select(func.count()).select_from(media)).scalar()


def test_gallery_lists_newest_first_with_uploader(make_user):
    mentor = make_user(role=Role.MENTOR, email="mentor@example.com", first_name="Marta")
    older = _add_media(uploaded_by=mentor.id, minutes=0)
    newer = _add_media(uploaded_by=mentor.id, minutes=5)

    result = list_media()

    assert [item.id for item in result.items] == [newer, older]
    assert result.items[0].uploader_email == "mentor@example.com"
    assert result.items[0].uploader_name == "Marta"


def test_gallery_filters_and_paginates():
    for minute in range(3):
        _add_media(folder="courses", content_type="image/png", size=10, minutes=minute)
    _add_media(folder="attachments", content_type="application/pdf", size=1000, minutes=10)

    images = list_media(type_prefix="image", page=2, limit=2)
    assert len(images.items) == 1
    assert images.pagination.total == 3
    assert images.pagination.total_pages == 2

    pdfs = list_media(folder="attachments")
    assert [item.content_type for item in pdfs.items] == ["application/pdf"]

    # Folder usage ignores filters
    usage = {f.name: (f.count, f.size) for f in pdfs.folders}
    assert usage == {"attachments": (1, 1000), "courses": (3, 30)}


def test_gallery_rejects_bad_page():
    with pytest.raises(ValidationError):
        list_media(page=0)


def test_empty_gallery():
    result = list_media()
    assert result.items == []
    assert result.pagination.total_pages == 0


def test_delete_removes_blob_and_row():
    media_id = _add_media(object_key="courses/9-b.png")
    store = Mock()

    delete_media(media_id, store=store)

    store.delete.assert_called_once_with("courses/9-b.png")
    assert _media_count() == 0


def test_delete_survives_bucket_failure():
    media_id = _add_media()
    store = Mock()
    store.delete.side_effect = BlobStoreError("delete_object failed")

    delete_media(media_id, store=store)

    assert _media_count() == 0


def test_delete_unknown_media():
    with pytest.raises(NotFoundError):
        delete_media("missing", store=Mock())


def test_uploads_record_their_object_key(make_user):
    store = Mock()
    store.put.side_effect = lambda key, body, content_type: f"https://cdn.example.com/{key}"
    uploaded = store_upload(make_user(role=Role.MENTOR), UploadCategory.IMAGE, "a.png", "image/png", b"png", store=store)

    with get_db_session() as session:
        key = session.execute(select(media.c.object_key)).scalar_one()
    assert uploaded.url.endswith(key)


def test_gallery_api_is_admin_only(client, make_user, auth_headers):
    media_id = _add_media()
    mentor = auth_headers(make_user(role=Role.MENTOR))
    admin = auth_headers(make_user(role=Role.ADMIN))

    assert client.get("/api/admin/gallery", headers=mentor).status_code == 403
    assert client.delete(f"/api/admin/gallery/{media_id}", headers=mentor).status_code == 403

    resp = client.get("/api/admin/gallery", headers=admin, params={"folder": "courses"})
    assert resp.status_code == 200
    assert resp.json()["pagination"]["total"] == 1

    with patch("academy.features.media.service.get_blob_store") as get_store:
        resp = client.delete(f"/api/admin/gallery/{media_id}", headers=admin)
    assert resp.status_code == 200
    get_store.return_value.delete.assert_called_once()

    assert client.delete(f"/api/admin/gallery/{media_id}", headers=admin).status_code == 404
