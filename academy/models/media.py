from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class UploadCategory(str, Enum):
    IMAGE = "image"
    ATTACHMENT = "attachment"


class UploadedFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    filename: str
    original_name: str
    content_type: str
    size: int


class MediaItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    url: str
    content_type: str
    size: int
    folder: str
    uploaded_by: Optional[str] = None
    uploader_email: Optional[str] = None
    uploader_name: Optional[str] = None
    created_at: datetime


class FolderUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    count: int
    size: int


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    limit: int
    total: int
    total_pages: int


class MediaPage(BaseModel):
    """One page of the gallery plus usage for every folder, unfiltered."""
    model_config = ConfigDict(frozen=True)

    items: List[MediaItem]
    pagination: Pagination
    folders: List[FolderUsage]
