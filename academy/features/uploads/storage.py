"""
Blob storage for uploaded files (any S3-compatible bucket).
"""
import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from academy.core.config import settings

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """Upload rejected or the bucket is unreachable."""
    pass


class BlobStore:
    def __init__(
        self,
        bucket: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ):
        self.bucket = bucket or settings.BLOB_BUCKET
        if not self.bucket:
            raise BlobStoreError("BLOB_BUCKET not configured")
        self.endpoint_url = endpoint_url or settings.BLOB_ENDPOINT_URL
        self.public_base_url = public_base_url or settings.BLOB_PUBLIC_BASE_URL
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=access_key or settings.BLOB_ACCESS_KEY,
            aws_secret_access_key=secret_key or settings.BLOB_SECRET_KEY,
            region_name=region or settings.BLOB_REGION,
            config=Config(s3={"addressing_style": "path"}),
        )

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def put(self, key: str, body: bytes, content_type: str) -> str:
        """Store a public object; returns its URL."""
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                CacheControl="public, max-age=31536000",
            )
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"put_object failed: {e}")
        return self.public_url(key)

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"delete_object failed: {e}")


def get_blob_store() -> BlobStore:
    return BlobStore()
