"""Object storage client (Google Cloud Storage) for club logos and event banners."""

import logging
from typing import Optional

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from google.cloud import storage as gcs

logger = logging.getLogger(__name__)

PUBLIC_HOST = "https://storage.googleapis.com"


class StorageError(Exception):
    """An object could not be written to or removed from the bucket."""


class ObjectStorage:
    """
    Thin wrapper around one GCS bucket.

    Objects are written public-read, so their URL can be derived from the key
    alone: https://storage.googleapis.com/<bucket>/<key>
    """

    def __init__(self, bucket_name: str, project: Optional[str] = None, client: Optional[gcs.Client] = None):
        self.bucket_name = bucket_name
        self._client = client or gcs.Client(project=project)
        self._bucket = self._client.bucket(bucket_name)

    @property
    def public_prefix(self) -> str:
        return f"{PUBLIC_HOST}/{self.bucket_name}/"

    def public_url(self, key: str) -> str:
        return f"{self.public_prefix}{key}"

    def key_from_url(self, url: Optional[str]) -> Optional[str]:
        """Object key for a URL in this bucket, None for anything else (external links)."""
        if not url or not url.startswith(self.public_prefix):
            return None
        key = url[len(self.public_prefix):].split("?")[0]
        return key or None

    def _put(self, key: str, data: bytes, content_type: str) -> None:
        blob = self._bucket.blob(key)
        blob.upload_from_string(data, content_type=content_type)
        try:
            blob.make_public()
        except Exception:
            # nothing will ever point at a private object, remove it
            try:
                blob.delete()
            except Exception as e:
                logger.warning("Could not remove unpublished object %s: %s", key, e)
            raise

    async def put_object(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await run_in_threadpool(self._put, key, data, content_type)
        except Exception as e:
            raise StorageError(f"Failed to upload {key}: {e}") from e

        logger.info("Uploaded object %s (%d bytes)", key, len(data))
        return self.public_url(key)

    async def delete_object(self, key: str) -> None:
        try:
            await run_in_threadpool(self._bucket.blob(key).delete)
        except Exception as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

        logger.info("Deleted object %s", key)

    def close(self) -> None:
        self._client.close()


def get_storage(request: Request) -> Optional[ObjectStorage]:
    return request.app.state.storage
