import io
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import UploadFile

import errors
from storage import ObjectStorage, StorageError

logger = logging.getLogger(__name__)

CLUB_LOGO_PREFIX = "club-logos"
EVENT_BANNER_PREFIX = "event-banners"

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MB
ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

# marks a form field that was not sent at all (as opposed to sent empty)
UNSET: Any = object()


def sanitize_filename(filename: Optional[str]) -> str:
    # keep only the basename, spaces become underscores, drop anything unsafe
    name = (filename or "").replace("\\", "/").split("/")[-1]
    name = re.sub(r"\s+", "_", name.strip())
    name = re.sub(r"[^A-Za-z0-9._-]", "", name)
    name = name.lstrip(".")
    return name or "upload"


def build_object_key(prefix: str, filename: Optional[str]) -> str:
    return f"{prefix}/{uuid.uuid4()}-{sanitize_filename(filename)}"


async def validate_upload(upload: UploadFile) -> bytes:
    """Check type, size and that the bytes really are an image. Returns the content."""
    if upload.content_type not in ALLOWED_CONTENT_TYPES:
        raise errors.ValidationFailed(
            f"Invalid content type. Allowed: {list(ALLOWED_CONTENT_TYPES.keys())}"
        )

    content = await upload.read()
    if not content:
        raise errors.ValidationFailed("Uploaded file is empty")
    if len(content) > MAX_FILE_SIZE:
        raise errors.ValidationFailed(f"File too large. Maximum: {MAX_FILE_SIZE // 1024 // 1024}MB")

    try:
        from PIL import Image
        Image.open(io.BytesIO(content)).verify()
    except Exception:
        raise errors.ValidationFailed("Invalid image file")

    return content


@dataclass
class MediaChange:
    url: Optional[str]
    changed: bool = False
    stale_key: Optional[str] = None
    uploaded_key: Optional[str] = None


async def resolve_media_change(
    storage: Optional[ObjectStorage],
    prefix: str,
    upload: Optional[UploadFile] = None,
    supplied_url: Any = UNSET,
    current_url: Optional[str] = None,
) -> MediaChange:
    """
    Work out the URL a row should store after a create/update.

    A new file is written to the bucket before anything touches the database, so
    a failed upload leaves no dangling reference. The previous object is only
    reported as stale here; callers delete it once the row has been committed.
    """
    old_key = storage.key_from_url(current_url) if storage else None

    if upload is not None:
        content = await validate_upload(upload)
        if storage is None:
            raise errors.UploadFailed("Object storage is not configured")

        key = build_object_key(prefix, upload.filename)
        try:
            url = await storage.put_object(key, content, upload.content_type or "application/octet-stream")
        except StorageError as e:
            logger.error("Upload to %s failed: %s", prefix, e)
            raise errors.UploadFailed()

        return MediaChange(url=url, changed=True, stale_key=old_key, uploaded_key=key)

    if supplied_url is UNSET:
        return MediaChange(url=current_url)

    if supplied_url is None or (isinstance(supplied_url, str) and supplied_url.strip() == ""):
        return MediaChange(url=None, changed=current_url is not None, stale_key=old_key)

    new_url = str(supplied_url).strip()
    if new_url == current_url:
        return MediaChange(url=current_url)
    return MediaChange(url=new_url, changed=True, stale_key=old_key)


async def discard_object(storage: Optional[ObjectStorage], key: Optional[str]) -> None:
    """Best-effort delete; failures are logged and never reach the caller."""
    if storage is None or not key:
        return
    try:
        await storage.delete_object(key)
    except Exception as e:
        logger.warning("Stored object %s could not be deleted: %s", key, e)


async def discard_url(storage: Optional[ObjectStorage], url: Optional[str]) -> None:
    if storage is None:
        return
    await discard_object(storage, storage.key_from_url(url))
