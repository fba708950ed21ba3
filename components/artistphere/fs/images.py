"""
Turns any accepted image input into the reference stored on an artist.

Three input forms are accepted:

* ``LinkedImage``: an http(s) URL or an existing ``/uploads/`` path, kept as-is.
* ``InlineImage``: bytes decoded from a ``data:image/...;base64,`` URI, pushed to
  the object store; the public object URL is returned.
* ``UploadedImage``: a multipart upload, written to the local upload directory;
  ``/uploads/<file>`` is returned.
"""

import re
import secrets
import time
import uuid
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

import magic
import urllib3
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from minio import Minio
from minio.error import MinioException

from artistphere.fs.core import ALLOWED_IMAGE_TYPES, MAX_FILE_SIZE
from artistphere.log import get_logger
from artistphere.models.errors import ImageTooLarge, UploadFailure, ValidationError

_log = get_logger(__name__)

UPLOAD_PREFIX = "/uploads"
CHUNK_SIZE = 1024 * 1024  # 1MB chunk

_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9]{1,8}$")


@dataclass(frozen=True)
class LinkedImage:
    ref: str


@dataclass(frozen=True)
class InlineImage:
    data: bytes
    declared_type: str


@dataclass(frozen=True)
class UploadedImage:
    file: UploadFile


ImageInput = LinkedImage | InlineImage | UploadedImage


def sniff_image_type(content: bytes, field: str) -> str:
    mime_type = magic.from_buffer(content, mime=True)
    if mime_type not in ALLOWED_IMAGE_TYPES:
        _log.warning(f"Rejected image of type {mime_type}")
        raise ValidationError(
            field,
            f"Invalid image type. Allowed types: {', '.join(ALLOWED_IMAGE_TYPES.keys())}",
        )
    return mime_type


def unique_filename(original: str | None, mime_type: str) -> str:
    """Millisecond timestamp plus random suffix, keeping the client's extension."""
    suffix = Path(original or "").suffix.lower()
    if not _SAFE_SUFFIX.match(suffix):
        suffix = f".{ALLOWED_IMAGE_TYPES[mime_type]}"
    return f"{time.time_ns() // 1_000_000}-{secrets.token_hex(4)}{suffix}"


class ImageResolver:
    def __init__(
        self,
        bucket_client: Minio | None,
        bucket: str,
        public_url: str,
        upload_dir: str | Path,
    ):
        self._client = bucket_client
        self._bucket = bucket
        self._public_url = public_url.rstrip("/")
        self._upload_dir = Path(upload_dir)

    async def resolve(self, image: ImageInput) -> str:
        if isinstance(image, LinkedImage):
            return image.ref
        elif isinstance(image, InlineImage):
            return await self._store_inline(image)
        elif isinstance(image, UploadedImage):
            return await self._store_upload(image)
        raise TypeError(f"Unsupported image input: {type(image).__name__}")

    async def _store_inline(self, image: InlineImage) -> str:
        if len(image.data) > MAX_FILE_SIZE:
            raise ImageTooLarge("img", "File too large (max 5MB)")

        mime_type = sniff_image_type(image.data, "img")
        if mime_type != image.declared_type:
            _log.debug(f"Declared {image.declared_type} but content is {mime_type}")

        if self._client is None:
            _log.error("Inline image received but no object store is configured")
            raise UploadFailure("Image storage is not configured")

        object_name = f"artists/{uuid.uuid4().hex}.{ALLOWED_IMAGE_TYPES[mime_type]}"
        _log.debug(f"Uploading to MinIO: {object_name}")

        try:
            _ = await run_in_threadpool(
                self._client.put_object,
                bucket_name=self._bucket,
                object_name=object_name,
                data=BytesIO(image.data),
                length=len(image.data),
                content_type=mime_type,
            )
        except (MinioException, urllib3.exceptions.HTTPError, OSError) as e:
            _log.error(f"Upload of {object_name} failed: {e}")
            raise UploadFailure("Image upload failed") from e

        _log.info(f"Uploaded inline image {object_name}")
        return f"{self._public_url}/{self._bucket}/{object_name}"

    async def _store_upload(self, image: UploadedImage) -> str:
        file = image.file

        if file.size and file.size > MAX_FILE_SIZE:
            _log.warning(f"Upload too large: {file.size} bytes")
            raise ImageTooLarge("image", "File too large (max 5MB)")

        content = bytearray()
        while chunk := await file.read(CHUNK_SIZE):
            content.extend(chunk)
            if len(content) > MAX_FILE_SIZE:
                _log.warning(f"Upload exceeded size limit during read: {len(content)} bytes")
                raise ImageTooLarge("image", "File too large (max 5MB)")

        _log.debug(f"Read {len(content)} bytes from {file.filename}")

        mime_type = sniff_image_type(bytes(content), "image")
        filename = unique_filename(file.filename, mime_type)
        path = self._upload_dir / filename

        try:
            await run_in_threadpool(self._write, path, bytes(content))
        except OSError as e:
            _log.error(f"Could not save upload to {path}: {e}")
            raise UploadFailure("Could not save uploaded image") from e

        _log.info(f"Saved upload {file.filename} as {filename}")
        return f"{UPLOAD_PREFIX}/{filename}"

    def _write(self, path: Path, content: bytes):
        self._upload_dir.mkdir(parents=True, exist_ok=True)
        # "x" so a name collision fails instead of overwriting another artist's image
        with open(path, "xb") as fh:
            fh.write(content)
