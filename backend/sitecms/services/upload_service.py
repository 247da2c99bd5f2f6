"""
SiteCMS Backend — Upload Helpers
==================================

What:  Reads multipart file parts, validates them, and forwards them to the
       blob client.
How:   read_uploads() pulls bytes into memory (bounded by MAX_UPLOAD_SIZE and
       MAX_FILES_PER_FIELD); upload_many() issues all uploads concurrently
       with asyncio.gather and returns results in input order.
Who:   Resource and ServicePage services.
When:  Before a record is persisted; any failure aborts the request.

Validation order:
    1. Count per form field
    2. Empty part
    3. Size limit
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from starlette.datastructures import UploadFile

from sitecms.config import settings
from sitecms.exceptions import ValidationError
from sitecms.services.blob_base import BlobClient, UploadedBlob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingUpload:
    """A validated file part held in memory until it is forwarded."""

    filename: str
    content: bytes


def validate_size(field: str, filename: str, size: int) -> None:
    """
    Raises:
        ValidationError for empty parts and parts above MAX_UPLOAD_SIZE.
    """
    if size == 0:
        raise ValidationError(
            message=f"Uploaded file '{filename}' is empty.",
            field=field,
        )
    if size > settings.max_upload_size:
        max_mb = settings.max_upload_size / (1024 * 1024)
        raise ValidationError(
            message=(
                f"File '{filename}' ({size / (1024 * 1024):.1f}MB) "
                f"exceeds maximum of {max_mb:.0f}MB."
            ),
            field=field,
            context={"max_size_mb": max_mb, "actual_size": size},
        )


async def read_upload(file: UploadFile, field: str) -> PendingUpload:
    """Read and validate one file part, then close it."""
    try:
        content = await file.read()
    finally:
        await file.close()
    filename = file.filename or "upload"
    validate_size(field, filename, len(content))
    return PendingUpload(filename=filename, content=content)


async def read_uploads(files: Sequence[UploadFile], field: str) -> List[PendingUpload]:
    """Read every part of one form field, enforcing MAX_FILES_PER_FIELD."""
    if len(files) > settings.max_files_per_field:
        raise ValidationError(
            message=(
                f"Too many files for '{field}': {len(files)} "
                f"(maximum {settings.max_files_per_field})."
            ),
            field=field,
            context={"count": len(files), "max": settings.max_files_per_field},
        )
    return [await read_upload(f, field) for f in files]


async def upload_one(
    blob: BlobClient,
    pending: PendingUpload,
    folder: Optional[str] = None,
) -> UploadedBlob:
    return await blob.upload(pending.content, pending.filename, folder=folder)


async def upload_many(
    blob: BlobClient,
    pendings: Sequence[PendingUpload],
    folder: Optional[str] = None,
) -> List[UploadedBlob]:
    """
    Upload all parts concurrently.

    Returns:
        One UploadedBlob per input, in input order.

    Raises:
        The first upload failure (BlobStorageError). Uploads that already
        completed are left on the host.
    """
    if not pendings:
        return []
    results = await asyncio.gather(
        *(blob.upload(p.content, p.filename, folder=folder) for p in pendings)
    )
    logger.info("Uploaded %d file(s)%s", len(results), f" to {folder}" if folder else "")
    return list(results)
