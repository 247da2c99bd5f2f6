"""
SiteCMS Backend — Local Disk Blob Client
==========================================

What:  BlobClient implementation storing uploads on the local file system.
How:   Writes to date-organized directories with UUID filenames and returns
       a URL served by GET /api/files/{path}. The relative path doubles as
       the file handle.
Who:   Built by build_blob_client() when BLOB_BACKEND=local.
When:  Development machines and offline demos without ImageKit credentials.

Directory Structure:
    storage/
    ├── videos/            ← folder passed by the caller
    │   └── 2024/01/15/a1b2c3d4-....mp4
    └── 2024/01/15/e5f6g7h8-....png

Filenames never contain client input (only the extension survives), so a
crafted filename cannot escape the storage root.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles

from sitecms.exceptions import BlobStorageError, ValidationError
from sitecms.services.blob_base import BlobClient, UploadedBlob

logger = logging.getLogger(__name__)


class LocalBlobClient(BlobClient):
    """Stores blobs below `storage_root`."""

    def __init__(self, storage_root: str, public_base_url: str = ""):
        """
        Args:
            storage_root: Directory that receives uploads (created if missing)
            public_base_url: Prefix for returned URLs, e.g. http://localhost:5000
        """
        self.storage_root = Path(storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")
        logger.info("LocalBlobClient initialized with storage_root=%s", self.storage_root)

    def _folder_parts(self, folder: Optional[str]) -> Tuple[str, ...]:
        if not folder:
            return ()
        parts = tuple(p for p in folder.strip("/").split("/") if p)
        if any(p in {".", ".."} for p in parts):
            raise ValidationError(message="Invalid upload folder", field="folder")
        return parts

    def _generate_storage_path(
        self, filename: str, folder: Optional[str]
    ) -> Tuple[Path, str]:
        """
        Creates [folder/]YYYY/MM/DD/<uuid>.<ext>.
        Returns: Tuple of (absolute_path, relative_path_from_storage_root).
        """
        extension = Path(filename).suffix.lower()
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        unique_name = f"{uuid.uuid4()}{extension}"
        relative_path = "/".join((*self._folder_parts(folder), date_dir, unique_name))
        return self.storage_root / relative_path, relative_path

    def resolve(self, relative_path: str) -> Path:
        """
        Map a handle back to an absolute path inside the storage root.

        Raises:
            ValidationError: the path escapes the storage root.
        """
        full_path = (self.storage_root / relative_path).resolve()
        if not full_path.is_relative_to(self.storage_root):
            raise ValidationError(message="Invalid file path", field="path")
        return full_path

    async def upload(
        self,
        content: bytes,
        filename: str,
        folder: Optional[str] = None,
    ) -> UploadedBlob:
        absolute_path, relative_path = self._generate_storage_path(filename, folder)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise BlobStorageError(
                message="Failed to save uploaded file. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            ) from e

        logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return UploadedBlob(
            url=f"{self.public_base_url}/api/files/{relative_path}",
            file_id=relative_path,
        )

    async def delete(self, file_id: str) -> None:
        path = self.resolve(file_id)
        try:
            if path.exists():
                os.remove(path)
                logger.info("Deleted file: %s", file_id)
            else:
                logger.debug("Delete: file already gone: %s", file_id)
        except OSError as e:
            logger.error("Failed to delete file %s: %s", file_id, str(e))
            raise BlobStorageError(
                message="Could not delete the stored file. Please try again later.",
                context={"file_id": file_id, "os_error": str(e)},
            ) from e

    async def health_check(self) -> bool:
        return self.storage_root.is_dir() and os.access(self.storage_root, os.W_OK)
