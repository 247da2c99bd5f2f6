"""
SiteCMS Backend — Abstract Blob Upload Client
===============================================

What:  Abstract base class defining the contract for binary upload hosts.
How:   Concrete implementations inherit from BlobClient and implement
       upload(), delete() and health_check(). build_blob_client() picks
       one from configuration.
Who:   Built once in the app lifespan and handed to services through the
       get_blob_client dependency; tests substitute a fake.
When:  Whenever a request carries file parts, and when a video record is
       deleted.

Implementations:
    - ImageKitBlobClient: ImageKit REST API over httpx (default)
    - LocalBlobClient:    files on local disk, served from /api/files
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from sitecms.config import Settings


@dataclass(frozen=True)
class UploadedBlob:
    """Result of a successful upload: public URL plus the host's handle."""

    url: str
    file_id: str


class BlobClient(ABC):
    """
    Abstract interface for the upload host.

    Contract:
        - upload() returns the public URL and an opaque handle for delete()
        - every host-specific failure is wrapped in BlobStorageError
        - no retries: one call, one attempt
    """

    @abstractmethod
    async def upload(
        self,
        content: bytes,
        filename: str,
        folder: Optional[str] = None,
    ) -> UploadedBlob:
        """
        Store `content` under `filename` (optionally inside `folder`).

        Raises:
            BlobStorageError: the host rejected or failed the upload.
        """
        ...

    @abstractmethod
    async def delete(self, file_id: str) -> None:
        """
        Remove a previously uploaded blob by its handle.

        Raises:
            BlobStorageError: the host failed the delete.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the host is reachable and the credentials work."""
        ...

    async def close(self) -> None:
        """Release pooled connections. Called during application shutdown."""
        return None


def build_blob_client(config: Settings) -> BlobClient:
    """Construct the blob client selected by `config.blob_backend`."""
    if config.blob_backend == "local":
        from sitecms.services.local_blob_service import LocalBlobClient

        return LocalBlobClient(
            storage_root=config.storage_root,
            public_base_url=config.public_base_url,
        )

    from sitecms.services.imagekit_service import ImageKitBlobClient

    return ImageKitBlobClient(
        private_key=config.imagekit_private_key,
        upload_url=config.imagekit_upload_url,
        api_url=config.imagekit_api_url,
        url_endpoint=config.imagekit_url_endpoint,
        timeout=config.blob_timeout_seconds,
    )


def get_blob_client(request: Request) -> BlobClient:
    """FastAPI dependency: the blob client created in the lifespan."""
    return request.app.state.blob_client
