"""
SiteCMS Backend — ImageKit Blob Client
========================================

What:  BlobClient implementation forwarding uploads to the ImageKit REST API.
How:   One pooled httpx.AsyncClient with HTTP Basic auth (private key as
       username, empty password). Uploads are multipart POSTs; deletes go
       to the files API by fileId.
Who:   Built by build_blob_client() when BLOB_BACKEND=imagekit.
When:  Every request that carries file parts, and video deletion.

Endpoints used:
    POST   {upload_url}                 file, fileName, useUniqueFileName, folder
                                        → {"url": ..., "fileId": ..., ...}
    DELETE {api_url}/files/{fileId}     → 204
    GET    {api_url}/files?limit=1      → 200 (health probe)

Failure handling:
    Transport errors and non-2xx answers become BlobStorageError. There is
    no retry; the caller aborts the request.
"""

import logging
import time
from typing import Optional

import httpx

from sitecms.exceptions import BlobStorageError
from sitecms.services.blob_base import BlobClient, UploadedBlob

logger = logging.getLogger(__name__)


class ImageKitBlobClient(BlobClient):
    """ImageKit upload host."""

    def __init__(
        self,
        private_key: str,
        upload_url: str = "https://upload.imagekit.io/api/v1/files/upload",
        api_url: str = "https://api.imagekit.io/v1",
        url_endpoint: str = "",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            private_key: ImageKit private API key
            upload_url: Upload endpoint
            api_url: Management API base URL (no trailing slash)
            url_endpoint: Delivery base used when a response has filePath but no url
            timeout: Seconds allowed for a single host call
            transport: Override the httpx transport (tests use MockTransport)
        """
        self.upload_url = upload_url
        self.api_url = api_url.rstrip("/")
        self.url_endpoint = url_endpoint.rstrip("/")
        self._client = httpx.AsyncClient(
            auth=(private_key, ""),
            timeout=timeout,
            transport=transport,
        )
        logger.info("ImageKitBlobClient initialized (upload_url=%s)", upload_url)

    async def upload(
        self,
        content: bytes,
        filename: str,
        folder: Optional[str] = None,
    ) -> UploadedBlob:
        data = {"fileName": filename, "useUniqueFileName": "true"}
        if folder:
            data["folder"] = folder

        start_time = time.perf_counter()
        try:
            response = await self._client.post(
                self.upload_url,
                data=data,
                files={"file": (filename, content)},
            )
        except httpx.HTTPError as e:
            logger.error("ImageKit upload of %s failed: %s", filename, str(e))
            raise BlobStorageError(
                context={"filename": filename, "error_type": type(e).__name__}
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        if response.status_code >= 400:
            logger.error(
                "ImageKit rejected upload of %s: HTTP %d %s",
                filename,
                response.status_code,
                response.text[:200],
            )
            raise BlobStorageError(
                context={"filename": filename, "status": response.status_code}
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise BlobStorageError(
                message="File upload returned a malformed response.",
                context={"filename": filename, "status": response.status_code},
            ) from e
        if not isinstance(payload, dict):
            raise BlobStorageError(
                message="File upload returned a malformed response.",
                context={"filename": filename, "type": type(payload).__name__},
            )

        url = payload.get("url")
        if not url and payload.get("filePath") and self.url_endpoint:
            url = self.url_endpoint + "/" + str(payload["filePath"]).lstrip("/")
        file_id = payload.get("fileId")
        if not url or not file_id:
            raise BlobStorageError(
                message="File upload returned an incomplete response.",
                context={"filename": filename, "keys": sorted(payload)},
            )

        logger.info(
            "Uploaded %s (%d bytes) to ImageKit in %.0fms",
            filename,
            len(content),
            duration_ms,
        )
        return UploadedBlob(url=url, file_id=file_id)

    async def delete(self, file_id: str) -> None:
        try:
            response = await self._client.delete(f"{self.api_url}/files/{file_id}")
        except httpx.HTTPError as e:
            logger.error("ImageKit delete of %s failed: %s", file_id, str(e))
            raise BlobStorageError(
                message="Could not delete the stored file. Please try again later.",
                context={"file_id": file_id, "error_type": type(e).__name__},
            ) from e

        if response.status_code == 404:
            # Already gone on the host side
            logger.warning("ImageKit file %s not found during delete", file_id)
            return
        if response.status_code >= 400:
            logger.error(
                "ImageKit rejected delete of %s: HTTP %d", file_id, response.status_code
            )
            raise BlobStorageError(
                message="Could not delete the stored file. Please try again later.",
                context={"file_id": file_id, "status": response.status_code},
            )
        logger.info("Deleted ImageKit file %s", file_id)

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(
                f"{self.api_url}/files", params={"limit": 1}
            )
        except httpx.HTTPError as e:
            logger.warning("ImageKit health check failed: %s", str(e))
            return False
        return response.status_code == 200

    async def close(self) -> None:
        await self._client.aclose()
