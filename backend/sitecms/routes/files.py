"""
SiteCMS Backend — Local File Route
====================================

What:  GET /api/files/{path} serves blobs written by LocalBlobClient.
Who:   <img>/<video> tags pointing at URLs returned with BLOB_BACKEND=local.
When:  Development only; with ImageKit the URLs point at the image host.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from sitecms.exceptions import NotFoundError
from sitecms.schemas.common import ErrorResponse
from sitecms.services.blob_base import BlobClient, get_blob_client
from sitecms.services.local_blob_service import LocalBlobClient

router = APIRouter(prefix="/api", tags=["Files"])


@router.get(
    "/files/{file_path:path}",
    summary="Serve locally stored uploads",
    responses={
        200: {"description": "Stored file"},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_file(
    file_path: str,
    blob: BlobClient = Depends(get_blob_client),
) -> FileResponse:
    """
    Security:
        LocalBlobClient.resolve() rejects paths escaping the storage root
        (e.g. ../../etc/passwd) with a 400.
    """
    if not isinstance(blob, LocalBlobClient):
        raise NotFoundError(resource="file", resource_id=file_path)

    full_path = blob.resolve(file_path)
    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    # Media type is guessed from the extension
    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
