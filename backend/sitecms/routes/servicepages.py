"""
SiteCMS Backend — ServicePage Route Handlers
==============================================

What:  /api/servicepage: create, full replace, per-field patch, list, get, delete.
How:   Reads JSON or form bodies, reads the image parts, delegates to
       ServicePageService.

Form fields:
    POST /add, PUT /update/{id}
        servicetitle, titleDescArray (JSON array), categoryname (JSON array)
        serviceImage    (file, at most 1)
        categoryImages  (files, at most MAX_FILES_PER_FIELD, zipped by position)

    PATCH /update/{id}, PATCH /update-point/{id}
        type, index, field, value     (see services/merge_engine.py)
        image                         (file, only for categoryname images)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from sitecms.database import get_database
from sitecms.exceptions import ValidationError
from sitecms.routes.payload import RequestPayload, read_payload
from sitecms.schemas.common import ERROR_RESPONSES, MessageResponse
from sitecms.services.blob_base import BlobClient, get_blob_client
from sitecms.services.merge_engine import PatchDescriptor
from sitecms.services.servicepage_service import servicepage_service
from sitecms.services.upload_service import PendingUpload, read_upload, read_uploads

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/servicepage", tags=["Service pages"])


async def _read_single(payload: RequestPayload, name: str) -> Optional[PendingUpload]:
    files = payload.files_for(name)
    if not files:
        return None
    if len(files) > 1:
        raise ValidationError(
            message=f"Only one file is accepted for '{name}'.",
            field=name,
            context={"count": len(files)},
        )
    return await read_upload(files[0], name)


@router.post(
    "/add",
    status_code=201,
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Create a service page",
)
async def create_page(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),
    blob: BlobClient = Depends(get_blob_client),
) -> MessageResponse:
    payload = await read_payload(request)
    service_image = await _read_single(payload, "serviceImage")
    category_images = await read_uploads(payload.files_for("categoryImages"), "categoryImages")
    page = await servicepage_service.create(
        db, blob, payload.fields, service_image, category_images
    )
    return MessageResponse(message="Service Page created successfully", data=page)


@router.get(
    "/get",
    response_model=MessageResponse,
    responses={500: ERROR_RESPONSES[500]},
    summary="List service pages",
)
async def list_pages(
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> MessageResponse:
    pages = await servicepage_service.list_all(db)
    return MessageResponse(message=f"Fetched {len(pages)} record(s)", data=pages)


@router.get(
    "/get/{page_id}",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Get one service page",
)
async def get_page(
    page_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> MessageResponse:
    page = await servicepage_service.get(db, page_id)
    return MessageResponse(message="Service Page fetched successfully", data=page)


@router.put(
    "/update/{page_id}",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Replace a service page",
    description=(
        "Replaces both sequences. Category images fall back, per position, from "
        "the uploaded file to an http(s) URL in the payload to the stored image."
    ),
)
async def replace_page(
    page_id: str,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),
    blob: BlobClient = Depends(get_blob_client),
) -> MessageResponse:
    payload = await read_payload(request)
    service_image = await _read_single(payload, "serviceImage")
    category_images = await read_uploads(payload.files_for("categoryImages"), "categoryImages")
    page = await servicepage_service.replace(
        db, blob, page_id, payload.fields, service_image, category_images
    )
    return MessageResponse(message="Service Page updated successfully", data=page)


async def _patch_page(
    page_id: str,
    request: Request,
    db: AsyncIOMotorDatabase,
    blob: BlobClient,
) -> MessageResponse:
    payload = await read_payload(request)
    image = await _read_single(payload, "image")
    fields = payload.fields
    patch = PatchDescriptor(
        type=fields.get("type"),
        index=fields.get("index"),
        field=fields.get("field"),
        value=fields.get("value"),
        file_bytes=image.content if image else None,
        file_name=image.filename if image else None,
    )
    logger.info("Patching ServicePage %s: %r", page_id, patch)
    page = await servicepage_service.patch(db, blob, page_id, patch)
    return MessageResponse(message="Service Page updated successfully", data=page)


@router.patch(
    "/update/{page_id}",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Patch one field or sequence element of a service page",
)
async def patch_page(
    page_id: str,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),
    blob: BlobClient = Depends(get_blob_client),
) -> MessageResponse:
    return await _patch_page(page_id, request, db, blob)


@router.patch(
    "/update-point/{page_id}",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Patch one field or sequence element of a service page",
)
async def patch_page_point(
    page_id: str,
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_database),
    blob: BlobClient = Depends(get_blob_client),
) -> MessageResponse:
    return await _patch_page(page_id, request, db, blob)


@router.delete(
    "/delete/{page_id}",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Delete a service page",
)
async def delete_page(
    page_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> MessageResponse:
    page = await servicepage_service.delete(db, page_id)
    return MessageResponse(message="Service Page deleted successfully", data=page)
