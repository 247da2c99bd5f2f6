"""
SiteCMS Backend — Resource Route Factory
==========================================

What:  Builds one APIRouter per EntityDefinition (Box, Item, Testimonial, ...).
How:   Each router reads the request payload, reads the entity's file parts,
       and delegates to a ResourceService bound to the definition.
Who:   main.create_app() includes every router in `routers`.

Routes per entity (prefix from the definition):
    POST   {create_path}     create                      201
    GET    {list_path}       list (empty list allowed)   200
    GET    /get/{id}         one record                  200 / 404
    PUT    /update/{id}      partial field update        200 / 400 / 404
    DELETE /delete/{id}      remove                      200 / 404

    VideoUpload has no update route.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from sitecms.database import get_database
from sitecms.models.entities import ENTITIES, EntityDefinition
from sitecms.routes.payload import RequestPayload, read_payload
from sitecms.schemas.common import ERROR_RESPONSES, MessageResponse
from sitecms.services.blob_base import BlobClient, get_blob_client
from sitecms.services.resource_service import ResourceService
from sitecms.services.upload_service import PendingUpload, read_uploads

logger = logging.getLogger(__name__)


async def _read_files(
    definition: EntityDefinition, payload: RequestPayload
) -> List[PendingUpload]:
    if definition.blob is None:
        return []
    form_field = definition.blob.form_field
    return await read_uploads(payload.files_for(form_field), form_field)


def build_router(definition: EntityDefinition) -> APIRouter:
    """Create the CRUD router for one entity definition."""
    router = APIRouter(prefix=definition.prefix, tags=[definition.label])
    service = ResourceService(definition)
    label = definition.label

    @router.post(
        definition.create_path,
        status_code=201,
        response_model=MessageResponse,
        responses=ERROR_RESPONSES,
        summary=f"Create a {label.lower()}",
    )
    async def create_record(
        request: Request,
        db: AsyncIOMotorDatabase = Depends(get_database),
        blob: BlobClient = Depends(get_blob_client),
    ) -> MessageResponse:
        payload = await read_payload(request)
        files = await _read_files(definition, payload)
        record = await service.create(db, blob, payload.fields, files)
        return MessageResponse(message=f"{label} created successfully", data=record)

    @router.get(
        definition.list_path,
        response_model=MessageResponse,
        responses={500: ERROR_RESPONSES[500]},
        summary=f"List every {label.lower()}",
    )
    async def list_records(
        db: AsyncIOMotorDatabase = Depends(get_database),
    ) -> MessageResponse:
        records = await service.list_all(db)
        return MessageResponse(message=f"Fetched {len(records)} record(s)", data=records)

    @router.get(
        "/get/{record_id}",
        response_model=MessageResponse,
        responses=ERROR_RESPONSES,
        summary=f"Get one {label.lower()} by id",
    )
    async def get_record(
        record_id: str,
        db: AsyncIOMotorDatabase = Depends(get_database),
    ) -> MessageResponse:
        record = await service.get(db, record_id)
        return MessageResponse(message=f"{label} fetched successfully", data=record)

    if definition.updatable:

        @router.put(
            "/update/{record_id}",
            response_model=MessageResponse,
            responses=ERROR_RESPONSES,
            summary=f"Update a {label.lower()}",
        )
        async def update_record(
            record_id: str,
            request: Request,
            db: AsyncIOMotorDatabase = Depends(get_database),
            blob: BlobClient = Depends(get_blob_client),
        ) -> MessageResponse:
            payload = await read_payload(request)
            files = await _read_files(definition, payload)
            record = await service.update(db, blob, record_id, payload.fields, files)
            return MessageResponse(message=f"{label} updated successfully", data=record)

    @router.delete(
        "/delete/{record_id}",
        response_model=MessageResponse,
        responses=ERROR_RESPONSES,
        summary=f"Delete a {label.lower()}",
    )
    async def delete_record(
        record_id: str,
        db: AsyncIOMotorDatabase = Depends(get_database),
        blob: BlobClient = Depends(get_blob_client),
    ) -> MessageResponse:
        record = await service.delete(db, blob, record_id)
        return MessageResponse(message=f"{label} deleted successfully", data=record)

    return router


routers = [build_router(definition) for definition in ENTITIES]
