"""
SiteCMS Backend — Generic Resource Service
============================================

What:  Create / list / get / update / delete for every flat entity.
How:   Driven by an EntityDefinition: coerce the payload with its field
       table, upload attached files first, then run one DocumentStore call.
Who:   Called by the routers built in routes/resources.py.
When:  Every request to /api/box, /api/item, /api/testimonial, ...

Workflow (create):
    ┌──────────┐    ┌──────────┐    ┌──────────────┐    ┌──────────┐
    │  Coerce  │───▶│  Check   │───▶│  Upload      │───▶│  Insert  │
    │  fields  │    │  blob    │    │  (parallel)  │    │  (Mongo) │
    └──────────┘    └──────────┘    └──────────────┘    └──────────┘

    A failure at any step aborts the request before the insert.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Sequence

from motor.motor_asyncio import AsyncIOMotorDatabase

from sitecms.database import DocumentStore, parse_object_id
from sitecms.exceptions import NotFoundError, ValidationError
from sitecms.models.entities import EntityDefinition
from sitecms.services.blob_base import BlobClient
from sitecms.services.upload_service import PendingUpload, upload_many, upload_one

logger = logging.getLogger(__name__)


class ResourceService:
    """
    Stateless service for one entity definition.

    Each call receives the database and blob client (injected by FastAPI),
    so a single instance is shared by all requests of a router.
    """

    def __init__(self, definition: EntityDefinition):
        self.definition = definition

    def _store(self, db: AsyncIOMotorDatabase) -> DocumentStore:
        return DocumentStore(db[self.definition.collection], resource=self.definition.name)

    def _check_files(self, files: Sequence[PendingUpload], required: bool) -> None:
        blob_field = self.definition.blob
        if blob_field is None:
            return
        if required and blob_field.required and not files:
            raise ValidationError(
                message=f"File field '{blob_field.form_field}' is required.",
                field=blob_field.form_field,
            )
        if not blob_field.many and len(files) > 1:
            raise ValidationError(
                message=f"Only one file is accepted for '{blob_field.form_field}'.",
                field=blob_field.form_field,
                context={"count": len(files)},
            )

    async def _attach(
        self, blob: BlobClient, files: Sequence[PendingUpload]
    ) -> Dict[str, Any]:
        """Upload the files and return the document fields that reference them."""
        blob_field = self.definition.blob
        if blob_field.many:
            uploaded = await upload_many(blob, files, folder=blob_field.folder)
            return {blob_field.target: [u.url for u in uploaded]}

        result = await upload_one(blob, files[0], folder=blob_field.folder)
        fields = {blob_field.target: result.url}
        if blob_field.handle_field:
            fields[blob_field.handle_field] = result.file_id
        return fields

    async def create(
        self,
        db: AsyncIOMotorDatabase,
        blob: BlobClient,
        payload: Mapping[str, Any],
        files: Sequence[PendingUpload] = (),
    ) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: missing required field/file or bad value (400)
            BlobStorageError / DatabaseError: upstream failure (500)
        """
        document = self.definition.coerce(payload)
        self._check_files(files, required=True)

        blob_field = self.definition.blob
        if blob_field is not None:
            if files:
                document.update(await self._attach(blob, files))
            else:
                document[blob_field.target] = [] if blob_field.many else ""

        if self.definition.timestamps:
            now = datetime.now(timezone.utc)
            document["createdAt"] = now
            document["updatedAt"] = now

        return await self._store(db).insert(document)

    async def list_all(self, db: AsyncIOMotorDatabase) -> List[Dict[str, Any]]:
        return await self._store(db).find(sort=self.definition.sort)

    async def get(self, db: AsyncIOMotorDatabase, record_id: str) -> Dict[str, Any]:
        record = await self._store(db).find_by_id(record_id)
        if record is None:
            raise NotFoundError(resource=self.definition.label, resource_id=record_id)
        return record

    async def update(
        self,
        db: AsyncIOMotorDatabase,
        blob: BlobClient,
        record_id: str,
        payload: Mapping[str, Any],
        files: Sequence[PendingUpload] = (),
    ) -> Dict[str, Any]:
        """
        Persist only the fields explicitly supplied.

        An attached file replaces the stored reference. The record is looked
        up before any upload so a bad id never reaches the blob host.

        Raises:
            NotFoundError: unknown or malformed id (404)
            ValidationError: nothing to update, or a bad value (400)
        """
        store = self._store(db)
        if parse_object_id(record_id) is None:
            raise NotFoundError(resource=self.definition.label, resource_id=record_id)

        fields = self.definition.coerce(payload, partial=True)
        self._check_files(files, required=False)
        if not fields and not files:
            raise ValidationError(
                message="No fields supplied to update.",
                context={"accepted": [f.name for f in self.definition.fields]},
            )

        if files:
            if await store.find_by_id(record_id) is None:
                raise NotFoundError(resource=self.definition.label, resource_id=record_id)
            fields.update(await self._attach(blob, files))

        if self.definition.timestamps:
            fields["updatedAt"] = datetime.now(timezone.utc)

        updated = await store.find_by_id_and_update(record_id, fields)
        if updated is None:
            raise NotFoundError(resource=self.definition.label, resource_id=record_id)
        return updated

    async def delete(
        self, db: AsyncIOMotorDatabase, blob: BlobClient, record_id: str
    ) -> Dict[str, Any]:
        """
        Remove a record. When the entity keeps the host's file handle, the
        remote blob is deleted first.

        Raises:
            NotFoundError: unknown or malformed id, including a repeat delete
        """
        store = self._store(db)
        blob_field = self.definition.blob

        if blob_field is not None and blob_field.handle_field:
            existing = await store.find_by_id(record_id)
            if existing is None:
                raise NotFoundError(resource=self.definition.label, resource_id=record_id)
            handle = existing.get(blob_field.handle_field)
            if handle:
                await blob.delete(handle)
            else:
                logger.warning(
                    "%s %s has no %s; skipping remote delete",
                    self.definition.name,
                    record_id,
                    blob_field.handle_field,
                )

        deleted = await store.find_by_id_and_delete(record_id)
        if deleted is None:
            raise NotFoundError(resource=self.definition.label, resource_id=record_id)
        return deleted
