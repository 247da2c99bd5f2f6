"""
SiteCMS Backend — ServicePage Service
=======================================

What:  Create, full replace, partial patch, list, get and delete for
       service pages.
How:   JSON-encoded sequences are decoded and shaped before any upload;
       uploads run concurrently; category images are zipped in with
       merge_categories(); patches go through the merge engine.
Who:   Called by routes/servicepages.py.
When:  Every request under /api/servicepage.

Document shape:
    {
        "servicetitle": "Plumbing",
        "serviceImage": "https://ik.imagekit.io/.../hero.png",
        "titleDescArray": [{"title": ..., "description": ...}],
        "categoryname":   [{"image": ..., "title": ..., "description": ...}]
    }
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorDatabase

from sitecms.database import DocumentStore, parse_object_id
from sitecms.exceptions import NotFoundError, ValidationError
from sitecms.models.entities import decode_json_list, is_blank
from sitecms.services.blob_base import BlobClient, UploadedBlob
from sitecms.services.merge_engine import (
    PatchDescriptor,
    apply_patch,
    merge_categories,
    normalize_categories,
    normalize_title_desc,
)
from sitecms.services.upload_service import PendingUpload, upload_many, upload_one

logger = logging.getLogger(__name__)

COLLECTION = "servicepages"
RESOURCE = "Service page"


def _decode_sequence(payload: Mapping[str, Any], name: str) -> List[Any]:
    raw = payload.get(name)
    if is_blank(raw):
        return []
    return decode_json_list(raw, name)


async def _upload_optional(
    blob: BlobClient, pending: Optional[PendingUpload]
) -> Optional[UploadedBlob]:
    if pending is None:
        return None
    return await upload_one(blob, pending)


class ServicePageService:
    """Business logic for /api/servicepage. Stateless."""

    def _store(self, db: AsyncIOMotorDatabase) -> DocumentStore:
        return DocumentStore(db[COLLECTION], resource="ServicePage")

    async def _upload_images(
        self,
        blob: BlobClient,
        service_image: Optional[PendingUpload],
        category_images: Sequence[PendingUpload],
    ):
        hero, categories = await asyncio.gather(
            _upload_optional(blob, service_image),
            upload_many(blob, category_images),
        )
        return hero, [c.url for c in categories]

    async def create(
        self,
        db: AsyncIOMotorDatabase,
        blob: BlobClient,
        payload: Mapping[str, Any],
        service_image: Optional[PendingUpload] = None,
        category_images: Sequence[PendingUpload] = (),
    ) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: missing servicetitle or undecodable sequences
        """
        servicetitle = payload.get("servicetitle")
        if is_blank(servicetitle):
            raise ValidationError(
                message="Missing required fields: servicetitle",
                context={"fields": ["servicetitle"]},
            )
        title_desc = normalize_title_desc(_decode_sequence(payload, "titleDescArray"))
        categories = normalize_categories(_decode_sequence(payload, "categoryname"))

        hero, category_urls = await self._upload_images(
            blob, service_image, category_images
        )

        document = {
            "servicetitle": str(servicetitle),
            "serviceImage": hero.url if hero else "",
            "titleDescArray": title_desc,
            "categoryname": merge_categories(categories, category_urls),
        }
        return await self._store(db).insert(document)

    async def replace(
        self,
        db: AsyncIOMotorDatabase,
        blob: BlobClient,
        page_id: str,
        payload: Mapping[str, Any],
        service_image: Optional[PendingUpload] = None,
        category_images: Sequence[PendingUpload] = (),
    ) -> Dict[str, Any]:
        """
        Full replacement of both sequences.

        servicetitle and serviceImage are kept from the stored document
        unless the request supplies new ones. Category images fall back to
        the stored image at the same position.
        """
        store = self._store(db)
        existing = await store.find_by_id(page_id)
        if existing is None:
            raise NotFoundError(resource=RESOURCE, resource_id=page_id)

        title_desc = normalize_title_desc(_decode_sequence(payload, "titleDescArray"))
        categories = normalize_categories(_decode_sequence(payload, "categoryname"))

        hero, category_urls = await self._upload_images(
            blob, service_image, category_images
        )
        previous_images = [
            (item or {}).get("image", "") for item in existing.get("categoryname") or []
        ]

        servicetitle = payload.get("servicetitle")
        fields = {
            "servicetitle": (
                existing.get("servicetitle", "") if is_blank(servicetitle) else str(servicetitle)
            ),
            "serviceImage": hero.url if hero else existing.get("serviceImage", ""),
            "titleDescArray": title_desc,
            "categoryname": merge_categories(categories, category_urls, previous_images),
        }
        updated = await store.find_by_id_and_update(page_id, fields)
        if updated is None:
            raise NotFoundError(resource=RESOURCE, resource_id=page_id)
        return updated

    async def patch(
        self,
        db: AsyncIOMotorDatabase,
        blob: BlobClient,
        page_id: str,
        patch: PatchDescriptor,
    ) -> Dict[str, Any]:
        """
        Apply one patch descriptor and persist the touched field.

        Raises:
            NotFoundError: unknown or malformed id (checked before the engine)
            InvalidPatchError: the descriptor was rejected (document untouched)
        """
        store = self._store(db)
        existing = await store.find_by_id(page_id)
        if existing is None:
            raise NotFoundError(resource=RESOURCE, resource_id=page_id)

        patched = await apply_patch(dict(existing), patch, blob)
        changed = {
            key: value
            for key, value in patched.items()
            if key != "_id" and existing.get(key) != value
        }
        if not changed:
            logger.info("Patch on ServicePage %s changed nothing", page_id)
            return existing

        updated = await store.find_by_id_and_update(page_id, changed)
        if updated is None:
            raise NotFoundError(resource=RESOURCE, resource_id=page_id)
        return updated

    async def list_all(self, db: AsyncIOMotorDatabase) -> List[Dict[str, Any]]:
        return await self._store(db).find()

    async def get(self, db: AsyncIOMotorDatabase, page_id: str) -> Dict[str, Any]:
        page = await self._store(db).find_by_id(page_id)
        if page is None:
            raise NotFoundError(resource=RESOURCE, resource_id=page_id)
        return page

    async def delete(self, db: AsyncIOMotorDatabase, page_id: str) -> Dict[str, Any]:
        if parse_object_id(page_id) is None:
            raise NotFoundError(resource=RESOURCE, resource_id=page_id)
        deleted = await self._store(db).find_by_id_and_delete(page_id)
        if deleted is None:
            raise NotFoundError(resource=RESOURCE, resource_id=page_id)
        return deleted


# Singleton instance
servicepage_service = ServicePageService()
