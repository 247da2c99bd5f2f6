"""
SiteCMS Backend — Document Store Client
=========================================

What:  MongoDB client lifecycle, the FastAPI database dependency, and the
       per-collection DocumentStore used by every service.
How:   One AsyncIOMotorClient per process (created in the app lifespan).
       DocumentStore wraps a single collection and exposes the five store
       operations the handlers need; driver errors become DatabaseError.
Who:   Services receive the database through Depends(get_database) and
       build a DocumentStore for their collection.
When:  Client is connected at startup and closed at shutdown; stores are
       cheap wrappers created per call.

Identifiers:
    Documents are keyed by ObjectId. Ids that are not valid ObjectIds
    resolve to "no document" so callers answer 404 instead of 500.
    Documents leave this module with `_id` rendered as a string.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from sitecms.config import settings
from sitecms.exceptions import DatabaseError

logger = logging.getLogger(__name__)

SortSpec = Sequence[Tuple[str, int]]

_client: Optional[AsyncIOMotorClient] = None


# ── Client Lifecycle ──────────────────────────────────────────────────────
def connect_client(url: Optional[str] = None) -> AsyncIOMotorClient:
    """
    Create the process-wide motor client.

    Motor connects lazily, so this never blocks; the first operation (or
    the health check ping) surfaces connection problems.
    """
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(
            url or settings.mongo_url,
            serverSelectionTimeoutMS=settings.mongo_server_selection_timeout_ms,
            tz_aware=True,
        )
        logger.info("MongoDB client created for database '%s'", settings.mongo_db_name)
    return _client


async def dispose_client() -> None:
    """Close all pooled connections. Called during application shutdown."""
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB client closed")


def get_database() -> AsyncIOMotorDatabase:
    """
    FastAPI dependency returning the application database.

    Raises:
        DatabaseError: the client has not been connected (lifespan not run).
    """
    if _client is None:
        raise DatabaseError(
            message="The database is not available. Please try again later.",
            context={"reason": "client not connected"},
        )
    return _client[settings.mongo_db_name]


async def ping(db: AsyncIOMotorDatabase) -> bool:
    """Lightweight connectivity probe for the health endpoint."""
    try:
        await db.command("ping")
        return True
    except PyMongoError as e:
        logger.warning("MongoDB ping failed: %s", str(e))
        return False


# ── Helpers ───────────────────────────────────────────────────────────────
def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for `value`, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize_document(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Render `_id` as a string. Everything else is JSON-encodable by FastAPI."""
    if doc is None:
        return None
    out = dict(doc)
    if "_id" in out:
        out["_id"] = str(out["_id"])
    return out


# ── Document Store ────────────────────────────────────────────────────────
class DocumentStore:
    """
    Thin async wrapper over one MongoDB collection.

    Operations:
        insert(doc)                       → stored document
        find(filter, sort)                → list of documents
        find_by_id(id)                    → document | None
        find_by_id_and_update(id, fields) → updated document | None
        find_by_id_and_delete(id)         → deleted document | None

    Concurrency control is MongoDB's: last write wins, no version tokens.
    """

    def __init__(self, collection: AsyncIOMotorCollection, resource: str = "document"):
        self.collection = collection
        self.resource = resource

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PyMongoError as e:
            logger.error(
                "MongoDB %s on %s failed: %s", operation, self.resource, str(e)
            )
            raise DatabaseError(
                context={
                    "operation": operation,
                    "resource": self.resource,
                    "error_type": type(e).__name__,
                }
            ) from e

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        document = dict(doc)
        with self._guard("insert"):
            result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info("Inserted %s %s", self.resource, result.inserted_id)
        return serialize_document(document)

    async def find(
        self,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        with self._guard("find"):
            cursor = self.collection.find(filter or {})
            if sort:
                cursor = cursor.sort(list(sort))
            docs = await cursor.to_list(length=None)
        return [serialize_document(d) for d in docs]

    async def find_by_id(self, doc_id: Any) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(doc_id)
        if oid is None:
            return None
        with self._guard("find_by_id"):
            doc = await self.collection.find_one({"_id": oid})
        return serialize_document(doc)

    async def find_by_id_and_update(
        self, doc_id: Any, fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Apply `$set` with `fields` and return the document after the update."""
        oid = parse_object_id(doc_id)
        if oid is None:
            return None
        update = {k: v for k, v in fields.items() if k != "_id"}
        with self._guard("find_by_id_and_update"):
            doc = await self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        if doc is not None:
            logger.info("Updated %s %s (%d fields)", self.resource, oid, len(update))
        return serialize_document(doc)

    async def find_by_id_and_delete(self, doc_id: Any) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(doc_id)
        if oid is None:
            return None
        with self._guard("find_by_id_and_delete"):
            doc = await self.collection.find_one_and_delete({"_id": oid})
        if doc is not None:
            logger.info("Deleted %s %s", self.resource, oid)
        return serialize_document(doc)
