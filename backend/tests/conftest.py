"""
SiteCMS Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   An in-memory stand-in for the motor database and a recording blob
       client are injected through FastAPI dependency overrides, so no
       MongoDB server or ImageKit account is needed.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── fake_db: FakeDatabase (collections created on first access)
    ├── fake_blob: FakeBlobClient (records uploads and deletes)
    ├── temp_storage: Temporary directory for local blob tests
    ├── sample_image_bytes: Tiny JPEG for upload tests
    └── test_client: HTTPX AsyncClient bound to a fresh app
"""

import copy
import os
import tempfile
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

# Settings are read at import time; override them before any sitecms import
os.environ["MONGO_URL"] = "mongodb://localhost:27017"
os.environ["MONGO_DB_NAME"] = "sitecms_test"
os.environ["BLOB_BACKEND"] = "local"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="sitecms_test_")
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from pymongo import ReturnDocument

from sitecms.database import get_database
from sitecms.exceptions import BlobStorageError
from sitecms.services.blob_base import BlobClient, UploadedBlob, get_blob_client


# ══════════════════════════════════════════════════════════════════════════
# In-memory MongoDB stand-ins
# ══════════════════════════════════════════════════════════════════════════

def _matches(doc: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    return all(doc.get(key) == value for key, value in (filter or {}).items())


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs

    def sort(self, keys):
        # Apply the least significant key first; list.sort is stable
        for key, direction in reversed(list(keys)):
            self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    async def to_list(self, length=None):
        docs = [copy.deepcopy(d) for d in self._docs]
        return docs if length is None else docs[:length]


class FakeCollection:
    """Implements the subset of AsyncIOMotorCollection used by DocumentStore."""

    def __init__(self, name: str):
        self.name = name
        self.docs: List[Dict[str, Any]] = []

    async def insert_one(self, document):
        stored = copy.deepcopy(document)
        stored["_id"] = ObjectId()
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    def find(self, filter=None):
        return FakeCursor([d for d in self.docs if _matches(d, filter)])

    async def find_one(self, filter=None):
        for doc in self.docs:
            if _matches(doc, filter):
                return copy.deepcopy(doc)
        return None

    async def find_one_and_update(self, filter, update, return_document=ReturnDocument.BEFORE):
        for doc in self.docs:
            if _matches(doc, filter):
                before = copy.deepcopy(doc)
                doc.update(copy.deepcopy(update.get("$set", {})))
                return copy.deepcopy(doc) if return_document == ReturnDocument.AFTER else before
        return None

    async def find_one_and_delete(self, filter):
        for position, doc in enumerate(self.docs):
            if _matches(doc, filter):
                return self.docs.pop(position)
        return None


class FakeDatabase:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}
        self.ping_ok = True

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def command(self, name: str):
        from pymongo.errors import ServerSelectionTimeoutError

        if not self.ping_ok:
            raise ServerSelectionTimeoutError("no servers available")
        return {"ok": 1.0}


# ══════════════════════════════════════════════════════════════════════════
# Recording blob client
# ══════════════════════════════════════════════════════════════════════════

class FakeBlobClient(BlobClient):
    """Returns deterministic URLs: https://ik.test/<folder>/<n>-<filename>."""

    def __init__(self):
        self.uploads: List[Dict[str, Any]] = []
        self.deleted: List[str] = []
        self.fail_uploads = False
        self.healthy = True

    async def upload(self, content, filename, folder=None):
        if self.fail_uploads:
            raise BlobStorageError(context={"filename": filename})
        n = len(self.uploads) + 1
        self.uploads.append({"content": content, "filename": filename, "folder": folder})
        prefix = (folder or "").strip("/")
        path = f"{prefix}/{n}-{filename}" if prefix else f"{n}-{filename}"
        return UploadedBlob(url=f"https://ik.test/{path}", file_id=f"file-{n}")

    async def delete(self, file_id):
        self.deleted.append(file_id)

    async def health_check(self):
        return self.healthy


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def fake_blob():
    return FakeBlobClient()


@pytest.fixture
def temp_storage(tmp_path):
    """A fresh storage directory per test (pytest cleans up tmp_path)."""
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """Smallest JPEG-looking payload: SOI + JFIF header + EOI."""
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest_asyncio.fixture
async def test_client(fake_db, fake_blob):
    """
    HTTPX AsyncClient talking to a fresh app through ASGITransport.

    The lifespan is not run, so no MongoDB client or ImageKit client is
    created; the fakes are injected through dependency overrides.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from sitecms.main import create_app

    app = create_app()
    app.dependency_overrides[get_database] = lambda: fake_db
    app.dependency_overrides[get_blob_client] = lambda: fake_blob
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
