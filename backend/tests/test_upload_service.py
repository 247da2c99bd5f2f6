"""
SiteCMS Backend — Upload Helper Tests
=======================================

What:  Tests for reading/validating file parts and forwarding them.
How:   Starlette UploadFile over in-memory buffers, the recording blob client.
"""

import io
from unittest.mock import patch

import pytest
from starlette.datastructures import UploadFile

from sitecms.exceptions import BlobStorageError, ValidationError
from sitecms.services.upload_service import (
    PendingUpload,
    read_upload,
    read_uploads,
    upload_many,
    validate_size,
)


def make_upload(content: bytes, filename: str = "a.png") -> UploadFile:
    return UploadFile(file=io.BytesIO(content), filename=filename)


class TestValidation:

    def test_empty_part_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            validate_size("image", "a.png", 0)

    def test_oversized_part_rejected(self):
        with patch("sitecms.services.upload_service.settings") as mock_settings:
            mock_settings.max_upload_size = 1024 * 1024
            with pytest.raises(ValidationError, match="exceeds"):
                validate_size("image", "a.png", 1024 * 1024 + 1)

    @pytest.mark.asyncio
    async def test_read_upload_returns_content(self, sample_image_bytes):
        pending = await read_upload(make_upload(sample_image_bytes, "tap.jpg"), "image")
        assert pending == PendingUpload(filename="tap.jpg", content=sample_image_bytes)

    @pytest.mark.asyncio
    async def test_too_many_files_rejected(self):
        with patch("sitecms.services.upload_service.settings") as mock_settings:
            mock_settings.max_files_per_field = 2
            with pytest.raises(ValidationError, match="Too many files"):
                await read_uploads([make_upload(b"x") for _ in range(3)], "images")


class TestUploadMany:

    @pytest.mark.asyncio
    async def test_results_follow_input_order(self, fake_blob):
        pendings = [PendingUpload(filename=f"{n}.png", content=b"x") for n in range(5)]

        results = await upload_many(fake_blob, pendings, folder="/carousel")

        assert [r.url for r in results] == [
            f"https://ik.test/carousel/{n + 1}-{n}.png" for n in range(5)
        ]

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_calls(self, fake_blob):
        assert await upload_many(fake_blob, []) == []
        assert fake_blob.uploads == []

    @pytest.mark.asyncio
    async def test_any_failure_aborts(self, fake_blob):
        fake_blob.fail_uploads = True
        with pytest.raises(BlobStorageError):
            await upload_many(fake_blob, [PendingUpload(filename="a.png", content=b"x")])
