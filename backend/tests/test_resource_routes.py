"""
SiteCMS Backend — Resource Endpoint Tests
===========================================

What:  HTTP-level tests for the routers built from entity definitions.
How:   httpx AsyncClient over ASGITransport with the in-memory database and
       recording blob client from conftest.py.

Test Strategy:
    ✅ Create → get-by-id round trip (JSON and multipart bodies)
    ✅ Delete → get → delete again yields 404 twice, never 500
    ✅ Missing required fields / files → 400
    ✅ Rating bounds, malformed JSON arrays → 400
    ✅ Carousel uploads keep input order
    ✅ Video delete removes the remote blob by its stored handle
"""

import json

import pytest

MISSING_ID = "65a1f0c2e4b0a1b2c3d4e5f6"


def box_payload(**overrides):
    payload = {"boxNo": "1", "count": "120+", "title": "Clients", "description": "Happy"}
    payload.update(overrides)
    return payload


class TestBoxEndpoints:

    @pytest.mark.asyncio
    async def test_create_then_get_round_trip(self, test_client):
        created = await test_client.post("/api/box/add", json=box_payload())
        assert created.status_code == 201
        record = created.json()["data"]
        assert isinstance(record["_id"], str)

        fetched = await test_client.get(f"/api/box/get/{record['_id']}")
        assert fetched.status_code == 200
        data = fetched.json()["data"]
        for key, value in box_payload().items():
            assert data[key] == value

    @pytest.mark.asyncio
    async def test_form_body_is_accepted(self, test_client):
        response = await test_client.post("/api/box/add", data=box_payload(count="7"))
        assert response.status_code == 201
        assert response.json()["data"]["count"] == "7"

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self, test_client, fake_db):
        response = await test_client.post("/api/box/add", json={"boxNo": "1", "title": ""})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert set(body["details"]["fields"]) == {"count", "title", "description"}
        assert fake_db["boxes"].docs == []

    @pytest.mark.asyncio
    async def test_unknown_fields_are_ignored(self, test_client):
        response = await test_client.post("/api/box/add", json=box_payload(colour="red"))
        assert response.status_code == 201
        assert "colour" not in response.json()["data"]

    @pytest.mark.asyncio
    async def test_list_empty_collection_returns_empty_list(self, test_client):
        response = await test_client.get("/api/box/get")
        assert response.status_code == 200
        assert response.json()["data"] == []

    @pytest.mark.asyncio
    async def test_list_keeps_insertion_order(self, test_client):
        for n in ("1", "2", "3"):
            await test_client.post("/api/box/add", json=box_payload(boxNo=n))
        response = await test_client.get("/api/box/get")
        assert [r["boxNo"] for r in response.json()["data"]] == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_update_persists_only_supplied_fields(self, test_client):
        record = (await test_client.post("/api/box/add", json=box_payload())).json()["data"]

        response = await test_client.put(
            f"/api/box/update/{record['_id']}", json={"title": "Partners"}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Partners"
        assert data["count"] == "120+"

    @pytest.mark.asyncio
    async def test_update_with_nothing_supplied_rejected(self, test_client):
        record = (await test_client.post("/api/box/add", json=box_payload())).json()["data"]
        response = await test_client.put(f"/api/box/update/{record['_id']}", json={})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_unknown_id_returns_404(self, test_client):
        response = await test_client.put(f"/api/box/update/{MISSING_ID}", json={"title": "x"})
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_delete_then_get_then_delete_again(self, test_client):
        record = (await test_client.post("/api/box/add", json=box_payload())).json()["data"]

        first = await test_client.delete(f"/api/box/delete/{record['_id']}")
        assert first.status_code == 200

        assert (await test_client.get(f"/api/box/get/{record['_id']}")).status_code == 404
        assert (await test_client.delete(f"/api/box/delete/{record['_id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_malformed_id_is_not_found(self, test_client):
        assert (await test_client.get("/api/box/get/not-an-object-id")).status_code == 404
        assert (await test_client.delete("/api/box/delete/123")).status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_json_body_rejected(self, test_client):
        response = await test_client.post(
            "/api/box/add",
            content=b"{broken",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_error_body_carries_request_id(self, test_client):
        response = await test_client.get(
            f"/api/box/get/{MISSING_ID}", headers={"X-Request-ID": "trace-42"}
        )
        assert response.headers["X-Request-ID"] == "trace-42"
        assert response.json()["request_id"] == "trace-42"


class TestUploadEndpoints:

    @pytest.mark.asyncio
    async def test_item_create_uploads_image_and_decodes_features(
        self, test_client, fake_blob, sample_image_bytes
    ):
        response = await test_client.post(
            "/api/item/add",
            data={"heading": "Tap", "features": json.dumps(["Brass", "Warranty"])},
            files={"image": ("tap.jpg", sample_image_bytes, "image/jpeg")},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["image"] == "https://ik.test/1-tap.jpg"
        assert data["features"] == ["Brass", "Warranty"]
        assert fake_blob.uploads[0]["content"] == sample_image_bytes

    @pytest.mark.asyncio
    async def test_item_without_image_rejected(self, test_client, fake_blob):
        response = await test_client.post(
            "/api/item/add", data={"heading": "Tap", "features": "[]"}
        )
        assert response.status_code == 400
        assert fake_blob.uploads == []

    @pytest.mark.asyncio
    async def test_item_malformed_features_rejected_before_upload(
        self, test_client, fake_blob, sample_image_bytes
    ):
        response = await test_client.post(
            "/api/item/add",
            data={"heading": "Tap", "features": "Brass, Warranty"},
            files={"image": ("tap.jpg", sample_image_bytes, "image/jpeg")},
        )
        assert response.status_code == 400
        assert fake_blob.uploads == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", ["0", "6", "five"])
    async def test_testimonial_rating_out_of_range(self, test_client, sample_image_bytes, rating):
        response = await test_client.post(
            "/api/testimonial/upload",
            data={"description": "Great", "name": "Asha", "location": "Pune", "rating": rating},
            files={"image": ("asha.jpg", sample_image_bytes, "image/jpeg")},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_testimonial_stores_integer_rating_and_timestamps(
        self, test_client, sample_image_bytes
    ):
        response = await test_client.post(
            "/api/testimonial/upload",
            data={"description": "Great", "name": "Asha", "location": "Pune", "rating": "5"},
            files={"image": ("asha.jpg", sample_image_bytes, "image/jpeg")},
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["rating"] == 5
        assert data["createdAt"] == data["updatedAt"]

    @pytest.mark.asyncio
    async def test_timestamped_list_is_newest_first(self, test_client, sample_image_bytes):
        for category in ("first", "second"):
            await test_client.post(
                "/api/images/insert",
                data={"category": category},
                files={"images": ("a.jpg", sample_image_bytes, "image/jpeg")},
            )
        response = await test_client.get("/api/images/get")
        assert [r["category"] for r in response.json()["data"]] == ["second", "first"]

    @pytest.mark.asyncio
    async def test_carousel_images_keep_input_order(self, test_client, sample_image_bytes):
        files = [
            ("images", (f"slide{n}.jpg", sample_image_bytes, "image/jpeg")) for n in range(1, 5)
        ]
        response = await test_client.post(
            "/api/images/insert", data={"category": "kitchens"}, files=files
        )
        assert response.status_code == 201
        assert response.json()["data"]["images"] == [
            f"https://ik.test/{n}-slide{n}.jpg" for n in range(1, 5)
        ]

    @pytest.mark.asyncio
    async def test_carousel_too_many_images_rejected(self, test_client, fake_blob, sample_image_bytes):
        files = [("images", (f"s{n}.jpg", sample_image_bytes, "image/jpeg")) for n in range(11)]
        response = await test_client.post(
            "/api/images/insert", data={"category": "kitchens"}, files=files
        )
        assert response.status_code == 400
        assert fake_blob.uploads == []

    @pytest.mark.asyncio
    async def test_service_without_file_stores_empty_url(self, test_client):
        response = await test_client.post(
            "/api/service/submit-service", data={"firstName": "Ravi", "module": "CRM"}
        )
        assert response.status_code == 201
        assert response.json()["data"]["fileUrl"] == ""

        listed = await test_client.get("/api/service/get-services")
        assert len(listed.json()["data"]) == 1

    @pytest.mark.asyncio
    async def test_content_section_normalizes_content(self, test_client, fake_blob, sample_image_bytes):
        response = await test_client.post(
            "/api/content-section/upload",
            data={
                "Heading": "Why us",
                "content": json.dumps([{"title": "Fast"}, {"description": "Cheap"}]),
            },
            files={"image": ("why.png", sample_image_bytes, "image/png")},
        )
        assert response.status_code == 201
        assert response.json()["data"]["content"] == [
            {"title": "Fast", "description": ""},
            {"title": "", "description": "Cheap"},
        ]
        assert fake_blob.uploads[0]["folder"] == "/contentSection"

    @pytest.mark.asyncio
    async def test_item_update_replaces_image(self, test_client, fake_blob, sample_image_bytes):
        created = await test_client.post(
            "/api/item/add",
            data={"heading": "Tap", "features": "[]"},
            files={"image": ("tap.jpg", sample_image_bytes, "image/jpeg")},
        )
        item_id = created.json()["data"]["_id"]

        response = await test_client.put(
            f"/api/item/update/{item_id}",
            files={"image": ("tap-v2.jpg", sample_image_bytes, "image/jpeg")},
        )

        assert response.status_code == 200
        assert response.json()["data"]["image"] == "https://ik.test/2-tap-v2.jpg"
        assert response.json()["data"]["heading"] == "Tap"

    @pytest.mark.asyncio
    async def test_update_unknown_id_with_file_does_not_upload(
        self, test_client, fake_blob, sample_image_bytes
    ):
        response = await test_client.put(
            f"/api/item/update/{MISSING_ID}",
            files={"image": ("tap.jpg", sample_image_bytes, "image/jpeg")},
        )
        assert response.status_code == 404
        assert fake_blob.uploads == []

    @pytest.mark.asyncio
    async def test_upload_failure_returns_500_and_persists_nothing(
        self, test_client, fake_db, fake_blob, sample_image_bytes
    ):
        fake_blob.fail_uploads = True
        response = await test_client.post(
            "/api/item/add",
            data={"heading": "Tap", "features": "[]"},
            files={"image": ("tap.jpg", sample_image_bytes, "image/jpeg")},
        )
        assert response.status_code == 500
        assert response.json()["error"] == "server_error"
        assert fake_db["items"].docs == []


class TestVideoEndpoints:

    @pytest.mark.asyncio
    async def test_upload_stores_url_and_handle(self, test_client, fake_blob):
        response = await test_client.post(
            "/api/video/upload",
            files={"video": ("promo.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4")},
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["video"] == "https://ik.test/videos/1-promo.mp4"
        assert data["fileId"] == "file-1"
        assert fake_blob.uploads[0]["folder"] == "/videos"

    @pytest.mark.asyncio
    async def test_delete_removes_remote_blob_first(self, test_client, fake_blob):
        created = await test_client.post(
            "/api/video/upload", files={"video": ("promo.mp4", b"data", "video/mp4")}
        )
        video_id = created.json()["data"]["_id"]

        response = await test_client.delete(f"/api/video/delete/{video_id}")

        assert response.status_code == 200
        assert fake_blob.deleted == ["file-1"]
        assert (await test_client.delete(f"/api/video/delete/{video_id}")).status_code == 404
        assert fake_blob.deleted == ["file-1"]

    @pytest.mark.asyncio
    async def test_video_is_not_updatable(self, test_client):
        response = await test_client.put(f"/api/video/update/{MISSING_ID}", json={})
        assert response.status_code in (404, 405)
