"""
FontFlow Backend — API Integration Tests
==========================================

What:  End-to-end tests through the HTTP layer.
How:   httpx AsyncClient over ASGITransport; SQLite in memory for the
       database and InMemoryObjectStore for storage (see conftest.py).

Test Strategy:
    ✅ Upload: 201 with metadata and both storage keys
    ✅ Rejections: 400 with a machine-readable code and no side effects
    ✅ Auth: 401 without / with a bad token, 404 across users
    ✅ List, detail, download, CSS, delete
    ✅ Signed local file URLs, health check
"""

import uuid
from datetime import timedelta
from urllib.parse import urlparse

import pytest
from sqlalchemy import func, select

from fontflow.dependencies import get_object_store
from fontflow.models.font_asset import FontAsset
from fontflow.security import create_access_token
from fontflow.services.storage import LocalObjectStore
from conftest import bearer


async def _upload(client, headers, content, filename="My Font.ttf", content_type="font/ttf"):
    return await client.post(
        "/api/fonts/upload",
        headers=headers,
        files={"font": (filename, content, content_type)},
    )


async def _row_count(db_session_factory) -> int:
    async with db_session_factory() as session:
        result = await session.execute(select(func.count()).select_from(FontAsset))
        return result.scalar_one()


class TestUploadEndpoint:

    @pytest.mark.asyncio
    async def test_upload_ttf(self, api_client, auth_headers, memory_store, ttf_bytes):
        response = await _upload(api_client, auth_headers, ttf_bytes)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Font uploaded successfully"
        assert body["warning"] is None

        font = body["font"]
        assert font["family"] == "Test Sans"
        assert font["style"] == "Regular"
        assert font["weight"] == 400
        assert font["name"] == "My Font.ttf"
        assert font["original_file"].startswith("fonts/user-1/")
        assert font["original_file"].endswith("My_Font.ttf")
        assert font["woff2_file"].endswith("My_Font.woff2")
        assert font["preview_url"].startswith(f"https://storage.test/{font['woff2_file']}")
        assert set(memory_store.objects) == {font["original_file"], font["woff2_file"]}

    @pytest.mark.asyncio
    async def test_upload_detects_format_from_content(
        self, api_client, auth_headers, memory_store, otf_bytes
    ):
        """A filename and content type that lie do not change the detected format."""
        response = await _upload(
            api_client, auth_headers, otf_bytes, filename="photo.png", content_type="image/png"
        )

        assert response.status_code == 201
        font = response.json()["font"]
        assert font["original_file"].endswith("photo.png.otf")
        assert memory_store.objects[font["original_file"]][1] == "font/otf"

    @pytest.mark.asyncio
    async def test_upload_woff2(self, api_client, auth_headers, memory_store, woff2_bytes):
        response = await _upload(api_client, auth_headers, woff2_bytes, filename="web.woff2")

        assert response.status_code == 201
        font = response.json()["font"]
        assert font["weight"] == 700
        assert font["woff2_file"] == font["original_file"]
        assert len(memory_store.put_calls) == 1

    @pytest.mark.asyncio
    async def test_upload_png_rejected(
        self, api_client, auth_headers, memory_store, db_session_factory, png_bytes
    ):
        response = await _upload(
            api_client, auth_headers, png_bytes, filename="font.ttf", content_type="font/ttf"
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "unsupported_format"
        assert body["request_id"]
        assert memory_store.put_calls == []
        assert await _row_count(db_session_factory) == 0

    @pytest.mark.asyncio
    async def test_upload_corrupt_font_rejected(
        self, api_client, auth_headers, memory_store, ttf_bytes
    ):
        response = await _upload(api_client, auth_headers, ttf_bytes[:40])

        assert response.status_code == 400
        assert response.json()["error"] == "corrupt_font"
        assert memory_store.put_calls == []

    @pytest.mark.asyncio
    async def test_upload_without_file(self, api_client, auth_headers):
        response = await api_client.post(
            "/api/fonts/upload",
            headers=auth_headers,
            files={"attachment": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "no_file_provided"

    @pytest.mark.asyncio
    async def test_upload_empty_file(self, api_client, auth_headers):
        response = await _upload(api_client, auth_headers, b"")

        assert response.status_code == 400
        assert response.json()["error"] == "no_file_provided"

    @pytest.mark.asyncio
    async def test_upload_too_large(self, api_client, auth_headers, ttf_bytes, monkeypatch):
        from fontflow.config import settings

        monkeypatch.setattr(settings, "max_file_size", len(ttf_bytes) - 1)

        response = await _upload(api_client, auth_headers, ttf_bytes)

        assert response.status_code == 400
        assert response.json()["error"] == "file_too_large"

    @pytest.mark.asyncio
    async def test_upload_storage_failure(
        self, api_client, auth_headers, memory_store, db_session_factory, ttf_bytes
    ):
        memory_store.fail_put_suffix = ".woff2"

        response = await _upload(api_client, auth_headers, ttf_bytes)

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "server_error"
        assert "details" not in body
        assert memory_store.objects == {}
        assert await _row_count(db_session_factory) == 0


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_token(self, api_client, ttf_bytes):
        response = await _upload(api_client, {}, ttf_bytes)

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_invalid_token(self, api_client):
        response = await api_client.get(
            "/api/fonts", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_oversized_user_id_rejected_before_storage(
        self, api_client, memory_store, db_session_factory, ttf_bytes
    ):
        response = await _upload(api_client, bearer("u" * 129), ttf_bytes)

        assert response.status_code == 401
        assert memory_store.put_calls == []
        assert await _row_count(db_session_factory) == 0

    @pytest.mark.asyncio
    async def test_expired_token(self, api_client):
        token = create_access_token("user-1", expires_delta=timedelta(seconds=-10))
        response = await api_client.get(
            "/api/fonts", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401


class TestReadEndpoints:

    @pytest.mark.asyncio
    async def test_list_newest_first(self, api_client, auth_headers, ttf_bytes, italic_ttf_bytes):
        await _upload(api_client, auth_headers, ttf_bytes, filename="regular.ttf")
        await _upload(api_client, auth_headers, italic_ttf_bytes, filename="italic.ttf")
        await _upload(api_client, bearer("user-2"), ttf_bytes, filename="theirs.ttf")

        response = await api_client.get("/api/fonts", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 2
        assert response.headers["X-Total-Count"] == "2"
        assert [font["name"] for font in body["fonts"]] == ["italic.ttf", "regular.ttf"]

    @pytest.mark.asyncio
    async def test_detail(self, api_client, auth_headers, ttf_bytes):
        created = (await _upload(api_client, auth_headers, ttf_bytes)).json()["font"]

        response = await api_client.get(f"/api/fonts/{created['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]
        assert response.json()["family"] == "Test Sans"

    @pytest.mark.asyncio
    async def test_detail_unknown_id(self, api_client, auth_headers):
        response = await api_client.get(f"/api/fonts/{uuid.uuid4()}", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_other_users_font_is_not_found(self, api_client, auth_headers, ttf_bytes):
        created = (await _upload(api_client, bearer("user-2"), ttf_bytes)).json()["font"]

        response = await api_client.get(f"/api/fonts/{created['id']}", headers=auth_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_download_variants(self, api_client, auth_headers, ttf_bytes):
        created = (await _upload(api_client, auth_headers, ttf_bytes)).json()["font"]

        original = await api_client.get(f"/api/fonts/{created['id']}/file", headers=auth_headers)
        assert original.status_code == 200
        assert original.content == ttf_bytes
        assert original.headers["content-type"] == "font/ttf"
        assert "My_Font.ttf" in original.headers["content-disposition"]

        woff2 = await api_client.get(
            f"/api/fonts/{created['id']}/file",
            params={"variant": "woff2"},
            headers=auth_headers,
        )
        assert woff2.status_code == 200
        assert woff2.content[:4] == b"wOF2"
        assert woff2.headers["content-type"] == "font/woff2"

    @pytest.mark.asyncio
    async def test_download_unknown_variant(self, api_client, auth_headers, ttf_bytes):
        created = (await _upload(api_client, auth_headers, ttf_bytes)).json()["font"]

        response = await api_client.get(
            f"/api/fonts/{created['id']}/file",
            params={"variant": "eot"},
            headers=auth_headers,
        )
        assert response.status_code == 422


class TestCssEndpoint:

    @pytest.mark.asyncio
    async def test_css_for_all_fonts(self, api_client, auth_headers, ttf_bytes, italic_ttf_bytes):
        await _upload(api_client, auth_headers, ttf_bytes)
        await _upload(api_client, auth_headers, italic_ttf_bytes)

        response = await api_client.get("/api/fonts/css", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/css")
        assert response.headers["cache-control"] == "private, no-store"
        css = response.text
        assert css.count("@font-face") == 2
        assert 'font-family: "Test Sans Regular";' in css
        assert 'font-family: "Test Sans Bold Italic";' in css
        assert "font-style: italic;" in css
        assert "font-weight: 700;" in css
        assert 'format("woff2")' in css

    @pytest.mark.asyncio
    async def test_css_restricted_to_ids(self, api_client, auth_headers, ttf_bytes, italic_ttf_bytes):
        first = (await _upload(api_client, auth_headers, ttf_bytes)).json()["font"]
        await _upload(api_client, auth_headers, italic_ttf_bytes)

        response = await api_client.get(
            "/api/fonts/css", params={"ids": [first["id"]]}, headers=auth_headers
        )

        assert response.text.count("@font-face") == 1
        assert f"https://storage.test/{first['woff2_file']}" in response.text

    @pytest.mark.asyncio
    async def test_css_without_fonts_is_empty(self, api_client, auth_headers):
        response = await api_client.get("/api/fonts/css", headers=auth_headers)

        assert response.status_code == 200
        assert response.text == ""


class TestDeleteEndpoint:

    @pytest.mark.asyncio
    async def test_delete_removes_row_and_objects(
        self, api_client, auth_headers, memory_store, db_session_factory, ttf_bytes
    ):
        created = (await _upload(api_client, auth_headers, ttf_bytes)).json()["font"]

        response = await api_client.delete(f"/api/fonts/{created['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]
        assert sorted(memory_store.deleted) == sorted(
            [created["original_file"], created["woff2_file"]]
        )
        assert memory_store.objects == {}
        assert await _row_count(db_session_factory) == 0

        again = await api_client.get(f"/api/fonts/{created['id']}", headers=auth_headers)
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_with_failing_object_store(
        self, api_client, auth_headers, memory_store, db_session_factory, ttf_bytes
    ):
        """A failed WOFF2 object delete never leaves a record behind."""
        created = (await _upload(api_client, auth_headers, ttf_bytes)).json()["font"]
        memory_store.fail_delete_suffix = ".woff2"

        response = await api_client.delete(f"/api/fonts/{created['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert memory_store.deleted == [created["original_file"]]
        assert set(memory_store.objects) == {created["woff2_file"]}
        assert await _row_count(db_session_factory) == 0

        again = await api_client.get(f"/api/fonts/{created['id']}", headers=auth_headers)
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_unknown_font(self, api_client, auth_headers, memory_store):
        response = await api_client.delete(f"/api/fonts/{uuid.uuid4()}", headers=auth_headers)

        assert response.status_code == 404
        assert memory_store.deleted == []

    @pytest.mark.asyncio
    async def test_delete_other_users_font(
        self, api_client, auth_headers, memory_store, db_session_factory, ttf_bytes
    ):
        created = (await _upload(api_client, bearer("user-2"), ttf_bytes)).json()["font"]

        response = await api_client.delete(f"/api/fonts/{created['id']}", headers=auth_headers)

        assert response.status_code == 404
        assert memory_store.deleted == []
        assert await _row_count(db_session_factory) == 1


class TestSignedFileRoute:
    """GET /api/files/{key} with the local backend."""

    @pytest.fixture
    def local_store(self, api_client, tmp_path):
        from fontflow.main import app

        store = LocalObjectStore(str(tmp_path), "http://test", "route-secret")
        app.dependency_overrides[get_object_store] = lambda: store
        return store

    @pytest.mark.asyncio
    async def test_signed_url_serves_file(self, api_client, auth_headers, local_store, ttf_bytes):
        created = (await _upload(api_client, auth_headers, ttf_bytes)).json()["font"]
        url = urlparse(created["preview_url"])

        response = await api_client.get(f"{url.path}?{url.query}")

        assert response.status_code == 200
        assert response.content[:4] == b"wOF2"
        assert response.headers["content-type"] == "font/woff2"

    @pytest.mark.asyncio
    async def test_tampered_signature_rejected(self, api_client, local_store):
        await local_store.put("fonts/user-1/a.ttf", b"data", "font/ttf")
        url = urlparse(local_store.signed_url("fonts/user-1/a.ttf", 60))
        forged = url.query.replace("signature=", "signature=0")

        response = await api_client.get(f"{url.path}?{forged}")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_query_parameters(self, api_client, local_store):
        response = await api_client.get("/api/files/fonts/user-1/a.ttf")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_not_served_by_other_backends(self, api_client, memory_store):
        response = await api_client.get(
            "/api/files/fonts/user-1/a.ttf", params={"expires": 1, "signature": "x"}
        )
        assert response.status_code == 404


class TestHealthEndpoint:

    @pytest.mark.asyncio
    async def test_healthy(self, api_client):
        response = await api_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["storage"] == "available"

    @pytest.mark.asyncio
    async def test_storage_down(self, api_client, memory_store):
        memory_store.healthy = False

        response = await api_client.get("/health")

        assert response.status_code == 503
        assert response.json()["storage"] == "unavailable"

    @pytest.mark.asyncio
    async def test_request_id_header(self, api_client):
        response = await api_client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
