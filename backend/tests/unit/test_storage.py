"""
Tests for local bucket storage and object path helpers.
"""

import re

import pytest

from reportes.services.storage import (
    EVIDENCE_BUCKET,
    REPORTES_BUCKET,
    LocalStorage,
    StorageError,
    chat_image_path,
    evidence_path,
    file_extension,
)


@pytest.fixture
def local_storage(tmp_path):
    return LocalStorage(root=str(tmp_path), public_base_url="https://cdn.example.com/")


class TestFileExtension:

    def test_filename_extension_wins(self):
        assert file_extension("foto.PNG", "image/jpeg") == "png"

    def test_falls_back_to_content_type(self):
        assert file_extension("foto", "image/webp") == "webp"

    def test_defaults_to_jpg(self):
        assert file_extension(None, None) == "jpg"
        assert file_extension("archivo.tar-gz!", "application/octet-stream") == "jpg"

    def test_non_image_filename_extension_ignored(self):
        assert file_extension("pagina.html", "image/png") == "png"


class TestObjectPaths:

    def test_evidence_path(self):
        path = evidence_path("rep-1", "arrival_exhibit", "jpg")
        assert re.fullmatch(r"rep-1/arrival_exhibit_\d+\.jpg", path)

    def test_chat_image_path(self):
        path = chat_image_path("rep-1", "png")
        assert re.fullmatch(r"chat-images/rep-1/\d+-[0-9a-f]{6}\.png", path)

    def test_chat_image_paths_are_unique(self):
        assert chat_image_path("rep-1", "png") != chat_image_path("rep-1", "png")


class TestLocalStorage:

    @pytest.mark.asyncio
    async def test_save_writes_file_and_returns_public_url(self, local_storage, tmp_path):
        url = await local_storage.save(EVIDENCE_BUCKET, "rep-1/ticket_1.jpg", b"jpeg-bytes")

        assert url == "https://cdn.example.com/media/evidence/rep-1/ticket_1.jpg"
        assert (tmp_path / "evidence" / "rep-1" / "ticket_1.jpg").read_bytes() == b"jpeg-bytes"

    @pytest.mark.asyncio
    async def test_save_refuses_overwrite(self, local_storage):
        await local_storage.save(REPORTES_BUCKET, "chat-images/rep-1/a.png", b"first")

        with pytest.raises(StorageError):
            await local_storage.save(REPORTES_BUCKET, "chat-images/rep-1/a.png", b"second")

    @pytest.mark.asyncio
    async def test_unknown_bucket_rejected(self, local_storage):
        with pytest.raises(StorageError, match="Bucket desconocido"):
            await local_storage.save("private", "a.jpg", b"x")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["../escape.jpg", "rep-1/../../escape.jpg", "/etc/passwd", ""])
    async def test_unsafe_paths_rejected(self, local_storage, path):
        with pytest.raises(StorageError):
            await local_storage.save(EVIDENCE_BUCKET, path, b"x")

    def test_public_url(self, local_storage):
        assert (
            local_storage.public_url(REPORTES_BUCKET, "chat-images/r/1.jpg")
            == "https://cdn.example.com/media/reportes/chat-images/r/1.jpg"
        )

    def test_locate_splits_own_urls(self, local_storage):
        assert local_storage.locate(
            "https://cdn.example.com/media/evidence/rep-1/ticket_1.jpg?v=2"
        ) == (EVIDENCE_BUCKET, "rep-1/ticket_1.jpg")

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "https://evil.example.com/media/evidence/rep-1/ticket_1.jpg",
            "https://cdn.example.com/api/v1/health",
            "https://cdn.example.com/media/private/a.jpg",
            "https://cdn.example.com/media/evidence/%2E%2E/secret.jpg",
            "https://cdn.example.com.evil.net/media/evidence/a.jpg",
        ],
    )
    def test_locate_rejects_foreign_urls(self, local_storage, url):
        with pytest.raises(StorageError):
            local_storage.locate(url)

    @pytest.mark.asyncio
    async def test_read_returns_saved_bytes(self, local_storage):
        await local_storage.save(EVIDENCE_BUCKET, "rep-1/ticket_1.jpg", b"jpeg-bytes")

        assert await local_storage.read(EVIDENCE_BUCKET, "rep-1/ticket_1.jpg") == b"jpeg-bytes"

    @pytest.mark.asyncio
    async def test_read_enforces_size_limit(self, local_storage):
        await local_storage.save(EVIDENCE_BUCKET, "rep-1/big.jpg", b"x" * 10)

        with pytest.raises(StorageError, match="demasiado grande"):
            await local_storage.read(EVIDENCE_BUCKET, "rep-1/big.jpg", max_bytes=9)

    @pytest.mark.asyncio
    async def test_read_missing_object(self, local_storage):
        with pytest.raises(StorageError, match="no encontrado"):
            await local_storage.read(EVIDENCE_BUCKET, "rep-1/missing.jpg")
