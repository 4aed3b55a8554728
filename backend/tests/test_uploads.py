"""
Tests for proof uploads and local blob storage.
"""
import base64
import hashlib

import httpx
import pytest

from devsprint.infrastructure.exceptions import StorageError
from devsprint.infrastructure.storage import CloudinaryStorage, LocalBlobStorage
from devsprint.models.result import FailureKind
from devsprint.services.operations import ValidationFailed
from devsprint.services.uploads import UploadService, decode_data_url, proof_folder

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


def data_url(mime: str, payload: bytes = PNG_BYTES) -> str:
    return f"data:{mime};base64,{base64.b64encode(payload).decode()}"


class TestDecodeDataUrl:

    def test_image(self):
        decoded = decode_data_url(data_url("image/png"), max_bytes=1024)
        assert decoded.data == PNG_BYTES
        assert decoded.fmt == "png"
        assert decoded.resource_type == "image"

    def test_quicktime_maps_to_mov(self):
        decoded = decode_data_url(data_url("video/quicktime"), max_bytes=1024)
        assert decoded.fmt == "mov"
        assert decoded.resource_type == "video"

    def test_rejects_other_types(self):
        with pytest.raises(ValidationFailed):
            decode_data_url(data_url("application/pdf"), max_bytes=1024)

    def test_rejects_plain_urls(self):
        with pytest.raises(ValidationFailed):
            decode_data_url("https://example.com/a.png", max_bytes=1024)

    def test_rejects_oversized_files(self):
        with pytest.raises(ValidationFailed):
            decode_data_url(data_url("image/png", b"x" * 2048), max_bytes=1024)

    def test_rejects_bad_base64(self):
        with pytest.raises(ValidationFailed):
            decode_data_url("data:image/png;base64,@@@", max_bytes=1024)


def test_proof_folder():
    assert proof_folder("dev-sprint/", 10, "dev-1") == "dev-sprint/week-10/dev-1"


class TestUploadService:

    @pytest.fixture
    def service(self, tmp_path, test_settings, clock):
        storage = LocalBlobStorage(tmp_path / "blobs", "http://test")
        return UploadService(storage, test_settings, clock)

    @pytest.mark.asyncio
    async def test_upload_writes_file(self, service, team, tmp_path):
        result = await service.upload_proof(team["dev"], data_url("image/png"))
        assert result.success
        assert result["public_id"].startswith("dev-sprint/week-10/dev-1/")
        assert result["url"] == f"http://test/uploads/{result['public_id']}.png"
        assert (tmp_path / "blobs" / f"{result['public_id']}.png").read_bytes() == PNG_BYTES

    @pytest.mark.asyncio
    async def test_requires_actor(self, service):
        result = await service.upload_proof(None, data_url("image/png"))
        assert result.kind == FailureKind.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_empty_file(self, service, team):
        result = await service.upload_proof(team["dev"], "")
        assert result.kind == FailureKind.VALIDATION
        assert result.error == "No file provided"

    @pytest.mark.asyncio
    async def test_delete_removes_file(self, service, team, tmp_path):
        result = await service.upload_proof(team["dev"], data_url("image/png"))
        await service.storage.delete(result["public_id"])
        assert not (tmp_path / "blobs" / f"{result['public_id']}.png").exists()


class TestCloudinaryStorage:

    def test_signature_skips_empty_params(self):
        storage = CloudinaryStorage("demo", "key", "secret")
        expected = hashlib.sha1(b"folder=a&timestamp=1secret").hexdigest()
        assert storage.sign({"folder": "a", "timestamp": "1", "public_id": ""}) == expected

    @pytest.mark.asyncio
    async def test_upload_posts_signed_form(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = request.content
            return httpx.Response(200, json={
                "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/p.png",
                "public_id": "dev-sprint/week-10/dev-1/p",
                "resource_type": "image",
                "format": "png",
            })

        storage = CloudinaryStorage("demo", "key", "secret", transport=httpx.MockTransport(handler))
        blob = await storage.upload(PNG_BYTES, "dev-sprint/week-10/dev-1", fmt="png", resource_type="image")
        await storage.close()

        assert seen["path"] == "/v1_1/demo/image/upload"
        assert b"signature" in seen["body"]
        assert blob.public_id == "dev-sprint/week-10/dev-1/p"
        assert blob.url.startswith("https://")

    @pytest.mark.asyncio
    async def test_rejected_upload_raises_storage_error(self):
        storage = CloudinaryStorage(
            "demo", "key", "secret",
            transport=httpx.MockTransport(lambda request: httpx.Response(401, text="bad signature")),
        )
        with pytest.raises(StorageError):
            await storage.upload(PNG_BYTES, "f", fmt="png", resource_type="image")
        await storage.close()
