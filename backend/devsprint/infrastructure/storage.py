"""
Blob storage for proof uploads and project attachments.

Two backends share one interface: Cloudinary (signed REST calls over
httpx) for production and a local directory written with aiofiles for
development and tests.
"""

import hashlib
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import aiofiles
import httpx
import structlog

from devsprint.infrastructure.config import Settings
from devsprint.infrastructure.exceptions import StorageError

logger = structlog.get_logger(__name__)

CLOUDINARY_API = "https://api.cloudinary.com/v1_1"


@dataclass(frozen=True)
class StoredBlob:
    url: str
    public_id: str
    resource_type: str
    format: str


class BlobStorage(ABC):
    """upload(data, folder) -> {url, public_id}; delete(public_id, kind)."""

    @abstractmethod
    async def upload(self, data: bytes, folder: str, *, fmt: str, resource_type: str) -> StoredBlob:
        ...

    @abstractmethod
    async def delete(self, public_id: str, resource_type: str = "image") -> None:
        ...

    async def close(self) -> None:
        return None


class LocalBlobStorage(BlobStorage):
    """Files under ``base_path``, served back from ``public_base_url/uploads``."""

    def __init__(self, base_path: Path, public_base_url: str):
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, relative: str) -> Path:
        path = (self.base_path / relative).resolve()
        if self.base_path.resolve() not in path.parents:
            raise StorageError("Invalid storage path", details={"path": relative})
        return path

    async def upload(self, data: bytes, folder: str, *, fmt: str, resource_type: str) -> StoredBlob:
        public_id = f"{folder.strip('/')}/{uuid.uuid4().hex}"
        filepath = self._resolve(f"{public_id}.{fmt}")
        filepath.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with aiofiles.open(filepath, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("local_upload_failed", path=str(filepath), error=str(e))
            raise StorageError() from e

        logger.info("blob_stored", backend="local", public_id=public_id, size=len(data))
        return StoredBlob(
            url=f"{self.public_base_url}/uploads/{public_id}.{fmt}",
            public_id=public_id,
            resource_type=resource_type,
            format=fmt,
        )

    async def delete(self, public_id: str, resource_type: str = "image") -> None:
        target = self._resolve(public_id)
        for candidate in target.parent.glob(f"{target.name}.*"):
            candidate.unlink(missing_ok=True)
            logger.info("blob_deleted", backend="local", public_id=public_id)


class CloudinaryStorage(BlobStorage):
    """Cloudinary upload API with SHA-1 request signing."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, timeout: int = 60,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self._client = httpx.AsyncClient(
            base_url=f"{CLOUDINARY_API}/{cloud_name}",
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    def sign(self, params: Dict[str, str]) -> str:
        """Signature over the sorted, non-empty parameters plus the API secret."""
        to_sign = "&".join(f"{k}={v}" for k, v in sorted(params.items()) if v not in (None, ""))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def _signed(self, params: Dict[str, str]) -> Dict[str, str]:
        params = dict(params, timestamp=str(int(time.time())))
        params["signature"] = self.sign(params)
        params["api_key"] = self.api_key
        return params

    async def upload(self, data: bytes, folder: str, *, fmt: str, resource_type: str) -> StoredBlob:
        params = self._signed({"folder": folder})
        try:
            response = await self._client.post(
                f"/{resource_type}/upload",
                data=params,
                files={"file": (f"upload.{fmt}", data)},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "cloudinary_upload_rejected",
                status_code=e.response.status_code,
                body=e.response.text[:500],
            )
            raise StorageError(details={"status_code": e.response.status_code}) from e
        except httpx.HTTPError as e:
            logger.error("cloudinary_upload_failed", error=str(e))
            raise StorageError() from e

        body = response.json()
        logger.info("blob_stored", backend="cloudinary", public_id=body.get("public_id"), size=len(data))
        return StoredBlob(
            url=body["secure_url"],
            public_id=body["public_id"],
            resource_type=body.get("resource_type", resource_type),
            format=body.get("format", fmt),
        )

    async def delete(self, public_id: str, resource_type: str = "image") -> None:
        params = self._signed({"public_id": public_id})
        try:
            response = await self._client.post(f"/{resource_type}/destroy", data=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("cloudinary_delete_failed", public_id=public_id, error=str(e))
            raise StorageError("Failed to delete file") from e
        logger.info("blob_deleted", backend="cloudinary", public_id=public_id)

    async def close(self) -> None:
        await self._client.aclose()


def build_storage(settings: Settings) -> BlobStorage:
    """Pick the blob store named by ``storage_backend``."""
    if settings.storage_backend == "cloudinary":
        missing = [
            name
            for name in ("cloudinary_cloud_name", "cloudinary_api_key", "cloudinary_api_secret")
            if not getattr(settings, name)
        ]
        if missing:
            raise ValueError(f"Cloudinary storage requires settings: {', '.join(missing)}")
        return CloudinaryStorage(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
            timeout=settings.cloudinary_timeout,
        )
    if settings.storage_backend == "local":
        return LocalBlobStorage(Path(settings.upload_dir).resolve(), settings.public_base_url)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
