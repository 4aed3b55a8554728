"""
Proof uploads.

Developers attach a screenshot or screen recording as proof of work. The
client sends the file as a base64 data URL; it is decoded, checked against
the allowed formats and size, and stored under
``{root}/week-{n}/{user_id}`` in the configured blob store.
"""

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Optional

import structlog

from devsprint.infrastructure.clock import Clock, utcnow
from devsprint.infrastructure.config import Settings
from devsprint.infrastructure.exceptions import StorageError
from devsprint.infrastructure.storage import BlobStorage
from devsprint.models.upload import UploadedFile
from devsprint.models.user import Actor
from devsprint.services.lifecycle import require_actor
from devsprint.services.metrics import current_week_number
from devsprint.services.operations import PersistenceFailed, ValidationFailed, operation

logger = structlog.get_logger(__name__)

ALLOWED_FORMATS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "mp4", "webm", "mov"})
VIDEO_FORMATS = frozenset({"mp4", "webm", "mov"})

# MIME subtypes whose file extension differs from the subtype name
_SUBTYPE_FORMATS = {"quicktime": "mov", "pjpeg": "jpg"}

_DATA_URL = re.compile(r"^data:(?P<kind>[\w.+-]+)/(?P<subtype>[\w.+-]+)(?:;[\w.+=-]+)*;base64,(?P<payload>.*)$", re.S)


@dataclass(frozen=True)
class DecodedUpload:
    data: bytes
    fmt: str
    resource_type: str


def decode_data_url(data_url: str, max_bytes: int) -> DecodedUpload:
    """Split a base64 data URL into bytes, format and blob resource type."""
    match = _DATA_URL.match(data_url.strip())
    if match is None:
        raise ValidationFailed("File must be a base64 data URL")

    kind = match.group("kind").lower()
    subtype = match.group("subtype").lower()
    fmt = _SUBTYPE_FORMATS.get(subtype, subtype)
    if kind not in ("image", "video") or fmt not in ALLOWED_FORMATS:
        raise ValidationFailed(f"Unsupported file type: {kind}/{subtype}")

    # base64 grows data by 4/3; reject before decoding anything far too large
    if len(match.group("payload")) > (max_bytes * 4) // 3 + 4:
        raise ValidationFailed("File exceeds the maximum upload size")
    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationFailed("File is not valid base64") from e
    if not data:
        raise ValidationFailed("No file provided")
    if len(data) > max_bytes:
        raise ValidationFailed("File exceeds the maximum upload size")

    resource_type = "video" if fmt in VIDEO_FORMATS else "image"
    return DecodedUpload(data=data, fmt=fmt, resource_type=resource_type)


def proof_folder(root: str, week_number: int, user_id: str) -> str:
    return f"{root.strip('/')}/week-{week_number}/{user_id}"


class UploadService:
    """Stores proof files for authenticated users."""

    def __init__(self, storage: BlobStorage, settings: Settings, clock: Clock = utcnow):
        self.storage = storage
        self.settings = settings
        self.clock = clock

    @operation("Upload failed")
    async def upload_proof(self, actor: Optional[Actor], data_url: str):
        actor = require_actor(actor)
        if not data_url:
            raise ValidationFailed("No file provided")

        decoded = decode_data_url(data_url, self.settings.max_upload_bytes)
        folder = proof_folder(self.settings.upload_root_folder, current_week_number(self.clock()), actor.id)
        try:
            blob = await self.storage.upload(
                decoded.data,
                folder,
                fmt=decoded.fmt,
                resource_type=decoded.resource_type,
            )
        except StorageError as e:
            logger.error("proof_upload_failed", user_id=actor.id, folder=folder, error=e.message)
            raise PersistenceFailed("Upload failed") from e

        logger.info("proof_uploaded", user_id=actor.id, public_id=blob.public_id, size=len(decoded.data))
        return UploadedFile(url=blob.url, public_id=blob.public_id).model_dump()
