"""
Proof upload API endpoint.
"""

from fastapi import APIRouter, Depends, status

from devsprint.dependencies import get_upload_service
from devsprint.infrastructure.auth import get_current_actor
from devsprint.infrastructure.exceptions import result_response
from devsprint.models.upload import UploadRequest
from devsprint.models.user import Actor
from devsprint.services import UploadService

router = APIRouter()


@router.post("")
async def upload_proof(
    body: UploadRequest,
    actor: Actor = Depends(get_current_actor),
    uploads: UploadService = Depends(get_upload_service),
):
    """Store a base64 data URL and return ``{url, public_id}``."""
    return result_response(await uploads.upload_proof(actor, body.file), status.HTTP_201_CREATED)
