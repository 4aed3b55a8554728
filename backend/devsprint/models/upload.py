"""
Proof upload data models.
"""

from pydantic import BaseModel


class UploadRequest(BaseModel):
    """A file sent as a base64 data URL (``data:image/png;base64,...``)."""
    file: str


class UploadedFile(BaseModel):
    url: str
    public_id: str
