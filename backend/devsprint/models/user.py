"""
User and session data models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """Team role; decides which transitions a user may invoke."""
    PM = "PM"
    DEVELOPER = "Developer"
    QA = "QA"


class Actor(BaseModel):
    """The authenticated caller of an operation."""
    id: str
    role: UserRole


class MemberCreate(BaseModel):
    """Schema for a PM adding a team member."""
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    role: UserRole = UserRole.DEVELOPER
    password: Optional[str] = Field(None, min_length=6)
    photo_url: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: UserRole


class User(BaseModel):
    """Public user model (never carries the password hash)."""
    id: str
    name: str
    email: str
    role: UserRole
    photo_url: Optional[str] = None
    created_at: Optional[datetime] = None
