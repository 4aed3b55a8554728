"""
Authentication for DevSprint API.

Signed bearer tokens (python-jose, HS256 by default) carry the user id and
role. Passwords are stored as passlib bcrypt hashes. ``get_current_actor``
is the FastAPI dependency every protected route uses.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
import structlog

from devsprint.infrastructure.clock import utcnow
from devsprint.infrastructure.config import Settings
from devsprint.infrastructure.exceptions import AuthenticationError
from devsprint.models.user import Actor, UserRole

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    user_id: str,
    role: UserRole,
    settings: Settings,
    now: Optional[datetime] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign a session token for ``user_id``."""
    issued = now or utcnow()
    expire = issued + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {
        "sub": user_id,
        "role": UserRole(role).value,
        "iat": issued,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.token_algorithm)


def decode_access_token(token: str, settings: Settings) -> Actor:
    """Verify a session token and return the actor it names."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.token_algorithm])
    except JWTError as e:
        raise AuthenticationError("Invalid authentication token") from e

    if payload.get("type") != "access" or not payload.get("sub"):
        raise AuthenticationError("Invalid authentication token")
    try:
        return Actor(id=payload["sub"], role=UserRole(payload.get("role")))
    except ValueError as e:
        raise AuthenticationError("Invalid authentication token") from e


async def get_current_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> Actor:
    """
    FastAPI dependency that resolves the calling user.

    The token's user must still exist with the same role; deleting a member
    ends their sessions.

    Usage:
        @router.get("/endpoint")
        async def my_endpoint(actor: Actor = Depends(get_current_actor)):
            ...
    """
    if not credentials:
        raise AuthenticationError("Missing authentication token")

    actor = decode_access_token(credentials.credentials, request.app.state.settings)

    users = request.app.state.user_service
    if not await users.is_active(actor):
        logger.warning("auth_rejected", path=request.url.path, method=request.method, user_id=actor.id)
        raise AuthenticationError("Session is no longer valid")
    return actor
