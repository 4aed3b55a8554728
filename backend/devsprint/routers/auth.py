"""
Sign-in API endpoints.
"""

from fastapi import APIRouter, Depends, status
import structlog

from devsprint.dependencies import get_user_service
from devsprint.infrastructure.auth import get_current_actor
from devsprint.infrastructure.exceptions import AuthenticationError, result_response
from devsprint.models.result import FailureKind
from devsprint.models.user import Actor, LoginRequest
from devsprint.services import UserService

router = APIRouter()
logger = structlog.get_logger()


@router.post("/login")
async def login(body: LoginRequest, users: UserService = Depends(get_user_service)):
    """Exchange email and password for a bearer token."""
    result = await users.login(body.email, body.password)
    if not result.success and result.kind == FailureKind.UNAUTHORIZED:
        raise AuthenticationError(result.error)
    return result_response(result)


@router.get("/me")
async def me(actor: Actor = Depends(get_current_actor), users: UserService = Depends(get_user_service)):
    """Profile of the signed-in user."""
    return result_response(await users.get_profile(actor))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(actor: Actor = Depends(get_current_actor)):
    """Tokens are stateless; the client discards its copy."""
    logger.info("logout", user_id=actor.id)
