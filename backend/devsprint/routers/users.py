"""
Team member API endpoints.
"""

from fastapi import APIRouter, Depends, status

from devsprint.dependencies import get_user_service
from devsprint.infrastructure.auth import get_current_actor
from devsprint.infrastructure.exceptions import result_response
from devsprint.models.user import Actor, MemberCreate
from devsprint.services import UserService

router = APIRouter()


@router.post("")
async def add_member(
    body: MemberCreate,
    actor: Actor = Depends(get_current_actor),
    users: UserService = Depends(get_user_service),
):
    """Add a Developer or QA member."""
    return result_response(await users.add_member(actor, body), status.HTTP_201_CREATED)


@router.get("/developers")
async def list_developers(actor: Actor = Depends(get_current_actor), users: UserService = Depends(get_user_service)):
    return result_response(await users.list_developers(actor))


@router.get("/qa")
async def list_qa_members(actor: Actor = Depends(get_current_actor), users: UserService = Depends(get_user_service)):
    return result_response(await users.list_qa_members(actor))


@router.delete("/developers/{developer_id}")
async def delete_developer(
    developer_id: str,
    actor: Actor = Depends(get_current_actor),
    users: UserService = Depends(get_user_service),
):
    """Delete a developer together with their tasks and comments."""
    return result_response(await users.delete_developer(actor, developer_id))


@router.delete("/qa/{qa_id}")
async def delete_qa_member(
    qa_id: str,
    actor: Actor = Depends(get_current_actor),
    users: UserService = Depends(get_user_service),
):
    """Delete a QA member and unassign them from their tasks."""
    return result_response(await users.delete_qa_member(actor, qa_id))


@router.delete("/{user_id}")
async def delete_member(
    user_id: str,
    actor: Actor = Depends(get_current_actor),
    users: UserService = Depends(get_user_service),
):
    return result_response(await users.delete_member(actor, user_id))
