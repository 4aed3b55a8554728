"""
Sprint management API endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from devsprint.dependencies import get_sprint_service
from devsprint.infrastructure.auth import get_current_actor
from devsprint.infrastructure.exceptions import result_response
from devsprint.models.sprint import SprintCreate, SprintUpdate, TaskOrder
from devsprint.models.user import Actor
from devsprint.services import SprintService

router = APIRouter()


@router.get("")
async def list_sprints(
    project_id: Optional[str] = Query(None, description="Filter by project ID"),
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    """List the caller's sprints with task statistics."""
    return result_response(await sprints.list_sprints(actor, project_id))


@router.post("")
async def create_sprint(
    body: SprintCreate,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    """Create a new sprint in Planning."""
    return result_response(await sprints.create_sprint(actor, body), status.HTTP_201_CREATED)


@router.delete("/tasks/{task_id}")
async def remove_task(
    task_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    """Return a task to its project backlog."""
    return result_response(await sprints.remove_task(actor, task_id))


@router.get("/{sprint_id}")
async def get_board(
    sprint_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    """Sprint board: tasks, backlog and stats."""
    return result_response(await sprints.get_board(actor, sprint_id))


@router.patch("/{sprint_id}")
async def update_sprint(
    sprint_id: str,
    body: SprintUpdate,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    return result_response(await sprints.update_sprint(actor, sprint_id, body))


@router.delete("/{sprint_id}")
async def delete_sprint(
    sprint_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    return result_response(await sprints.delete_sprint(actor, sprint_id))


@router.post("/{sprint_id}/start")
async def start_sprint(
    sprint_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    return result_response(await sprints.start_sprint(actor, sprint_id))


@router.post("/{sprint_id}/complete")
async def complete_sprint(
    sprint_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    return result_response(await sprints.complete_sprint(actor, sprint_id))


@router.post("/{sprint_id}/cancel")
async def cancel_sprint(
    sprint_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    return result_response(await sprints.cancel_sprint(actor, sprint_id))


@router.post("/{sprint_id}/tasks/{task_id}")
async def add_task(
    sprint_id: str,
    task_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    return result_response(await sprints.add_task(actor, sprint_id, task_id))


@router.put("/{sprint_id}/order")
async def reorder_tasks(
    sprint_id: str,
    body: TaskOrder,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    return result_response(await sprints.reorder_tasks(actor, sprint_id, body.task_ids))


@router.get("/{sprint_id}/burndown")
async def burndown(
    sprint_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    return result_response(await sprints.burndown(actor, sprint_id))
