"""
Task management API endpoints.

CRUD and listings go through the TaskService; every status change goes
through the TaskLifecycleService.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from devsprint.dependencies import get_lifecycle_service, get_task_service
from devsprint.infrastructure.auth import get_current_actor
from devsprint.infrastructure.exceptions import result_response
from devsprint.models.task import (
    BlockerToggle,
    CommentCreate,
    LogHours,
    QAAssignment,
    ReviewRequest,
    StatusChange,
    SubmitProof,
    TaskCreate,
    TaskUpdate,
)
from devsprint.models.user import Actor
from devsprint.services import TaskLifecycleService, TaskService

router = APIRouter()


@router.get("")
async def list_tasks(
    project_id: Optional[str] = Query(None, description="Filter by project ID"),
    actor: Actor = Depends(get_current_actor),
    tasks: TaskService = Depends(get_task_service),
):
    """All tasks (PM)."""
    return result_response(await tasks.list_all_tasks(actor, project_id=project_id))


@router.get("/mine")
async def list_my_tasks(actor: Actor = Depends(get_current_actor), tasks: TaskService = Depends(get_task_service)):
    """Tasks assigned to the calling developer."""
    return result_response(await tasks.list_my_tasks(actor))


@router.get("/pending-review")
async def list_pending_review(
    actor: Actor = Depends(get_current_actor),
    tasks: TaskService = Depends(get_task_service),
):
    """Tasks awaiting the PM's final review."""
    return result_response(await tasks.list_pending_review(actor))


@router.post("")
async def create_task(
    body: TaskCreate,
    actor: Actor = Depends(get_current_actor),
    tasks: TaskService = Depends(get_task_service),
):
    """Create a new task."""
    return result_response(await tasks.create_task(actor, body), status.HTTP_201_CREATED)


@router.get("/{task_id}")
async def get_task(task_id: str, actor: Actor = Depends(get_current_actor), tasks: TaskService = Depends(get_task_service)):
    """Get task by ID."""
    return result_response(await tasks.get_task(actor, task_id))


@router.patch("/{task_id}")
async def update_task(
    task_id: str,
    body: TaskUpdate,
    actor: Actor = Depends(get_current_actor),
    tasks: TaskService = Depends(get_task_service),
):
    """Update a task."""
    return result_response(await tasks.update_task(actor, task_id, body))


@router.delete("/{task_id}")
async def delete_task(task_id: str, actor: Actor = Depends(get_current_actor), tasks: TaskService = Depends(get_task_service)):
    """Delete a task and its comments."""
    return result_response(await tasks.delete_task(actor, task_id))


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------

@router.post("/{task_id}/start")
async def start_task(
    task_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return result_response(await lifecycle.start_task(actor, task_id))


@router.post("/{task_id}/submit")
async def submit_for_review(
    task_id: str,
    body: SubmitProof,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    """Developer submits straight to the PM (no QA assigned)."""
    return result_response(await lifecycle.submit_for_review(actor, task_id, body.proof_url))


@router.post("/{task_id}/submit-qa")
async def submit_for_qa_review(
    task_id: str,
    body: SubmitProof,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    """Developer submits to the assigned QA reviewer."""
    return result_response(await lifecycle.submit_for_qa_review(actor, task_id, body.proof_url))


@router.post("/{task_id}/review")
async def review_task(
    task_id: str,
    body: ReviewRequest,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    """PM approves or requests changes."""
    return result_response(await lifecycle.review_task(actor, task_id, body.decision))


@router.post("/{task_id}/status")
async def change_task_status(
    task_id: str,
    body: StatusChange,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    """Direct status move from a board."""
    return result_response(await lifecycle.change_task_status(actor, task_id, body.status, body.order))


@router.post("/{task_id}/blocker")
async def toggle_blocker(
    task_id: str,
    body: BlockerToggle,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return result_response(await lifecycle.toggle_blocker(actor, task_id, body.is_blocked, body.note))


@router.post("/{task_id}/timer/start")
async def start_timer(
    task_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return result_response(await lifecycle.start_timer(actor, task_id))


@router.post("/{task_id}/timer/stop")
async def stop_timer(
    task_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return result_response(await lifecycle.stop_timer(actor, task_id))


@router.post("/{task_id}/hours")
async def log_hours(
    task_id: str,
    body: LogHours,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    """Add manually tracked hours."""
    return result_response(await lifecycle.log_hours(actor, task_id, body.hours))


# ----------------------------------------------------------------------
# Comments and QA assignment
# ----------------------------------------------------------------------

@router.post("/{task_id}/comments")
async def post_comment(
    task_id: str,
    body: CommentCreate,
    actor: Actor = Depends(get_current_actor),
    tasks: TaskService = Depends(get_task_service),
):
    return result_response(await tasks.post_comment(actor, task_id, body.text), status.HTTP_201_CREATED)


@router.put("/{task_id}/qa")
async def assign_qa(
    task_id: str,
    body: QAAssignment,
    actor: Actor = Depends(get_current_actor),
    tasks: TaskService = Depends(get_task_service),
):
    return result_response(await tasks.assign_qa(actor, task_id, body.qa_id))


@router.delete("/{task_id}/qa")
async def unassign_qa(
    task_id: str,
    actor: Actor = Depends(get_current_actor),
    tasks: TaskService = Depends(get_task_service),
):
    return result_response(await tasks.unassign_qa(actor, task_id))
