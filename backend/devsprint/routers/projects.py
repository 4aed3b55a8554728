"""
Project management API endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from devsprint.dependencies import get_project_service, get_sprint_service, get_task_service
from devsprint.infrastructure.auth import get_current_actor
from devsprint.infrastructure.exceptions import result_response
from devsprint.models.project import Attachment, ProjectCreate, ProjectStatus, ProjectUpdate
from devsprint.models.task import TaskStatus
from devsprint.models.user import Actor
from devsprint.services import ProjectService, SprintService, TaskService

router = APIRouter()


@router.get("")
async def list_projects(
    status_filter: Optional[ProjectStatus] = Query(None, alias="status", description="Filter by status"),
    actor: Actor = Depends(get_current_actor),
    projects: ProjectService = Depends(get_project_service),
):
    """List projects with task statistics."""
    return result_response(await projects.list_projects(actor, status_filter.value if status_filter else None))


@router.post("")
async def create_project(
    body: ProjectCreate,
    actor: Actor = Depends(get_current_actor),
    projects: ProjectService = Depends(get_project_service),
):
    """Create a new project."""
    return result_response(await projects.create_project(actor, body), status.HTTP_201_CREATED)


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    actor: Actor = Depends(get_current_actor),
    projects: ProjectService = Depends(get_project_service),
):
    """Get project with detailed task statistics."""
    return result_response(await projects.get_project(actor, project_id))


@router.patch("/{project_id}")
async def update_project(
    project_id: str,
    body: ProjectUpdate,
    actor: Actor = Depends(get_current_actor),
    projects: ProjectService = Depends(get_project_service),
):
    return result_response(await projects.update_project(actor, project_id, body))


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    delete_tasks: bool = Query(False, description="Delete the project's tasks instead of unlinking them"),
    actor: Actor = Depends(get_current_actor),
    projects: ProjectService = Depends(get_project_service),
):
    return result_response(await projects.delete_project(actor, project_id, delete_tasks=delete_tasks))


@router.get("/{project_id}/tasks")
async def list_project_tasks(
    project_id: str,
    status_filter: Optional[TaskStatus] = Query(None, alias="status", description="Filter by status"),
    actor: Actor = Depends(get_current_actor),
    tasks: TaskService = Depends(get_task_service),
):
    return result_response(await tasks.list_tasks_by_project(actor, project_id, status_filter))


# ----------------------------------------------------------------------
# Team
# ----------------------------------------------------------------------

@router.post("/{project_id}/developers/{developer_id}")
async def add_developer(
    project_id: str,
    developer_id: str,
    actor: Actor = Depends(get_current_actor),
    projects: ProjectService = Depends(get_project_service),
):
    return result_response(await projects.add_developer(actor, project_id, developer_id))


@router.delete("/{project_id}/developers/{developer_id}")
async def remove_developer(
    project_id: str,
    developer_id: str,
    actor: Actor = Depends(get_current_actor),
    projects: ProjectService = Depends(get_project_service),
):
    return result_response(await projects.remove_developer(actor, project_id, developer_id))


# ----------------------------------------------------------------------
# Attachments
# ----------------------------------------------------------------------

@router.post("/{project_id}/attachments")
async def add_attachment(
    project_id: str,
    body: Attachment,
    actor: Actor = Depends(get_current_actor),
    projects: ProjectService = Depends(get_project_service),
):
    """Record a file already uploaded to blob storage."""
    return result_response(await projects.add_attachment(actor, project_id, body), status.HTTP_201_CREATED)


@router.delete("/{project_id}/attachments/{public_id:path}")
async def remove_attachment(
    project_id: str,
    public_id: str,
    actor: Actor = Depends(get_current_actor),
    projects: ProjectService = Depends(get_project_service),
):
    return result_response(await projects.remove_attachment(actor, project_id, public_id))


# ----------------------------------------------------------------------
# Sprints
# ----------------------------------------------------------------------

@router.get("/{project_id}/sprints")
async def list_project_sprints(
    project_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    return result_response(await sprints.list_sprints(actor, project_id))


@router.get("/{project_id}/sprints/active")
async def active_sprint(
    project_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    return result_response(await sprints.active_sprint(actor, project_id))


@router.get("/{project_id}/velocity")
async def velocity_history(
    project_id: str,
    actor: Actor = Depends(get_current_actor),
    sprints: SprintService = Depends(get_sprint_service),
):
    """Velocity of the project's completed sprints."""
    return result_response(await sprints.velocity_history(actor, project_id))
