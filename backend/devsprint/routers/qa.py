"""
QA review API endpoints.
"""

from fastapi import APIRouter, Depends

from devsprint.dependencies import get_lifecycle_service, get_task_service
from devsprint.infrastructure.auth import get_current_actor
from devsprint.infrastructure.exceptions import result_response
from devsprint.models.task import QAApprove, QAFail
from devsprint.models.user import Actor
from devsprint.services import TaskLifecycleService, TaskService

router = APIRouter()


@router.get("/queue")
async def qa_queue(actor: Actor = Depends(get_current_actor), tasks: TaskService = Depends(get_task_service)):
    """Pending QA tasks assigned to the caller."""
    return result_response(await tasks.list_qa_queue(actor))


@router.get("/tasks")
async def my_qa_tasks(actor: Actor = Depends(get_current_actor), tasks: TaskService = Depends(get_task_service)):
    """Every task the caller reviews, in any status."""
    return result_response(await tasks.list_my_qa_tasks(actor))


@router.post("/tasks/{task_id}/approve")
async def approve(
    task_id: str,
    body: QAApprove,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return result_response(await lifecycle.approve_qa_review(actor, task_id, body.notes))


@router.post("/tasks/{task_id}/fail")
async def fail(
    task_id: str,
    body: QAFail,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return result_response(await lifecycle.fail_qa_review(actor, task_id, body.notes, body.bugs_found))


@router.post("/tasks/{task_id}/timer/start")
async def start_qa_timer(
    task_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return result_response(await lifecycle.start_qa_timer(actor, task_id))


@router.post("/tasks/{task_id}/timer/stop")
async def stop_qa_timer(
    task_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return result_response(await lifecycle.stop_qa_timer(actor, task_id))
