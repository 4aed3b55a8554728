"""
Task management service.
Handles task CRUD, QA assignment, comments and the task list views.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from devsprint.db.models import CommentModel, TaskModel, new_id
from devsprint.db.repositories import ProjectRepository, SprintRepository, TaskRepository, UserRepository
from devsprint.infrastructure.clock import Clock, as_naive_utc, utcnow
from devsprint.infrastructure.config import Settings
from devsprint.infrastructure.database import Database
from devsprint.models.task import Task, TaskCreate, TaskStatus, TaskUpdate
from devsprint.models.user import Actor, UserRole
from devsprint.services.lifecycle import require_actor
from devsprint.services.metrics import calculate_business_hours, current_week_number, points_for
from devsprint.services.operations import InvalidTransition, NotFound, ValidationFailed, operation
from devsprint.services.timer import developer_timer, qa_timer
from devsprint.services.views import to_task

logger = structlog.get_logger(__name__)

MIN_ESTIMATED_HOURS = 0.5
MAX_ESTIMATED_HOURS = 100


class TaskService:
    """Service for task management operations."""

    def __init__(self, db: Database, settings: Settings, clock: Clock = utcnow):
        self.db = db
        self.settings = settings
        self.clock = clock
        self.retries = settings.transition_retries

    async def _load(self, session: AsyncSession, task_id: str) -> TaskModel:
        task = await TaskRepository(session).get_by_id(task_id)
        if task is None:
            raise NotFound("Task not found")
        return task

    async def _require_user(self, session: AsyncSession, user_id: str, role: UserRole, message: str) -> None:
        user = await UserRepository(session).get_by_id(user_id)
        if user is None or user.role != role.value:
            raise ValidationFailed(message)

    def _estimate(self, start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
        if start is None or end is None:
            return None
        return calculate_business_hours(
            as_naive_utc(start),
            as_naive_utc(end),
            work_days=self.settings.work_days,
            effective_hours=self.settings.effective_work_hours,
            lunch_break_hours=self.settings.lunch_break_hours,
            lunch_threshold_hours=self.settings.lunch_break_threshold_hours,
        )

    @staticmethod
    def _check_estimate(hours: Optional[float]) -> float:
        if hours is None:
            raise ValidationFailed("Estimated hours are required (or a scheduled date range)")
        if not MIN_ESTIMATED_HOURS <= hours <= MAX_ESTIMATED_HOURS:
            raise ValidationFailed(
                f"Estimated hours must be between {MIN_ESTIMATED_HOURS} and {MAX_ESTIMATED_HOURS}"
            )
        return hours

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @operation("Failed to create task")
    async def create_task(self, actor: Optional[Actor], data: TaskCreate):
        """Create a task in Todo; points always follow complexity."""
        actor = require_actor(actor, UserRole.PM, "Only PMs can create tasks")
        now = self.clock()

        estimated = data.estimated_hours
        if estimated is None:
            estimated = self._estimate(data.scheduled_start_date, data.scheduled_end_date)
        estimated = self._check_estimate(estimated)

        async with self.db.session() as session:
            await self._require_user(session, data.assigned_to, UserRole.DEVELOPER, "Assignee must be a developer")
            if data.assigned_qa:
                await self._require_user(session, data.assigned_qa, UserRole.QA, "Invalid QA member")
            if data.project_id and await ProjectRepository(session).get_by_id(data.project_id) is None:
                raise NotFound("Project not found")

            order = 0
            if data.sprint_id:
                if await SprintRepository(session).get_by_id(data.sprint_id) is None:
                    raise NotFound("Sprint not found")
                order = await TaskRepository(session).max_order(data.sprint_id) + 1

            points = points_for(data.complexity)
            task = await TaskRepository(session).create(
                id=new_id(),
                title=data.title.strip(),
                description=data.description or "",
                assigned_to_id=data.assigned_to,
                assigned_qa_id=data.assigned_qa,
                created_by_id=actor.id,
                project_id=data.project_id,
                sprint_id=data.sprint_id,
                status=TaskStatus.TODO.value,
                priority=data.priority.value,
                complexity=data.complexity.value,
                points=points,
                story_points=data.story_points or points,
                order=order,
                qa_review_notes="",
                bugs_found=0,
                estimated_hours=estimated,
                actual_hours=0.0,
                scheduled_start_date=as_naive_utc(data.scheduled_start_date) if data.scheduled_start_date else None,
                scheduled_end_date=as_naive_utc(data.scheduled_end_date) if data.scheduled_end_date else None,
                total_seconds_spent=0.0,
                is_timer_running=False,
                qa_time_spent=0.0,
                is_qa_timer_running=False,
                efficiency_bonus=0,
                proof_url="",
                is_blocked=False,
                blocker_note="",
                week_number=current_week_number(now),
                created_at=now,
                comments=[],
            )
            logger.info("task_created", task_id=task.id, assigned_to=task.assigned_to_id, points=points)
            return {"task": to_task(task, now), "task_id": task.id}

    @operation("Failed to update task")
    async def update_task(self, actor: Optional[Actor], task_id: str, data: TaskUpdate):
        """PM edit. A complexity change recomputes points."""
        require_actor(actor, UserRole.PM, "Only PMs can update tasks")
        now = self.clock()
        changes = data.model_dump(exclude_unset=True)

        async with self.db.session() as session:
            task = await self._load(session, task_id)

            if changes.get("title"):
                task.title = changes["title"].strip()
            if "description" in changes and changes["description"] is not None:
                task.description = changes["description"]
            if changes.get("assigned_to"):
                await self._require_user(
                    session, changes["assigned_to"], UserRole.DEVELOPER, "Assignee must be a developer"
                )
                if developer_timer(task).is_running and task.assigned_to_id != changes["assigned_to"]:
                    raise InvalidTransition("Stop the timer before reassigning the task")
                task.assigned_to_id = changes["assigned_to"]
            if changes.get("complexity"):
                task.complexity = data.complexity.value
                task.points = points_for(data.complexity)
            if changes.get("priority"):
                task.priority = data.priority.value
            if changes.get("story_points"):
                task.story_points = changes["story_points"]
            if changes.get("scheduled_start_date"):
                task.scheduled_start_date = as_naive_utc(changes["scheduled_start_date"])
            if changes.get("scheduled_end_date"):
                task.scheduled_end_date = as_naive_utc(changes["scheduled_end_date"])
            if changes.get("estimated_hours"):
                task.estimated_hours = self._check_estimate(changes["estimated_hours"])

            await session.flush()
            logger.info("task_updated", task_id=task.id, fields=sorted(changes))
            return {"task": to_task(task, now)}

    @operation("Failed to delete task")
    async def delete_task(self, actor: Optional[Actor], task_id: str):
        """Delete a task; its comments go with it."""
        require_actor(actor, UserRole.PM, "Only PMs can delete tasks")

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            await session.delete(task)
            logger.info("task_deleted", task_id=task_id)
            return {"task_id": task_id}

    @operation("Failed to fetch task")
    async def get_task(self, actor: Optional[Actor], task_id: str):
        require_actor(actor)
        async with self.db.session() as session:
            task = await self._load(session, task_id)
            return {"task": to_task(task, self.clock())}

    # ------------------------------------------------------------------
    # QA assignment
    # ------------------------------------------------------------------

    @operation("Failed to assign QA")
    async def assign_qa(self, actor: Optional[Actor], task_id: str, qa_id: str):
        require_actor(actor, UserRole.PM, "Only PMs can assign QA to tasks")
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            await self._require_user(session, qa_id, UserRole.QA, "Invalid QA member")
            if qa_timer(task).is_running and task.assigned_qa_id != qa_id:
                raise InvalidTransition("Stop the QA timer before reassigning the review")
            task.assigned_qa_id = qa_id

            await session.flush()
            logger.info("qa_assigned", task_id=task.id, qa_id=qa_id)
            return {"task": to_task(task, now)}

    @operation("Failed to unassign QA")
    async def unassign_qa(self, actor: Optional[Actor], task_id: str):
        require_actor(actor, UserRole.PM, "Only PMs can unassign QA")
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            if task.status == TaskStatus.PENDING_QA.value:
                raise InvalidTransition("Cannot remove the reviewer while the task is Pending QA")
            qa_timer(task).stop_if_running(now)
            task.assigned_qa_id = None

            await session.flush()
            logger.info("qa_unassigned", task_id=task.id)
            return {"task": to_task(task, now)}

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    @operation("Failed to post comment")
    async def post_comment(self, actor: Optional[Actor], task_id: str, text: str):
        actor = require_actor(actor)
        text = (text or "").strip()
        if not text:
            raise ValidationFailed("Comment cannot be empty")
        if len(text) > 1000:
            raise ValidationFailed("Comment must be 1000 characters or fewer")
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            task.comments.append(
                CommentModel(id=new_id(), user_id=actor.id, text=text, timestamp=now)
            )
            await session.flush()
            return {"task": to_task(task, now)}

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    async def _list(self, **filters) -> List[Task]:
        now = self.clock()
        async with self.db.session() as session:
            rows = await TaskRepository(session).find(**filters)
            return [to_task(row, now) for row in rows]

    @operation("Failed to fetch tasks")
    async def list_all_tasks(self, actor: Optional[Actor], project_id: Optional[str] = None):
        require_actor(actor, UserRole.PM)
        return {"tasks": await self._list(project_id=project_id)}

    @operation("Failed to fetch tasks")
    async def list_my_tasks(self, actor: Optional[Actor]):
        actor = require_actor(actor)
        return {"tasks": await self._list(assigned_to_id=actor.id)}

    @operation("Failed to fetch tasks")
    async def list_pending_review(self, actor: Optional[Actor]):
        require_actor(actor, UserRole.PM)
        return {"tasks": await self._list(statuses=[TaskStatus.PENDING_REVIEW.value])}

    @operation("Failed to fetch tasks")
    async def list_qa_queue(self, actor: Optional[Actor]):
        """Tasks waiting on the calling reviewer."""
        actor = require_actor(actor, UserRole.QA)
        return {"tasks": await self._list(assigned_qa_id=actor.id, statuses=[TaskStatus.PENDING_QA.value])}

    @operation("Failed to fetch tasks")
    async def list_my_qa_tasks(self, actor: Optional[Actor]):
        actor = require_actor(actor, UserRole.QA)
        return {"tasks": await self._list(assigned_qa_id=actor.id)}

    @operation("Failed to fetch tasks")
    async def list_tasks_by_project(
        self, actor: Optional[Actor], project_id: str, status: Optional[TaskStatus] = None
    ):
        require_actor(actor)
        async with self.db.session() as session:
            if await ProjectRepository(session).get_by_id(project_id) is None:
                raise NotFound("Project not found")
        statuses = [TaskStatus(status).value] if status else None
        return {"tasks": await self._list(project_id=project_id, statuses=statuses)}
