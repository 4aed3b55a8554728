"""
Sprint management service.

Sprint lifecycle (Planning -> Active -> Completed, or Cancelled), the sprint
board with its backlog, task ordering, velocity history and burndown.
Sprints are managed by the PM who created them.
"""

from datetime import timedelta
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from devsprint.db.models import SprintModel, TaskModel, new_id
from devsprint.db.repositories import ProjectRepository, SprintRepository, TaskRepository
from devsprint.infrastructure.clock import Clock, as_naive_utc, utcnow
from devsprint.infrastructure.database import Database
from devsprint.models.sprint import (
    BurndownPoint,
    SprintCreate,
    SprintStatus,
    SprintTaskStats,
    SprintUpdate,
    VelocityEntry,
)
from devsprint.models.task import TaskStatus
from devsprint.models.user import Actor, UserRole
from devsprint.services.lifecycle import require_actor
from devsprint.services.operations import InvalidTransition, NotFound, Unauthorized, ValidationFailed, operation
from devsprint.services.views import to_sprint, to_task

logger = structlog.get_logger(__name__)


def task_points(task: TaskModel) -> int:
    return task.story_points or task.points or 0


def sprint_task_stats(tasks: Iterable[TaskModel]) -> SprintTaskStats:
    stats = SprintTaskStats()
    for task in tasks:
        stats.total += 1
        stats.total_points += task_points(task)
        if task.status == TaskStatus.COMPLETED.value:
            stats.completed += 1
            stats.completed_points += task_points(task)
        elif task.status == TaskStatus.IN_PROGRESS.value:
            stats.in_progress += 1
        elif task.status == TaskStatus.TODO.value:
            stats.todo += 1
        elif task.status == TaskStatus.PENDING_REVIEW.value:
            stats.pending_review += 1
        if task.is_blocked:
            stats.blocked += 1
    return stats


class SprintService:
    """Service for sprint management operations."""

    def __init__(self, db: Database, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    async def _load_owned(self, session: AsyncSession, actor: Actor, sprint_id: str, verb: str) -> SprintModel:
        sprint = await SprintRepository(session).get_by_id(sprint_id)
        if sprint is None:
            raise NotFound("Sprint not found")
        if sprint.created_by_id != actor.id:
            raise Unauthorized(f"You can only {verb} your own sprints")
        return sprint

    async def _stats(self, session: AsyncSession, sprint_id: str) -> SprintTaskStats:
        return sprint_task_stats(await TaskRepository(session).for_sprint_board(sprint_id))

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @operation("Failed to create sprint")
    async def create_sprint(self, actor: Optional[Actor], data: SprintCreate):
        actor = require_actor(actor, UserRole.PM, "Only Project Managers can create sprints")
        if data.end_date <= data.start_date:
            raise ValidationFailed("Sprint end date must be after its start date")

        async with self.db.session() as session:
            project = await ProjectRepository(session).get_by_id(data.project_id)
            if project is None:
                raise NotFound("Project not found")
            if project.created_by_id != actor.id:
                raise Unauthorized("You can only create sprints for your own projects")

            repo = SprintRepository(session)
            order = await repo.next_order(project.id)
            sprint = await repo.create(
                id=new_id(),
                name=(data.name or "").strip() or f"Sprint {order}",
                goal=data.goal,
                project_id=project.id,
                start_date=as_naive_utc(data.start_date),
                end_date=as_naive_utc(data.end_date),
                status=SprintStatus.PLANNING.value,
                capacity=data.capacity,
                velocity=0,
                retrospective="",
                created_by_id=actor.id,
                order=order,
                created_at=self.clock(),
            )
            logger.info("sprint_created", sprint_id=sprint.id, project_id=project.id, order=order)
            return {"sprint": to_sprint(sprint, SprintTaskStats())}

    @operation("Failed to update sprint")
    async def update_sprint(self, actor: Optional[Actor], sprint_id: str, data: SprintUpdate):
        actor = require_actor(actor, UserRole.PM, "Only Project Managers can update sprints")
        changes = data.model_dump(exclude_unset=True)

        async with self.db.session() as session:
            sprint = await self._load_owned(session, actor, sprint_id, "update")
            for field in ("name", "goal", "capacity", "retrospective"):
                if changes.get(field) is not None:
                    setattr(sprint, field, changes[field])
            for field in ("start_date", "end_date"):
                if changes.get(field) is not None:
                    setattr(sprint, field, as_naive_utc(changes[field]))
            if sprint.end_date <= sprint.start_date:
                raise ValidationFailed("Sprint end date must be after its start date")

            await session.flush()
            return {"sprint": to_sprint(sprint, await self._stats(session, sprint.id))}

    @operation("Failed to start sprint")
    async def start_sprint(self, actor: Optional[Actor], sprint_id: str):
        """Planning -> Active; a project has at most one active sprint."""
        actor = require_actor(actor, UserRole.PM, "Only Project Managers can start sprints")

        async with self.db.session() as session:
            sprint = await self._load_owned(session, actor, sprint_id, "start")
            if sprint.status != SprintStatus.PLANNING.value:
                raise InvalidTransition("Only sprints in Planning status can be started")
            if await SprintRepository(session).active_for_project(sprint.project_id) is not None:
                raise InvalidTransition("There is already an active sprint for this project")

            sprint.status = SprintStatus.ACTIVE.value
            await session.flush()
            logger.info("sprint_started", sprint_id=sprint.id)
            return {"sprint": to_sprint(sprint, await self._stats(session, sprint.id))}

    @operation("Failed to complete sprint")
    async def complete_sprint(self, actor: Optional[Actor], sprint_id: str):
        """Active -> Completed. Records velocity and returns unfinished work to the backlog."""
        actor = require_actor(actor, UserRole.PM, "Only Project Managers can complete sprints")

        async with self.db.session() as session:
            sprint = await self._load_owned(session, actor, sprint_id, "complete")
            if sprint.status != SprintStatus.ACTIVE.value:
                raise InvalidTransition("Only active sprints can be completed")

            tasks = await TaskRepository(session).for_sprint_board(sprint.id)
            velocity = sum(task_points(t) for t in tasks if t.status == TaskStatus.COMPLETED.value)
            returned = 0
            for task in tasks:
                if task.status != TaskStatus.COMPLETED.value:
                    task.sprint_id = None
                    task.order = 0
                    returned += 1

            sprint.status = SprintStatus.COMPLETED.value
            sprint.velocity = velocity
            await session.flush()
            logger.info("sprint_completed", sprint_id=sprint.id, velocity=velocity, returned_to_backlog=returned)
            return {"sprint": to_sprint(sprint), "velocity": velocity}

    @operation("Failed to cancel sprint")
    async def cancel_sprint(self, actor: Optional[Actor], sprint_id: str):
        actor = require_actor(actor, UserRole.PM, "Only Project Managers can cancel sprints")

        async with self.db.session() as session:
            sprint = await self._load_owned(session, actor, sprint_id, "cancel")
            if sprint.status == SprintStatus.COMPLETED.value:
                raise InvalidTransition("Completed sprints cannot be cancelled")

            for task in await TaskRepository(session).for_sprint_board(sprint.id):
                task.sprint_id = None
                task.order = 0
            sprint.status = SprintStatus.CANCELLED.value
            await session.flush()
            logger.info("sprint_cancelled", sprint_id=sprint.id)
            return {"sprint": to_sprint(sprint)}

    @operation("Failed to delete sprint")
    async def delete_sprint(self, actor: Optional[Actor], sprint_id: str):
        actor = require_actor(actor, UserRole.PM, "Only Project Managers can delete sprints")

        async with self.db.session() as session:
            sprint = await self._load_owned(session, actor, sprint_id, "delete")
            for task in await TaskRepository(session).for_sprint_board(sprint.id):
                task.sprint_id = None
                task.order = 0
            await session.flush()
            await session.delete(sprint)
            logger.info("sprint_deleted", sprint_id=sprint_id)
            return {"sprint_id": sprint_id}

    @operation("Failed to fetch sprints")
    async def list_sprints(self, actor: Optional[Actor], project_id: Optional[str] = None):
        actor = require_actor(actor, UserRole.PM, "Only Project Managers can view sprints")

        async with self.db.session() as session:
            repo = SprintRepository(session)
            rows = await (repo.for_project(project_id) if project_id else repo.list_all())
            rows = sorted(
                (s for s in rows if s.created_by_id == actor.id),
                key=lambda s: (-(s.order or 0), s.id),
            )
            return {"sprints": [to_sprint(s, await self._stats(session, s.id)) for s in rows]}

    @operation("Failed to fetch sprint")
    async def get_board(self, actor: Optional[Actor], sprint_id: str):
        """Sprint, its ordered tasks, the project backlog and current stats."""
        require_actor(actor)
        now = self.clock()

        async with self.db.session() as session:
            sprint = await SprintRepository(session).get_by_id(sprint_id)
            if sprint is None:
                raise NotFound("Sprint not found")
            tasks_repo = TaskRepository(session)
            tasks = await tasks_repo.for_sprint_board(sprint.id)
            backlog = await tasks_repo.find(project_id=sprint.project_id, backlog_only=True)
            backlog = sorted(backlog, key=lambda t: (t.order or 0, t.created_at))
            stats = sprint_task_stats(tasks)
            return {
                "sprint": to_sprint(sprint, stats),
                "tasks": [to_task(t, now) for t in tasks],
                "backlog": [to_task(t, now) for t in backlog],
                "task_stats": stats,
            }

    # ------------------------------------------------------------------
    # Board membership and ordering
    # ------------------------------------------------------------------

    @operation("Failed to add task to sprint")
    async def add_task(self, actor: Optional[Actor], sprint_id: str, task_id: str):
        actor = require_actor(actor, UserRole.PM, "Only Project Managers can assign tasks to sprints")
        now = self.clock()

        async with self.db.session() as session:
            sprint = await self._load_owned(session, actor, sprint_id, "modify")
            if sprint.status in (SprintStatus.COMPLETED.value, SprintStatus.CANCELLED.value):
                raise InvalidTransition("Tasks cannot be added to a closed sprint")
            tasks = TaskRepository(session)
            task = await tasks.get_by_id(task_id)
            if task is None:
                raise NotFound("Task not found")

            order = await tasks.max_order(sprint.id) + 1
            task.sprint_id = sprint.id
            task.order = order
            if task.project_id is None:
                task.project_id = sprint.project_id
            await session.flush()
            return {"task": to_task(task, now)}

    @operation("Failed to remove task from sprint")
    async def remove_task(self, actor: Optional[Actor], task_id: str):
        require_actor(actor, UserRole.PM, "Only Project Managers can remove tasks from sprints")
        now = self.clock()

        async with self.db.session() as session:
            task = await TaskRepository(session).get_by_id(task_id)
            if task is None:
                raise NotFound("Task not found")
            task.sprint_id = None
            task.order = 0
            await session.flush()
            return {"task": to_task(task, now)}

    @operation("Failed to reorder tasks")
    async def reorder_tasks(self, actor: Optional[Actor], sprint_id: str, task_ids: List[str]):
        """Board position follows the order of ``task_ids``."""
        actor = require_actor(actor, UserRole.PM, "Only Project Managers can reorder tasks")

        async with self.db.session() as session:
            sprint = await self._load_owned(session, actor, sprint_id, "modify")
            board = {t.id: t for t in await TaskRepository(session).for_sprint_board(sprint.id)}
            unknown = [tid for tid in task_ids if tid not in board]
            if unknown:
                raise ValidationFailed(f"Tasks not in this sprint: {', '.join(unknown)}")
            for index, task_id in enumerate(task_ids):
                board[task_id].order = index
            await session.flush()
            return {"task_ids": list(task_ids)}

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @operation("Failed to fetch active sprint")
    async def active_sprint(self, actor: Optional[Actor], project_id: str):
        require_actor(actor)
        async with self.db.session() as session:
            sprint = await SprintRepository(session).active_for_project(project_id)
            if sprint is None:
                return {"sprint": None}
            return {"sprint": to_sprint(sprint, await self._stats(session, sprint.id))}

    @operation("Failed to fetch velocity history")
    async def velocity_history(self, actor: Optional[Actor], project_id: str):
        require_actor(actor)
        async with self.db.session() as session:
            sprints = await SprintRepository(session).for_project(project_id, [SprintStatus.COMPLETED.value])
            return {
                "velocity_history": [
                    VelocityEntry(id=s.id, name=s.name, velocity=s.velocity, capacity=s.capacity, order=s.order)
                    for s in sprints
                ]
            }

    @operation("Failed to fetch burndown data")
    async def burndown(self, actor: Optional[Actor], sprint_id: str):
        """
        Daily ideal and actual remaining points across the sprint.

        Ideal burns linearly from the total to zero. Actual counts tasks
        completed by each day; days after ``now`` have no actual value.
        """
        require_actor(actor)
        now = self.clock()

        async with self.db.session() as session:
            sprint = await SprintRepository(session).get_by_id(sprint_id)
            if sprint is None:
                raise NotFound("Sprint not found")
            tasks = await TaskRepository(session).for_sprint_board(sprint.id)

        total = sum(task_points(t) for t in tasks)
        duration = to_sprint(sprint).duration_days
        daily_burn = total / duration if duration > 0 else total
        completed = [
            (t.completed_at, task_points(t))
            for t in tasks
            if t.status == TaskStatus.COMPLETED.value
        ]

        points: List[BurndownPoint] = []
        for day in range(duration + 1):
            current = sprint.start_date + timedelta(days=day)
            done = sum(p for when, p in completed if when is not None and when <= current)
            points.append(BurndownPoint(
                date=current.date().isoformat(),
                ideal=round(max(0.0, total - daily_burn * day), 1),
                actual=total - done if current <= now else None,
            ))
        return {"burndown": points, "total_points": total}
