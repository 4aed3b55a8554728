"""
Task lifecycle engine.

Validates and applies status transitions, drives the developer and QA
timers, and records the side effects each transition carries. Every public
method is an ``operation``: it returns an OperationResult and never raises
business-rule failures to the caller.

Each transition reads the task, validates, mutates and flushes inside one
transaction. The task's version column turns a concurrent write into a
StaleDataError, which the ``operation`` wrapper retries from a fresh read.
"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from devsprint.db.models import TaskModel
from devsprint.db.repositories import TaskRepository
from devsprint.infrastructure.clock import Clock, utcnow
from devsprint.infrastructure.database import Database
from devsprint.models.task import (
    DIRECT_STATUSES,
    QAReviewStatus,
    ReviewDecision,
    TaskStatus,
)
from devsprint.models.user import Actor, UserRole
from devsprint.services.metrics import efficiency_bonus
from devsprint.services.operations import (
    InvalidTransition,
    NotFound,
    Unauthorized,
    ValidationFailed,
    operation,
)
from devsprint.services.timer import developer_timer, qa_timer
from devsprint.services.views import to_task

logger = structlog.get_logger(__name__)


def require_actor(actor: Optional[Actor], role: Optional[UserRole] = None, message: str = "Unauthorized") -> Actor:
    """Reject a missing actor, or one without ``role`` when given."""
    if actor is None:
        raise Unauthorized("Not authenticated")
    if role is not None and actor.role != role:
        raise Unauthorized(message)
    return actor


def require_status(task: TaskModel, allowed: Iterable[TaskStatus], message: str) -> None:
    if task.status not in {s.value for s in allowed}:
        raise InvalidTransition(message)


def sync_actual_hours(task: TaskModel) -> None:
    """actual_hours mirrors the developer timer accumulator."""
    task.actual_hours = (task.total_seconds_spent or 0.0) / 3600


class TaskLifecycleService:
    """Role-gated task transitions and timer operations."""

    def __init__(self, db: Database, clock: Clock = utcnow, retries: int = 3):
        self.db = db
        self.clock = clock
        self.retries = retries

    async def _load(self, session: AsyncSession, task_id: str) -> TaskModel:
        task = await TaskRepository(session).get_by_id(task_id)
        if task is None:
            raise NotFound("Task not found")
        return task

    def _stop_developer_timer(self, task: TaskModel, now: datetime) -> None:
        developer_timer(task).stop_if_running(now)
        sync_actual_hours(task)

    def _log_transition(self, task: TaskModel, from_status: str, actor: Actor, action: str) -> None:
        logger.info(
            "task_transition",
            task_id=task.id,
            action=action,
            from_status=from_status,
            to_status=task.status,
            actor_id=actor.id,
            actor_role=actor.role.value,
        )

    # ------------------------------------------------------------------
    # Developer transitions
    # ------------------------------------------------------------------

    @operation("Failed to start task")
    async def start_task(self, actor: Optional[Actor], task_id: str):
        """Todo | Changes Requested -> In Progress, starting the work timer."""
        actor = require_actor(actor, UserRole.DEVELOPER, "Only developers can start tasks")
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            if task.assigned_to_id != actor.id:
                raise Unauthorized("You can only start your own tasks")
            require_status(
                task,
                (TaskStatus.TODO, TaskStatus.CHANGES_REQUESTED),
                "Task must be Todo or Changes Requested to start",
            )

            previous = task.status
            task.status = TaskStatus.IN_PROGRESS.value
            if task.started_at is None:
                task.started_at = now
            timer = developer_timer(task)
            if not timer.is_running:
                timer.start(now)

            await session.flush()
            self._log_transition(task, previous, actor, "start")
            return {"task": to_task(task, now)}

    @operation("Failed to update task")
    async def submit_for_review(self, actor: Optional[Actor], task_id: str, proof_url: str):
        """In Progress -> Pending Review for tasks without a QA reviewer."""
        actor = require_actor(actor, UserRole.DEVELOPER, "Only developers can submit for review")
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            if task.assigned_to_id != actor.id:
                raise Unauthorized("You can only update your own tasks")
            if task.assigned_qa_id:
                raise ValidationFailed("This task has a QA reviewer. Submit it for QA review instead.")
            require_status(task, (TaskStatus.IN_PROGRESS,), "Task must be In Progress to submit for review")
            if not (proof_url or "").strip():
                raise ValidationFailed("Proof URL is required")

            previous = task.status
            self._stop_developer_timer(task, now)
            task.efficiency_bonus = efficiency_bonus(task.estimated_hours, task.total_seconds_spent or 0.0)
            task.proof_url = proof_url.strip()
            task.status = TaskStatus.PENDING_REVIEW.value

            await session.flush()
            self._log_transition(task, previous, actor, "submit_for_review")
            return {"task": to_task(task, now)}

    @operation("Failed to submit for QA review")
    async def submit_for_qa_review(self, actor: Optional[Actor], task_id: str, proof_url: str):
        """In Progress | Changes Requested -> Pending QA."""
        actor = require_actor(actor, UserRole.DEVELOPER, "Only developers can submit for QA review")
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            if task.assigned_to_id != actor.id:
                raise Unauthorized("You can only submit your own tasks")
            if not task.assigned_qa_id:
                raise ValidationFailed("No QA assigned to this task. Submit directly for PM review.")
            require_status(
                task,
                (TaskStatus.IN_PROGRESS, TaskStatus.CHANGES_REQUESTED),
                "Task must be In Progress or Changes Requested to submit for QA review",
            )
            if not (proof_url or "").strip():
                raise ValidationFailed("Proof URL is required")

            previous = task.status
            self._stop_developer_timer(task, now)
            task.efficiency_bonus = efficiency_bonus(task.estimated_hours, task.total_seconds_spent or 0.0)
            task.proof_url = proof_url.strip()
            task.status = TaskStatus.PENDING_QA.value
            task.qa_review_status = QAReviewStatus.PENDING.value

            await session.flush()
            self._log_transition(task, previous, actor, "submit_for_qa_review")
            return {"task": to_task(task, now)}

    # ------------------------------------------------------------------
    # QA gate
    # ------------------------------------------------------------------

    @operation("Failed to approve review")
    async def approve_qa_review(self, actor: Optional[Actor], task_id: str, notes: Optional[str] = None):
        """Pending QA -> Pending Review."""
        actor = require_actor(actor, UserRole.QA, "Only QA can approve reviews")
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            if task.assigned_qa_id != actor.id:
                raise Unauthorized("You are not assigned to review this task")
            require_status(task, (TaskStatus.PENDING_QA,), "Task must be in Pending QA status")

            previous = task.status
            qa_timer(task).stop_if_running(now)
            task.status = TaskStatus.PENDING_REVIEW.value
            task.qa_review_status = QAReviewStatus.APPROVED.value
            task.qa_reviewed_at = now
            if notes:
                task.qa_review_notes = notes.strip()

            await session.flush()
            self._log_transition(task, previous, actor, "approve_qa_review")
            return {"task": to_task(task, now)}

    @operation("Failed to fail review")
    async def fail_qa_review(self, actor: Optional[Actor], task_id: str, notes: str, bugs_found: int = 1):
        """Pending QA -> Changes Requested, counting the bugs found."""
        actor = require_actor(actor, UserRole.QA, "Only QA can fail reviews")
        if not (notes or "").strip():
            raise ValidationFailed("Please provide feedback notes for the developer")
        if bugs_found < 0:
            raise ValidationFailed("Bugs found cannot be negative")
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            if task.assigned_qa_id != actor.id:
                raise Unauthorized("You are not assigned to review this task")
            require_status(task, (TaskStatus.PENDING_QA,), "Task must be in Pending QA status")

            previous = task.status
            qa_timer(task).stop_if_running(now)
            task.status = TaskStatus.CHANGES_REQUESTED.value
            task.qa_review_status = QAReviewStatus.FAILED.value
            task.qa_review_notes = notes.strip()
            task.qa_reviewed_at = now
            task.bugs_found = (task.bugs_found or 0) + bugs_found

            await session.flush()
            self._log_transition(task, previous, actor, "fail_qa_review")
            return {"task": to_task(task, now)}

    # ------------------------------------------------------------------
    # PM decision and direct moves
    # ------------------------------------------------------------------

    @operation("Failed to update task status")
    async def review_task(self, actor: Optional[Actor], task_id: str, decision: ReviewDecision):
        """Pending Review -> Completed (approve) or Changes Requested (reject)."""
        actor = require_actor(actor, UserRole.PM, "Only PMs can approve or reject tasks")
        try:
            decision = ReviewDecision(decision)
        except ValueError as e:
            raise ValidationFailed("Invalid decision") from e
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            require_status(
                task, (TaskStatus.PENDING_REVIEW,), "Task must be in Pending Review to approve/reject"
            )

            previous = task.status
            if decision == ReviewDecision.APPROVE:
                task.status = TaskStatus.COMPLETED.value
                task.completed_at = now
            else:
                task.status = TaskStatus.CHANGES_REQUESTED.value

            await session.flush()
            self._log_transition(task, previous, actor, f"review_{decision.value}")
            return {"task": to_task(task, now)}

    @operation("Failed to update status")
    async def change_task_status(
        self,
        actor: Optional[Actor],
        task_id: str,
        new_status: TaskStatus,
        order: Optional[int] = None,
    ):
        """
        Direct move among the non-QA statuses (dashboards, sprint board).

        The assignee or a PM may move a task. Completing directly is a PM
        decision. Tasks with a QA reviewer cannot skip the QA gate: they can
        neither be moved into Pending Review or Completed here nor pulled out
        of Pending QA.
        """
        actor = require_actor(actor)
        try:
            new_status = TaskStatus(new_status)
        except ValueError as e:
            raise ValidationFailed("Invalid status") from e
        if actor.role == UserRole.QA:
            raise Unauthorized("QA cannot change task status directly")
        if new_status not in DIRECT_STATUSES:
            raise InvalidTransition("Pending QA can only be entered by submitting for QA review")
        if new_status == TaskStatus.COMPLETED and actor.role != UserRole.PM:
            raise Unauthorized("Only PMs can mark tasks as completed")
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            if actor.role == UserRole.DEVELOPER and task.assigned_to_id != actor.id:
                raise Unauthorized("You can only update your own tasks")

            previous = task.status
            if order is not None:
                task.order = order
            if previous == new_status.value:
                await session.flush()
                return {"task": to_task(task, now)}

            if task.assigned_qa_id:
                if previous == TaskStatus.PENDING_QA.value:
                    raise InvalidTransition("Task is awaiting QA review")
                if new_status in (TaskStatus.PENDING_REVIEW, TaskStatus.COMPLETED):
                    raise InvalidTransition("Tasks with a QA reviewer must pass QA review first")

            if previous == TaskStatus.IN_PROGRESS.value:
                self._stop_developer_timer(task, now)
            if new_status == TaskStatus.IN_PROGRESS:
                if task.started_at is None:
                    task.started_at = now
                timer = developer_timer(task)
                if not timer.is_running:
                    timer.start(now)
            if new_status == TaskStatus.COMPLETED:
                task.completed_at = now

            task.status = new_status.value

            await session.flush()
            self._log_transition(task, previous, actor, "change_status")
            return {"task": to_task(task, now)}

    @operation("Failed to toggle blocker")
    async def toggle_blocker(
        self,
        actor: Optional[Actor],
        task_id: str,
        is_blocked: bool,
        note: Optional[str] = None,
    ):
        """Set or clear the blocked overlay; status is untouched."""
        actor = require_actor(actor)
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            if actor.role == UserRole.DEVELOPER and task.assigned_to_id != actor.id:
                raise Unauthorized("You can only update your own tasks")
            if actor.role == UserRole.QA and task.assigned_qa_id != actor.id:
                raise Unauthorized("You are not assigned to review this task")
            if task.status == TaskStatus.COMPLETED.value:
                raise InvalidTransition("Completed tasks cannot be blocked or unblocked")

            if is_blocked:
                if not (note or "").strip():
                    raise ValidationFailed("A blocker note is required")
                if len(note.strip()) > 500:
                    raise ValidationFailed("Blocker note must be 500 characters or fewer")
                task.is_blocked = True
                task.blocker_note = note.strip()
            else:
                task.is_blocked = False
                task.blocker_note = ""

            await session.flush()
            logger.info(
                "task_blocker_toggled",
                task_id=task.id,
                is_blocked=task.is_blocked,
                actor_id=actor.id,
            )
            return {"task": to_task(task, now), "is_blocked": task.is_blocked}

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    @operation("Failed to start timer")
    async def start_timer(self, actor: Optional[Actor], task_id: str):
        actor = require_actor(actor)
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            timer = developer_timer(task)
            timer.check_owner(actor)
            timer.start(now)

            previous = task.status
            if task.status == TaskStatus.TODO.value:
                task.status = TaskStatus.IN_PROGRESS.value
                if task.started_at is None:
                    task.started_at = now

            await session.flush()
            if previous != task.status:
                self._log_transition(task, previous, actor, "start_timer")
            return {"task": to_task(task, now)}

    @operation("Failed to stop timer")
    async def stop_timer(self, actor: Optional[Actor], task_id: str):
        actor = require_actor(actor)
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            timer = developer_timer(task)
            timer.check_owner(actor)
            elapsed = timer.stop(now)
            sync_actual_hours(task)

            await session.flush()
            logger.info("timer_stopped", task_id=task.id, elapsed_seconds=elapsed)
            return {"task": to_task(task, now), "elapsed_seconds": elapsed}

    @operation("Failed to start QA timer")
    async def start_qa_timer(self, actor: Optional[Actor], task_id: str):
        actor = require_actor(actor)
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            timer = qa_timer(task)
            timer.check_owner(actor)
            timer.start(now)

            await session.flush()
            return {"task": to_task(task, now)}

    @operation("Failed to stop QA timer")
    async def stop_qa_timer(self, actor: Optional[Actor], task_id: str):
        actor = require_actor(actor)
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            timer = qa_timer(task)
            timer.check_owner(actor)
            elapsed = timer.stop(now)

            await session.flush()
            logger.info("qa_timer_stopped", task_id=task.id, elapsed_seconds=elapsed)
            return {"task": to_task(task, now), "elapsed_seconds": elapsed}

    @operation("Failed to log hours")
    async def log_hours(self, actor: Optional[Actor], task_id: str, hours: float):
        """Manual time entry by the assignee, added to the work timer total."""
        actor = require_actor(actor, UserRole.DEVELOPER, "Only developers can log hours")
        if hours is None or hours <= 0:
            raise ValidationFailed("Hours must be positive")
        now = self.clock()

        async with self.db.session() as session:
            task = await self._load(session, task_id)
            if task.assigned_to_id != actor.id:
                raise Unauthorized("You can only log hours on your own tasks")

            task.total_seconds_spent = (task.total_seconds_spent or 0.0) + hours * 3600
            sync_actual_hours(task)

            await session.flush()
            return {"task": to_task(task, now), "new_total": task.actual_hours}
