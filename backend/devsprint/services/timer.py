"""
Stopwatch timers stored on a task row.

A task carries two structurally identical timers: the developer work timer
and the QA review timer. ``TimerFields`` names the columns and the owning
role for one of them; ``Timer`` implements start/stop/elapsed once over
whichever column set it is given.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from devsprint.db.models import TaskModel
from devsprint.infrastructure.clock import as_naive_utc
from devsprint.models.user import Actor, UserRole
from devsprint.services.operations import InvalidTransition, Unauthorized


@dataclass(frozen=True)
class TimerFields:
    """Column mapping and ownership rule for one timer."""
    label: str
    owner_role: UserRole
    owner_field: str
    running_field: str
    start_field: str
    accumulator_field: str
    wrong_role_message: str
    not_owner_message: str


DEVELOPER_TIMER = TimerFields(
    label="Timer",
    owner_role=UserRole.DEVELOPER,
    owner_field="assigned_to_id",
    running_field="is_timer_running",
    start_field="timer_start_time",
    accumulator_field="total_seconds_spent",
    wrong_role_message="Only developers can use the timer",
    not_owner_message="You can only track time for your own tasks",
)

QA_TIMER = TimerFields(
    label="QA Timer",
    owner_role=UserRole.QA,
    owner_field="assigned_qa_id",
    running_field="is_qa_timer_running",
    start_field="qa_timer_start_time",
    accumulator_field="qa_time_spent",
    wrong_role_message="Only QA can use the QA timer",
    not_owner_message="You are not assigned to review this task",
)


class Timer:
    """One timer bound to one task row."""

    def __init__(self, fields: TimerFields, task: TaskModel):
        self.fields = fields
        self.task = task

    @property
    def is_running(self) -> bool:
        return bool(getattr(self.task, self.fields.running_field)) and self.start_time is not None

    @property
    def start_time(self) -> Optional[datetime]:
        return getattr(self.task, self.fields.start_field)

    @property
    def accumulated_seconds(self) -> float:
        return getattr(self.task, self.fields.accumulator_field) or 0.0

    def check_owner(self, actor: Actor) -> None:
        """Only the owning role, and the specific owner, may operate the timer."""
        if actor.role != self.fields.owner_role:
            raise Unauthorized(self.fields.wrong_role_message)
        if getattr(self.task, self.fields.owner_field) != actor.id:
            raise Unauthorized(self.fields.not_owner_message)

    def start(self, now: datetime) -> None:
        if self.is_running:
            raise InvalidTransition(f"{self.fields.label} is already running")
        setattr(self.task, self.fields.running_field, True)
        setattr(self.task, self.fields.start_field, as_naive_utc(now))

    def stop(self, now: datetime) -> float:
        """Close the running interval and return its length in seconds."""
        if not self.is_running:
            raise InvalidTransition(f"{self.fields.label} is not running")
        elapsed = self._interval(now)
        setattr(self.task, self.fields.accumulator_field, self.accumulated_seconds + elapsed)
        setattr(self.task, self.fields.running_field, False)
        setattr(self.task, self.fields.start_field, None)
        return elapsed

    def stop_if_running(self, now: datetime) -> float:
        if not self.is_running:
            return 0.0
        return self.stop(now)

    def elapsed(self, now: datetime) -> float:
        """Accumulated time plus the open interval, for display."""
        running = self._interval(now) if self.is_running else 0.0
        return self.accumulated_seconds + running

    def _interval(self, now: datetime) -> float:
        start = as_naive_utc(self.start_time)
        return max(0.0, (as_naive_utc(now) - start).total_seconds())


def developer_timer(task: TaskModel) -> Timer:
    return Timer(DEVELOPER_TIMER, task)


def qa_timer(task: TaskModel) -> Timer:
    return Timer(QA_TIMER, task)
