"""
Task data models.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Task lifecycle status."""
    TODO = "Todo"
    IN_PROGRESS = "In Progress"
    PENDING_QA = "Pending QA"
    PENDING_REVIEW = "Pending Review"
    COMPLETED = "Completed"
    CHANGES_REQUESTED = "Changes Requested"


class TaskComplexity(str, Enum):
    """Difficulty tier; fixes the task's point value."""
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class TaskPriority(str, Enum):
    """Task priority level."""
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class QAReviewStatus(str, Enum):
    """Outcome of the QA gate."""
    PENDING = "Pending"
    APPROVED = "Approved"
    FAILED = "Failed"


class ReviewDecision(str, Enum):
    """PM decision on a task awaiting final review."""
    APPROVE = "approve"
    REJECT = "reject"


COMPLEXITY_POINTS: Dict[TaskComplexity, int] = {
    TaskComplexity.EASY: 1,
    TaskComplexity.MEDIUM: 3,
    TaskComplexity.HARD: 5,
}

# Statuses reachable through a direct status change (no QA gate)
DIRECT_STATUSES = frozenset({
    TaskStatus.TODO,
    TaskStatus.IN_PROGRESS,
    TaskStatus.PENDING_REVIEW,
    TaskStatus.CHANGES_REQUESTED,
    TaskStatus.COMPLETED,
})


class TaskCreate(BaseModel):
    """Schema for creating a new task.

    ``estimated_hours`` may be omitted when both scheduled dates are given;
    it is then derived from the business-hours estimator.
    """
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    assigned_to: str
    assigned_qa: Optional[str] = None
    complexity: TaskComplexity
    priority: TaskPriority = TaskPriority.MEDIUM
    story_points: Optional[int] = Field(None, ge=1, le=21)
    estimated_hours: Optional[float] = Field(None, ge=0.5, le=100)
    scheduled_start_date: Optional[datetime] = None
    scheduled_end_date: Optional[datetime] = None
    project_id: Optional[str] = None
    sprint_id: Optional[str] = None


class TaskUpdate(BaseModel):
    """Schema for updating a task (PM edit form)."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    assigned_to: Optional[str] = None
    complexity: Optional[TaskComplexity] = None
    priority: Optional[TaskPriority] = None
    story_points: Optional[int] = Field(None, ge=1, le=21)
    estimated_hours: Optional[float] = Field(None, ge=0.5, le=100)
    scheduled_start_date: Optional[datetime] = None
    scheduled_end_date: Optional[datetime] = None


class SubmitProof(BaseModel):
    proof_url: str = ""


class QAApprove(BaseModel):
    notes: Optional[str] = None


class QAFail(BaseModel):
    notes: str = ""
    bugs_found: int = 1


class StatusChange(BaseModel):
    status: TaskStatus
    order: Optional[int] = None


class ReviewRequest(BaseModel):
    decision: ReviewDecision


class BlockerToggle(BaseModel):
    is_blocked: bool
    note: Optional[str] = None


class LogHours(BaseModel):
    hours: float


class CommentCreate(BaseModel):
    text: str = Field(..., max_length=1000)


class QAAssignment(BaseModel):
    qa_id: str


class Comment(BaseModel):
    """A comment on a task."""
    id: str
    user_id: str
    text: str
    timestamp: datetime


class Task(BaseModel):
    """Full task model, including values derived at read time."""

    id: str
    title: str
    description: str = ""
    project_id: Optional[str] = None
    sprint_id: Optional[str] = None
    assigned_to: str
    assigned_qa: Optional[str] = None
    created_by: str
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    complexity: TaskComplexity
    points: int
    story_points: int
    order: int = 0

    qa_review_status: Optional[QAReviewStatus] = None
    qa_review_notes: str = ""
    qa_reviewed_at: Optional[datetime] = None
    bugs_found: int = 0

    estimated_hours: float
    actual_hours: float = 0.0
    scheduled_start_date: Optional[datetime] = None
    scheduled_end_date: Optional[datetime] = None
    total_seconds_spent: float = 0.0
    is_timer_running: bool = False
    timer_start_time: Optional[datetime] = None
    qa_time_spent: float = 0.0
    is_qa_timer_running: bool = False
    qa_timer_start_time: Optional[datetime] = None
    efficiency_bonus: int = 0

    proof_url: str = ""
    is_blocked: bool = False
    blocker_note: str = ""
    week_number: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    comments: List[Comment] = Field(default_factory=list)

    # Derived
    efficiency: int = 100
    efficiency_display: str = "100%"
    live_seconds_spent: float = 0.0
    live_qa_seconds: float = 0.0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
