"""
Sprint data models.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SprintStatus(str, Enum):
    """Sprint lifecycle status."""
    PLANNING = "Planning"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class SprintCreate(BaseModel):
    """Schema for creating a new sprint."""
    project_id: str
    name: Optional[str] = Field(None, max_length=100)
    goal: str = Field("", max_length=500)
    start_date: datetime
    end_date: datetime
    capacity: int = Field(0, ge=0)


class SprintUpdate(BaseModel):
    """Schema for updating a sprint."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    goal: Optional[str] = Field(None, max_length=500)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    capacity: Optional[int] = Field(None, ge=0)
    retrospective: Optional[str] = Field(None, max_length=2000)


class SprintTaskStats(BaseModel):
    """Task counts and story points for one sprint."""
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    todo: int = 0
    pending_review: int = 0
    blocked: int = 0
    total_points: int = 0
    completed_points: int = 0


class Sprint(BaseModel):
    """Full sprint model."""
    id: str
    name: str
    goal: str = ""
    project_id: str
    start_date: datetime
    end_date: datetime
    status: SprintStatus = SprintStatus.PLANNING
    capacity: int = 0
    velocity: int = 0
    retrospective: str = ""
    created_by: str
    order: int = 1
    task_stats: Optional[SprintTaskStats] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def duration_days(self) -> int:
        """Sprint length in whole days, rounded up."""
        seconds = (self.end_date - self.start_date).total_seconds()
        return max(0, -(-int(seconds) // 86400))


class TaskOrder(BaseModel):
    task_ids: List[str]


class BurndownPoint(BaseModel):
    date: str
    ideal: float
    actual: Optional[int] = None


class VelocityEntry(BaseModel):
    id: str
    name: str
    velocity: int
    capacity: int
    order: int
