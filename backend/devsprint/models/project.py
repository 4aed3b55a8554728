"""
Project data models.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ProjectStatus(str, Enum):
    ACTIVE = "Active"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"
    ARCHIVED = "Archived"


class ProjectCategory(str, Enum):
    WEB = "Web"
    MOBILE = "Mobile"
    DESKTOP = "Desktop"
    API = "API"
    DATA = "Data"
    DEVOPS = "DevOps"
    OTHER = "Other"


class ProjectPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class ProjectVisibility(str, Enum):
    PRIVATE = "Private"
    TEAM = "Team"
    PUBLIC = "Public"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class AttachmentType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    PDF = "pdf"
    DOCUMENT = "document"
    OTHER = "other"


class Attachment(BaseModel):
    """A file attached to a project, stored in blob storage."""
    name: str
    url: str
    public_id: str
    type: AttachmentType = AttachmentType.OTHER
    size: int = 0
    uploaded_at: Optional[datetime] = None


class ProjectCreate(BaseModel):
    """Schema for creating a new project."""
    name: str = Field(..., min_length=1, max_length=100)
    key: str = Field(..., min_length=1, max_length=10)
    description: str = ""
    color: str = "#f97316"
    category: ProjectCategory = ProjectCategory.WEB
    priority: ProjectPriority = ProjectPriority.MEDIUM
    visibility: ProjectVisibility = ProjectVisibility.TEAM
    risk_level: RiskLevel = RiskLevel.LOW
    client: Optional[str] = None
    repository: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    start_date: datetime
    target_end_date: Optional[datetime] = None
    developers: List[str] = Field(default_factory=list)


class ProjectUpdate(BaseModel):
    """Schema for updating a project."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    color: Optional[str] = None
    category: Optional[ProjectCategory] = None
    priority: Optional[ProjectPriority] = None
    visibility: Optional[ProjectVisibility] = None
    risk_level: Optional[RiskLevel] = None
    client: Optional[str] = None
    repository: Optional[str] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    start_date: Optional[datetime] = None
    target_end_date: Optional[datetime] = None
    actual_end_date: Optional[datetime] = None
    developers: Optional[List[str]] = None


class ProjectTaskStats(BaseModel):
    """Task counts and hours for one project."""
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    todo: int = 0
    pending_qa: int = 0
    pending_review: int = 0
    changes_requested: int = 0
    blocked: int = 0
    total_estimated_hours: float = 0.0
    total_actual_hours: float = 0.0
    progress: int = 0


class Project(BaseModel):
    """Full project model."""
    id: str
    name: str
    key: str
    description: str = ""
    status: ProjectStatus = ProjectStatus.ACTIVE
    color: str = "#f97316"
    category: ProjectCategory = ProjectCategory.WEB
    priority: ProjectPriority = ProjectPriority.MEDIUM
    visibility: ProjectVisibility = ProjectVisibility.TEAM
    risk_level: RiskLevel = RiskLevel.LOW
    client: Optional[str] = None
    repository: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)
    start_date: datetime
    target_end_date: Optional[datetime] = None
    actual_end_date: Optional[datetime] = None
    developers: List[str] = Field(default_factory=list)
    created_by: str
    task_stats: Optional[ProjectTaskStats] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
