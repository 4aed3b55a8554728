"""
SQLAlchemy ORM models for DevSprint API.

Column types are kept portable so the same schema runs on PostgreSQL and
SQLite.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from devsprint.infrastructure.clock import utcnow
from devsprint.infrastructure.database import Base


def new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserModel(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    photo_url: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

project_developers = Table(
    "project_developers",
    Base.metadata,
    Column("project_id", String(32), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(32), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class ProjectModel(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    key: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="Active", index=True)
    color: Mapped[str] = mapped_column(String(20), default="#f97316")
    category: Mapped[str] = mapped_column(String(20), default="Web")
    priority: Mapped[str] = mapped_column(String(20), default="Medium")
    visibility: Mapped[str] = mapped_column(String(20), default="Team")
    risk_level: Mapped[str] = mapped_column(String(20), default="Low")
    client: Mapped[Optional[str]] = mapped_column(String(200))
    repository: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    attachments: Mapped[list] = mapped_column(JSON, default=list)

    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    target_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    actual_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_by_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id"), index=True)

    developers: Mapped[List[UserModel]] = relationship(secondary=project_developers, lazy="selectin")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Sprints
# ---------------------------------------------------------------------------

class SprintModel(Base):
    __tablename__ = "sprints"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    goal: Mapped[str] = mapped_column(Text, default="")
    project_id: Mapped[str] = mapped_column(String(32), ForeignKey("projects.id"), nullable=False, index=True)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Planning", index=True)
    capacity: Mapped[int] = mapped_column(Integer, default=0)
    velocity: Mapped[int] = mapped_column(Integer, default=0)
    retrospective: Mapped[str] = mapped_column(Text, default="")
    created_by_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id"), index=True)
    order: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class TaskModel(Base):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")

    project_id: Mapped[Optional[str]] = mapped_column(String(32), ForeignKey("projects.id"))
    sprint_id: Mapped[Optional[str]] = mapped_column(String(32), ForeignKey("sprints.id"))
    assigned_to_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id"), nullable=False)
    assigned_qa_id: Mapped[Optional[str]] = mapped_column(String(32), ForeignKey("users.id"))
    created_by_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(20), default="Todo")
    priority: Mapped[str] = mapped_column(String(20), default="Medium", index=True)
    complexity: Mapped[str] = mapped_column(String(10), nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=1)
    story_points: Mapped[int] = mapped_column(Integer, default=1)
    order: Mapped[int] = mapped_column(Integer, default=0)

    # QA review
    qa_review_status: Mapped[Optional[str]] = mapped_column(String(20))
    qa_review_notes: Mapped[str] = mapped_column(Text, default="")
    qa_reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    bugs_found: Mapped[int] = mapped_column(Integer, default=0)

    # Time tracking
    estimated_hours: Mapped[float] = mapped_column(Float, nullable=False)
    actual_hours: Mapped[float] = mapped_column(Float, default=0.0)
    scheduled_start_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    scheduled_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    total_seconds_spent: Mapped[float] = mapped_column(Float, default=0.0)
    is_timer_running: Mapped[bool] = mapped_column(Boolean, default=False)
    timer_start_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    qa_time_spent: Mapped[float] = mapped_column(Float, default=0.0)
    is_qa_timer_running: Mapped[bool] = mapped_column(Boolean, default=False)
    qa_timer_start_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    efficiency_bonus: Mapped[int] = mapped_column(Integer, default=0)

    proof_url: Mapped[str] = mapped_column(Text, default="")
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    blocker_note: Mapped[str] = mapped_column(String(500), default="")
    week_number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Compare-and-set guard for concurrent transitions
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    comments: Mapped[List["CommentModel"]] = relationship(
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="CommentModel.timestamp",
        lazy="selectin",
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_tasks_assigned_to_status", "assigned_to_id", "status"),
        Index("ix_tasks_assigned_qa_status", "assigned_qa_id", "status"),
        Index("ix_tasks_project_status", "project_id", "status"),
        Index("ix_tasks_sprint_order", "sprint_id", "order"),
    )


class CommentModel(Base):
    __tablename__ = "task_comments"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    task_id: Mapped[str] = mapped_column(String(32), ForeignKey("tasks.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id"), index=True)
    text: Mapped[str] = mapped_column(String(1000), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    task: Mapped[TaskModel] = relationship(back_populates="comments")
