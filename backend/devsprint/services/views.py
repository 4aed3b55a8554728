"""
ORM row to API model conversion.

Derived task values (efficiency, live timer readings) are computed here on
every read instead of being stored.
"""

from datetime import datetime
from typing import Optional

from devsprint.db.models import ProjectModel, SprintModel, TaskModel, UserModel
from devsprint.models.project import Project, ProjectTaskStats
from devsprint.models.sprint import Sprint, SprintTaskStats
from devsprint.models.task import Comment, Task
from devsprint.models.user import User
from devsprint.services.metrics import efficiency_percent, format_efficiency
from devsprint.services.timer import developer_timer, qa_timer


def to_task(row: TaskModel, now: datetime) -> Task:
    efficiency = efficiency_percent(row.estimated_hours, row.actual_hours or 0.0)
    return Task(
        id=row.id,
        title=row.title,
        description=row.description or "",
        project_id=row.project_id,
        sprint_id=row.sprint_id,
        assigned_to=row.assigned_to_id,
        assigned_qa=row.assigned_qa_id,
        created_by=row.created_by_id,
        status=row.status,
        priority=row.priority,
        complexity=row.complexity,
        points=row.points,
        story_points=row.story_points,
        order=row.order or 0,
        qa_review_status=row.qa_review_status,
        qa_review_notes=row.qa_review_notes or "",
        qa_reviewed_at=row.qa_reviewed_at,
        bugs_found=row.bugs_found or 0,
        estimated_hours=row.estimated_hours,
        actual_hours=row.actual_hours or 0.0,
        scheduled_start_date=row.scheduled_start_date,
        scheduled_end_date=row.scheduled_end_date,
        total_seconds_spent=row.total_seconds_spent or 0.0,
        is_timer_running=bool(row.is_timer_running),
        timer_start_time=row.timer_start_time,
        qa_time_spent=row.qa_time_spent or 0.0,
        is_qa_timer_running=bool(row.is_qa_timer_running),
        qa_timer_start_time=row.qa_timer_start_time,
        efficiency_bonus=row.efficiency_bonus or 0,
        proof_url=row.proof_url or "",
        is_blocked=bool(row.is_blocked),
        blocker_note=row.blocker_note or "",
        week_number=row.week_number,
        started_at=row.started_at,
        completed_at=row.completed_at,
        comments=[
            Comment(id=c.id, user_id=c.user_id, text=c.text, timestamp=c.timestamp)
            for c in row.comments
        ],
        efficiency=efficiency,
        efficiency_display=format_efficiency(efficiency),
        live_seconds_spent=developer_timer(row).elapsed(now),
        live_qa_seconds=qa_timer(row).elapsed(now),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def to_user(row: UserModel) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        role=row.role,
        photo_url=row.photo_url,
        created_at=row.created_at,
    )


def to_project(row: ProjectModel, stats: Optional[ProjectTaskStats] = None) -> Project:
    return Project(
        id=row.id,
        name=row.name,
        key=row.key,
        description=row.description or "",
        status=row.status,
        color=row.color,
        category=row.category,
        priority=row.priority,
        visibility=row.visibility,
        risk_level=row.risk_level,
        client=row.client,
        repository=row.repository,
        tags=list(row.tags or []),
        notes=row.notes,
        attachments=list(row.attachments or []),
        start_date=row.start_date,
        target_end_date=row.target_end_date,
        actual_end_date=row.actual_end_date,
        developers=[u.id for u in row.developers],
        created_by=row.created_by_id,
        task_stats=stats,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def to_sprint(row: SprintModel, stats: Optional[SprintTaskStats] = None) -> Sprint:
    return Sprint(
        id=row.id,
        name=row.name,
        goal=row.goal or "",
        project_id=row.project_id,
        start_date=row.start_date,
        end_date=row.end_date,
        status=row.status,
        capacity=row.capacity or 0,
        velocity=row.velocity or 0,
        retrospective=row.retrospective or "",
        created_by=row.created_by_id,
        order=row.order or 1,
        task_stats=stats,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
