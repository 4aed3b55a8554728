"""
Project management service.
Handles project CRUD, the project team, attachments and task statistics.
"""

from typing import Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from devsprint.db.models import ProjectModel, TaskModel, UserModel, new_id
from devsprint.db.repositories import ProjectRepository, SprintRepository, TaskRepository, UserRepository
from devsprint.infrastructure.clock import Clock, as_naive_utc, utcnow
from devsprint.infrastructure.database import Database
from devsprint.infrastructure.exceptions import StorageError
from devsprint.infrastructure.storage import BlobStorage
from devsprint.models.project import (
    Attachment,
    AttachmentType,
    ProjectCreate,
    ProjectTaskStats,
    ProjectUpdate,
)
from devsprint.models.task import TaskStatus
from devsprint.models.user import Actor, UserRole
from devsprint.services.lifecycle import require_actor
from devsprint.services.operations import NotFound, ValidationFailed, operation
from devsprint.services.views import to_project

logger = structlog.get_logger(__name__)

_STATUS_COLUMNS = {
    "completed": TaskStatus.COMPLETED,
    "in_progress": TaskStatus.IN_PROGRESS,
    "todo": TaskStatus.TODO,
    "pending_qa": TaskStatus.PENDING_QA,
    "pending_review": TaskStatus.PENDING_REVIEW,
    "changes_requested": TaskStatus.CHANGES_REQUESTED,
}


def progress_percent(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(completed / total * 100 + 0.5)


def blob_resource_type(attachment_type: str) -> str:
    if attachment_type == AttachmentType.IMAGE.value:
        return "image"
    if attachment_type == AttachmentType.VIDEO.value:
        return "video"
    return "raw"


class ProjectService:
    """Service for project management operations."""

    def __init__(self, db: Database, storage: Optional[BlobStorage] = None, clock: Clock = utcnow):
        self.db = db
        self.storage = storage
        self.clock = clock

    async def _load(self, session: AsyncSession, project_id: str) -> ProjectModel:
        project = await ProjectRepository(session).get_by_id(project_id)
        if project is None:
            raise NotFound("Project not found")
        return project

    async def _developers(self, session: AsyncSession, ids: List[str]) -> List[UserModel]:
        unique = list(dict.fromkeys(ids))
        users = await UserRepository(session).get_many(unique)
        found = {u.id: u for u in users if u.role == UserRole.DEVELOPER.value}
        missing = [i for i in unique if i not in found]
        if missing:
            raise ValidationFailed(f"Unknown developers: {', '.join(missing)}")
        return [found[i] for i in unique]

    async def task_stats(self, session: AsyncSession, project_ids: List[str]) -> Dict[str, ProjectTaskStats]:
        """Per-project status counts and hour totals in one grouped query."""
        if not project_ids:
            return {}
        columns = [
            func.coalesce(func.sum(case((TaskModel.status == status.value, 1), else_=0)), 0).label(name)
            for name, status in _STATUS_COLUMNS.items()
        ]
        result = await session.execute(
            select(
                TaskModel.project_id,
                func.count(TaskModel.id).label("total"),
                *columns,
                func.coalesce(func.sum(case((TaskModel.is_blocked.is_(True), 1), else_=0)), 0).label("blocked"),
                func.coalesce(func.sum(TaskModel.estimated_hours), 0.0).label("total_estimated_hours"),
                func.coalesce(func.sum(TaskModel.actual_hours), 0.0).label("total_actual_hours"),
            )
            .where(TaskModel.project_id.in_(project_ids))
            .group_by(TaskModel.project_id)
        )

        stats = {pid: ProjectTaskStats() for pid in project_ids}
        for row in result.mappings().all():
            values = dict(row)
            pid = values.pop("project_id")
            values["total_estimated_hours"] = float(values["total_estimated_hours"])
            values["total_actual_hours"] = float(values["total_actual_hours"])
            values["progress"] = progress_percent(values["completed"], values["total"])
            stats[pid] = ProjectTaskStats(**values)
        return stats

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @operation("Failed to create project")
    async def create_project(self, actor: Optional[Actor], data: ProjectCreate):
        actor = require_actor(actor, UserRole.PM, "Only Project Managers can create projects")
        key = data.key.strip().upper()
        if not data.name.strip() or not key:
            raise ValidationFailed("Name, key, and start date are required")

        async with self.db.session() as session:
            repo = ProjectRepository(session)
            if await repo.get_by_key(key) is not None:
                raise ValidationFailed("A project with this key already exists")

            project = await repo.create(
                id=new_id(),
                name=data.name.strip(),
                key=key,
                description=data.description,
                status="Active",
                color=data.color,
                category=data.category.value,
                priority=data.priority.value,
                visibility=data.visibility.value,
                risk_level=data.risk_level.value,
                client=data.client,
                repository=data.repository,
                tags=[t.strip() for t in data.tags if t.strip()],
                notes=data.notes,
                attachments=[],
                start_date=as_naive_utc(data.start_date),
                target_end_date=as_naive_utc(data.target_end_date) if data.target_end_date else None,
                created_by_id=actor.id,
                created_at=self.clock(),
                developers=await self._developers(session, data.developers),
            )
            logger.info("project_created", project_id=project.id, key=key)
            return {"project": to_project(project, ProjectTaskStats())}

    @operation("Failed to update project")
    async def update_project(self, actor: Optional[Actor], project_id: str, data: ProjectUpdate):
        require_actor(actor, UserRole.PM, "Only Project Managers can update projects")
        changes = data.model_dump(exclude_unset=True)

        async with self.db.session() as session:
            project = await self._load(session, project_id)

            for field in ("name", "color"):
                if changes.get(field):
                    setattr(project, field, changes[field])
            for field in ("status", "category", "priority", "visibility", "risk_level"):
                if changes.get(field):
                    setattr(project, field, getattr(data, field).value)
            if "description" in changes:
                project.description = changes["description"] or ""
            for field in ("client", "repository", "notes"):
                if field in changes:
                    setattr(project, field, changes[field])
            if changes.get("tags") is not None:
                project.tags = [t.strip() for t in changes["tags"] if t.strip()]
            if changes.get("start_date"):
                project.start_date = as_naive_utc(changes["start_date"])
            for field in ("target_end_date", "actual_end_date"):
                if field in changes:
                    value = changes[field]
                    setattr(project, field, as_naive_utc(value) if value else None)
            if changes.get("developers") is not None:
                project.developers = await self._developers(session, changes["developers"])

            await session.flush()
            stats = await self.task_stats(session, [project.id])
            logger.info("project_updated", project_id=project.id, fields=sorted(changes))
            return {"project": to_project(project, stats[project.id])}

    @operation("Failed to delete project")
    async def delete_project(self, actor: Optional[Actor], project_id: str, delete_tasks: bool = False):
        """Delete a project, either deleting its tasks or leaving them standalone."""
        require_actor(actor, UserRole.PM, "Only Project Managers can delete projects")

        async with self.db.session() as session:
            project = await self._load(session, project_id)
            tasks = TaskRepository(session)

            for sprint in await SprintRepository(session).for_project(project_id):
                await tasks.update_many({"sprint_id": sprint.id}, sprint_id=None)
                await session.delete(sprint)

            if delete_tasks:
                for task in await tasks.find(project_id=project_id):
                    await session.delete(task)
                affected = "deleted"
            else:
                await tasks.update_many({"project_id": project_id}, project_id=None)
                affected = "unlinked"

            await session.delete(project)
            logger.info("project_deleted", project_id=project_id, tasks=affected)
            return {"project_id": project_id}

    @operation("Failed to get projects")
    async def list_projects(self, actor: Optional[Actor], status: Optional[str] = None):
        require_actor(actor, UserRole.PM, "Only Project Managers can view all projects")
        async with self.db.session() as session:
            projects = await ProjectRepository(session).list_all(status)
            stats = await self.task_stats(session, [p.id for p in projects])
            return {"projects": [to_project(p, stats[p.id]) for p in projects]}

    @operation("Failed to get project")
    async def get_project(self, actor: Optional[Actor], project_id: str):
        require_actor(actor)
        async with self.db.session() as session:
            project = await self._load(session, project_id)
            stats = await self.task_stats(session, [project.id])
            return {"project": to_project(project, stats[project.id])}

    # ------------------------------------------------------------------
    # Team
    # ------------------------------------------------------------------

    @operation("Failed to add developer")
    async def add_developer(self, actor: Optional[Actor], project_id: str, developer_id: str):
        require_actor(actor, UserRole.PM, "Only Project Managers can modify project team")
        async with self.db.session() as session:
            project = await self._load(session, project_id)
            if any(u.id == developer_id for u in project.developers):
                raise ValidationFailed("Developer is already in this project")
            project.developers.extend(await self._developers(session, [developer_id]))
            await session.flush()
            return {"project": to_project(project)}

    @operation("Failed to remove developer")
    async def remove_developer(self, actor: Optional[Actor], project_id: str, developer_id: str):
        require_actor(actor, UserRole.PM, "Only Project Managers can modify project team")
        async with self.db.session() as session:
            project = await self._load(session, project_id)
            project.developers = [u for u in project.developers if u.id != developer_id]
            await session.flush()
            return {"project": to_project(project)}

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    @operation("Failed to add attachment")
    async def add_attachment(self, actor: Optional[Actor], project_id: str, attachment: Attachment):
        require_actor(actor, UserRole.PM, "Only Project Managers can add attachments")
        async with self.db.session() as session:
            project = await self._load(session, project_id)
            entry = attachment.model_copy(update={"uploaded_at": self.clock()})
            # JSON column: assign a new list so the change is detected
            project.attachments = list(project.attachments or []) + [entry.model_dump(mode="json")]
            await session.flush()
            return {"project": to_project(project)}

    @operation("Failed to remove attachment")
    async def remove_attachment(self, actor: Optional[Actor], project_id: str, public_id: str):
        """Drop the attachment record, then delete the blob on a best-effort basis."""
        require_actor(actor, UserRole.PM, "Only Project Managers can remove attachments")
        async with self.db.session() as session:
            project = await self._load(session, project_id)
            current = list(project.attachments or [])
            attachment = next((a for a in current if a.get("public_id") == public_id), None)
            if attachment is None:
                raise NotFound("Attachment not found")
            project.attachments = [a for a in current if a.get("public_id") != public_id]
            await session.flush()
            view = to_project(project)

        if self.storage is not None:
            try:
                await self.storage.delete(public_id, blob_resource_type(attachment.get("type", "other")))
            except StorageError as e:
                logger.warning("attachment_blob_delete_failed", public_id=public_id, error=e.message)
        return {"project": view}
