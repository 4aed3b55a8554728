"""Task queries."""

from typing import Optional, Sequence

from sqlalchemy import func, select

from devsprint.db.models import CommentModel, TaskModel
from devsprint.db.repositories.base import BaseRepository


class TaskRepository(BaseRepository[TaskModel]):
    model = TaskModel

    async def find(
        self,
        *,
        assigned_to_id: Optional[str] = None,
        assigned_qa_id: Optional[str] = None,
        project_id: Optional[str] = None,
        sprint_id: Optional[str] = None,
        statuses: Optional[Sequence[str]] = None,
        week_number: Optional[int] = None,
        backlog_only: bool = False,
    ) -> Sequence[TaskModel]:
        """Filtered task list, newest first."""
        stmt = select(TaskModel)
        if assigned_to_id is not None:
            stmt = stmt.where(TaskModel.assigned_to_id == assigned_to_id)
        if assigned_qa_id is not None:
            stmt = stmt.where(TaskModel.assigned_qa_id == assigned_qa_id)
        if project_id is not None:
            stmt = stmt.where(TaskModel.project_id == project_id)
        if sprint_id is not None:
            stmt = stmt.where(TaskModel.sprint_id == sprint_id)
        if backlog_only:
            stmt = stmt.where(TaskModel.sprint_id.is_(None))
        if statuses:
            stmt = stmt.where(TaskModel.status.in_(list(statuses)))
        if week_number is not None:
            stmt = stmt.where(TaskModel.week_number == week_number)

        stmt = stmt.order_by(TaskModel.created_at.desc(), TaskModel.id)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def for_sprint_board(self, sprint_id: str) -> Sequence[TaskModel]:
        result = await self.session.execute(
            select(TaskModel)
            .where(TaskModel.sprint_id == sprint_id)
            .order_by(TaskModel.order, TaskModel.created_at)
        )
        return result.scalars().all()

    async def max_order(self, sprint_id: str) -> int:
        result = await self.session.execute(
            select(func.max(TaskModel.order)).where(TaskModel.sprint_id == sprint_id)
        )
        return result.scalar_one() or 0

    async def delete_comments_by_user(self, user_id: str) -> int:
        return await BaseRepository(self.session, CommentModel).delete_many({"user_id": user_id})
