"""Sprint queries."""

from typing import Optional, Sequence

from sqlalchemy import func, select

from devsprint.db.models import SprintModel
from devsprint.db.repositories.base import BaseRepository


class SprintRepository(BaseRepository[SprintModel]):
    model = SprintModel

    async def for_project(self, project_id: str, statuses: Optional[Sequence[str]] = None) -> Sequence[SprintModel]:
        stmt = select(SprintModel).where(SprintModel.project_id == project_id)
        if statuses:
            stmt = stmt.where(SprintModel.status.in_(list(statuses)))
        result = await self.session.execute(stmt.order_by(SprintModel.order, SprintModel.id))
        return result.scalars().all()

    async def list_all(self, status: Optional[str] = None) -> Sequence[SprintModel]:
        stmt = select(SprintModel)
        if status:
            stmt = stmt.where(SprintModel.status == status)
        result = await self.session.execute(stmt.order_by(SprintModel.start_date.desc(), SprintModel.id))
        return result.scalars().all()

    async def active_for_project(self, project_id: str) -> Optional[SprintModel]:
        result = await self.session.execute(
            select(SprintModel)
            .where(SprintModel.project_id == project_id, SprintModel.status == "Active")
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def next_order(self, project_id: str) -> int:
        result = await self.session.execute(
            select(func.max(SprintModel.order)).where(SprintModel.project_id == project_id)
        )
        return (result.scalar_one() or 0) + 1
