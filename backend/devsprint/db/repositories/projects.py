"""Project queries."""

from typing import Optional, Sequence

from sqlalchemy import select

from devsprint.db.models import ProjectModel
from devsprint.db.repositories.base import BaseRepository


class ProjectRepository(BaseRepository[ProjectModel]):
    model = ProjectModel

    async def get_by_key(self, key: str) -> Optional[ProjectModel]:
        result = await self.session.execute(
            select(ProjectModel).where(ProjectModel.key == key.strip().upper())
        )
        return result.scalar_one_or_none()

    async def list_all(self, status: Optional[str] = None) -> Sequence[ProjectModel]:
        stmt = select(ProjectModel)
        if status:
            stmt = stmt.where(ProjectModel.status == status)
        result = await self.session.execute(stmt.order_by(ProjectModel.created_at.desc(), ProjectModel.id))
        return result.scalars().all()
