"""User queries."""

from typing import Optional, Sequence

from sqlalchemy import select

from devsprint.db.models import UserModel
from devsprint.db.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserModel]):
    model = UserModel

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def list_by_role(self, role: str) -> Sequence[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.role == role).order_by(UserModel.name, UserModel.id)
        )
        return result.scalars().all()

    async def get_many(self, ids: Sequence[str]) -> Sequence[UserModel]:
        if not ids:
            return []
        result = await self.session.execute(select(UserModel).where(UserModel.id.in_(ids)))
        return result.scalars().all()
