"""
Team membership and sign-in.
"""

from typing import Optional

from sqlalchemy import delete
import structlog

from devsprint.db.models import UserModel, new_id, project_developers
from devsprint.db.repositories import TaskRepository, UserRepository
from devsprint.infrastructure.auth import create_access_token, hash_password, verify_password
from devsprint.infrastructure.clock import Clock, utcnow
from devsprint.infrastructure.config import Settings
from devsprint.infrastructure.database import Database
from devsprint.models.task import TaskStatus
from devsprint.models.user import Actor, MemberCreate, TokenResponse, UserRole
from devsprint.services.lifecycle import require_actor
from devsprint.services.operations import InvalidTransition, NotFound, Unauthorized, ValidationFailed, operation
from devsprint.services.timer import qa_timer
from devsprint.services.views import to_user

logger = structlog.get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """Service for team members and sessions."""

    def __init__(self, db: Database, settings: Settings, clock: Clock = utcnow):
        self.db = db
        self.settings = settings
        self.clock = clock

    async def is_active(self, actor: Actor) -> bool:
        """The actor's account still exists with the same role."""
        async with self.db.session() as session:
            user = await UserRepository(session).get_by_id(actor.id)
            return user is not None and user.role == actor.role.value

    async def ensure_pm_account(self, name: str, email: str, password: str) -> str:
        """Create the configured PM account on first start. Returns its id."""
        async with self.db.session() as session:
            users = UserRepository(session)
            existing = await users.get_by_email(email)
            if existing is not None:
                return existing.id
            user = await users.create(
                id=new_id(),
                name=name,
                email=normalize_email(email),
                password_hash=hash_password(password),
                role=UserRole.PM.value,
                created_at=self.clock(),
            )
            logger.info("pm_account_created", user_id=user.id)
            return user.id

    @operation("Something went wrong")
    async def login(self, email: str, password: str):
        """Exchange email and password for a bearer token."""
        async with self.db.session() as session:
            user = await UserRepository(session).get_by_email(normalize_email(email))
            if user is None or not verify_password(password, user.password_hash):
                logger.info("login_failed", email=normalize_email(email))
                raise Unauthorized("Invalid email or password")

            token = create_access_token(user.id, UserRole(user.role), self.settings)
            logger.info("login_succeeded", user_id=user.id, role=user.role)
            return {
                "token": TokenResponse(access_token=token, user_id=user.id, role=user.role),
                "user": to_user(user),
            }

    @operation("Failed to add member")
    async def add_member(self, actor: Optional[Actor], data: MemberCreate):
        """PM adds a Developer or QA member."""
        require_actor(actor, UserRole.PM, "Only Project Managers can add team members")
        if data.role == UserRole.PM:
            raise ValidationFailed("Team members must be Developers or QA")
        email = normalize_email(data.email)
        if "@" not in email:
            raise ValidationFailed("Please provide a valid email")

        async with self.db.session() as session:
            users = UserRepository(session)
            if await users.get_by_email(email) is not None:
                raise ValidationFailed("A user with this email already exists")
            user = await users.create(
                id=new_id(),
                name=data.name.strip(),
                email=email,
                password_hash=hash_password(data.password) if data.password else None,
                role=data.role.value,
                photo_url=data.photo_url,
                created_at=self.clock(),
            )
            logger.info("member_added", user_id=user.id, role=user.role)
            return {"user": to_user(user)}

    @operation("Failed to fetch developers")
    async def list_developers(self, actor: Optional[Actor]):
        require_actor(actor, UserRole.PM)
        async with self.db.session() as session:
            rows = await UserRepository(session).list_by_role(UserRole.DEVELOPER.value)
            return {"developers": [to_user(u) for u in rows]}

    @operation("Failed to fetch QA members")
    async def list_qa_members(self, actor: Optional[Actor]):
        require_actor(actor, UserRole.PM)
        async with self.db.session() as session:
            rows = await UserRepository(session).list_by_role(UserRole.QA.value)
            return {"qa_members": [to_user(u) for u in rows]}

    @operation("Failed to fetch user")
    async def get_profile(self, actor: Optional[Actor]):
        actor = require_actor(actor)
        async with self.db.session() as session:
            user = await UserRepository(session).get_by_id(actor.id)
            if user is None:
                raise NotFound("User not found")
            return {"user": to_user(user)}

    async def _delete_developer(self, session, developer: UserModel) -> dict:
        tasks = TaskRepository(session)
        assigned = await tasks.find(assigned_to_id=developer.id)
        for task in assigned:
            await session.delete(task)
        await session.flush()
        comments = await tasks.delete_comments_by_user(developer.id)
        await session.execute(delete(project_developers).where(project_developers.c.user_id == developer.id))
        await session.delete(developer)

        logger.info(
            "developer_deleted",
            user_id=developer.id,
            tasks_deleted=len(assigned),
            comments_deleted=comments,
        )
        return {"user_id": developer.id, "tasks_deleted": len(assigned)}

    async def _delete_qa_member(self, session, qa_user: UserModel) -> dict:
        tasks = await TaskRepository(session).find(assigned_qa_id=qa_user.id)
        if any(t.status == TaskStatus.PENDING_QA.value for t in tasks):
            raise InvalidTransition("QA member has tasks awaiting review; reassign them first")
        now = self.clock()
        for task in tasks:
            qa_timer(task).stop_if_running(now)
            task.assigned_qa_id = None
        await session.flush()
        await TaskRepository(session).delete_comments_by_user(qa_user.id)
        await session.delete(qa_user)

        logger.info("qa_member_deleted", user_id=qa_user.id, tasks_unassigned=len(tasks))
        return {"user_id": qa_user.id, "tasks_unassigned": len(tasks)}

    @operation("Failed to delete developer")
    async def delete_developer(self, actor: Optional[Actor], developer_id: str):
        """Delete a developer with their assigned tasks and their comments."""
        require_actor(actor, UserRole.PM, "Only Project Managers can delete developers")

        async with self.db.session() as session:
            developer = await UserRepository(session).get_by_id(developer_id)
            if developer is None:
                raise NotFound("Developer not found")
            if developer.role == UserRole.PM.value:
                raise InvalidTransition("Cannot delete a Project Manager")
            if developer.role != UserRole.DEVELOPER.value:
                raise ValidationFailed("User is not a developer")
            return await self._delete_developer(session, developer)

    @operation("Failed to delete QA member")
    async def delete_qa_member(self, actor: Optional[Actor], qa_id: str):
        """Delete a QA member, unassigning them from their tasks."""
        require_actor(actor, UserRole.PM, "Only PMs can delete QA members")

        async with self.db.session() as session:
            qa_user = await UserRepository(session).get_by_id(qa_id)
            if qa_user is None or qa_user.role != UserRole.QA.value:
                raise NotFound("QA member not found")
            return await self._delete_qa_member(session, qa_user)

    @operation("Failed to delete member")
    async def delete_member(self, actor: Optional[Actor], user_id: str):
        """Delete any non-PM member, applying the cleanup for their role."""
        require_actor(actor, UserRole.PM, "Only Project Managers can delete team members")

        async with self.db.session() as session:
            user = await UserRepository(session).get_by_id(user_id)
            if user is None:
                raise NotFound("User not found")
            if user.role == UserRole.PM.value:
                raise InvalidTransition("Cannot delete a Project Manager")
            if user.role == UserRole.QA.value:
                return await self._delete_qa_member(session, user)
            return await self._delete_developer(session, user)
