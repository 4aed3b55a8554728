"""
Aggregate statistics and weekly leaderboards.

Counts and sums are grouped in the database; ratios are finished in Python
so empty groups never divide by zero. Every ranking ends with the user id
as a secondary key so ties come back in a stable order.
"""

from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from devsprint.db.models import TaskModel, UserModel
from devsprint.infrastructure.clock import Clock, utcnow
from devsprint.infrastructure.database import Database
from devsprint.models.stats import (
    DeveloperLeaderboard,
    DeveloperLeaderboardEntry,
    DeveloperStats,
    QALeaderboard,
    QALeaderboardEntry,
    QAStats,
)
from devsprint.models.task import QAReviewStatus, TaskStatus
from devsprint.models.user import Actor, UserRole
from devsprint.services.lifecycle import require_actor
from devsprint.services.metrics import current_week_number, efficiency_percent
from devsprint.services.operations import operation

logger = structlog.get_logger(__name__)


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def _sum_where(condition, column):
    return func.coalesce(func.sum(case((condition, column), else_=0)), 0)


def pass_rate(approved: int, failed: int) -> float:
    """Approved share of decided reviews, in percent. 0 when nothing was decided."""
    decided = approved + failed
    if decided == 0:
        return 0.0
    return approved / decided * 100


def average_review_time(total_time_spent: float, total_reviewed: int) -> float:
    if total_reviewed == 0:
        return 0.0
    return total_time_spent / total_reviewed


class StatsService:
    """Read-only aggregation over tasks."""

    def __init__(self, db: Database, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    async def _users(self, session: AsyncSession, ids) -> Dict[str, UserModel]:
        if not ids:
            return {}
        result = await session.execute(select(UserModel).where(UserModel.id.in_(list(ids))))
        return {u.id: u for u in result.scalars().all()}

    async def _average_efficiency(self, session: AsyncSession) -> Dict[str, float]:
        result = await session.execute(
            select(TaskModel.assigned_to_id, TaskModel.estimated_hours, TaskModel.actual_hours)
            .where(TaskModel.status == TaskStatus.COMPLETED.value)
        )
        per_user: Dict[str, List[int]] = defaultdict(list)
        for user_id, estimated, actual in result.all():
            per_user[user_id].append(efficiency_percent(estimated, actual or 0.0))
        return {uid: round(sum(vals) / len(vals), 1) for uid, vals in per_user.items()}

    async def compute_team_stats(self, session: AsyncSession) -> List[DeveloperStats]:
        completed = TaskModel.status == TaskStatus.COMPLETED.value
        result = await session.execute(
            select(
                TaskModel.assigned_to_id,
                func.count(TaskModel.id),
                _count_where(completed),
                _count_where(TaskModel.status == TaskStatus.IN_PROGRESS.value),
                _count_where(TaskModel.is_blocked.is_(True)),
                _sum_where(completed, TaskModel.points),
            ).group_by(TaskModel.assigned_to_id)
        )
        rows = result.all()
        users = await self._users(session, {r[0] for r in rows})
        efficiency = await self._average_efficiency(session)

        stats = []
        for user_id, total, done, in_progress, blocked, points in rows:
            user = users.get(user_id)
            if user is None:
                continue
            stats.append(DeveloperStats(
                user_id=user_id,
                name=user.name,
                email=user.email,
                total_tasks=total,
                completed_tasks=done,
                in_progress_tasks=in_progress,
                blocked_tasks=blocked,
                total_points=points,
                average_efficiency=efficiency.get(user_id, 0.0),
            ))
        stats.sort(key=lambda s: (-s.total_tasks, s.user_id))
        return stats

    async def compute_qa_stats(self, session: AsyncSession) -> List[QAStats]:
        approved = TaskModel.qa_review_status == QAReviewStatus.APPROVED.value
        failed = TaskModel.qa_review_status == QAReviewStatus.FAILED.value
        result = await session.execute(
            select(
                TaskModel.assigned_qa_id,
                func.count(TaskModel.id),
                _count_where(approved),
                _count_where(failed),
                _count_where(TaskModel.status == TaskStatus.PENDING_QA.value),
                func.coalesce(func.sum(TaskModel.bugs_found), 0),
                func.coalesce(func.sum(TaskModel.qa_time_spent), 0.0),
                _sum_where(approved, TaskModel.points),
            )
            .where(TaskModel.assigned_qa_id.is_not(None), TaskModel.qa_review_status.is_not(None))
            .group_by(TaskModel.assigned_qa_id)
        )
        rows = result.all()
        users = await self._users(session, {r[0] for r in rows})

        stats = []
        for qa_id, reviewed, n_approved, n_failed, pending, bugs, time_spent, points in rows:
            user = users.get(qa_id)
            if user is None:
                continue
            stats.append(QAStats(
                user_id=qa_id,
                name=user.name,
                email=user.email,
                total_reviewed=reviewed,
                approved=n_approved,
                failed=n_failed,
                pending=pending,
                total_bugs_found=bugs,
                total_time_spent=float(time_spent),
                total_points=points,
                pass_rate=pass_rate(n_approved, n_failed),
                avg_review_time=average_review_time(float(time_spent), reviewed),
            ))
        stats.sort(key=lambda s: (-s.total_points, s.user_id))
        return stats

    async def compute_developer_leaderboard(self, session: AsyncSession, week: int) -> DeveloperLeaderboard:
        result = await session.execute(
            select(
                TaskModel.assigned_to_id,
                func.coalesce(func.sum(TaskModel.points), 0),
                func.count(TaskModel.id),
            )
            .where(TaskModel.status == TaskStatus.COMPLETED.value, TaskModel.week_number == week)
            .group_by(TaskModel.assigned_to_id)
        )
        rows = result.all()
        users = await self._users(session, {r[0] for r in rows})
        entries = [
            DeveloperLeaderboardEntry(
                user_id=user_id,
                name=users[user_id].name,
                email=users[user_id].email,
                total_points=points,
                completed_tasks=count,
            )
            for user_id, points, count in rows
            if user_id in users
        ]
        entries.sort(key=lambda e: (-e.total_points, e.user_id))
        return DeveloperLeaderboard(week_number=week, entries=entries)

    async def compute_qa_leaderboard(self, session: AsyncSession, week: int) -> QALeaderboard:
        approved = TaskModel.qa_review_status == QAReviewStatus.APPROVED.value
        result = await session.execute(
            select(
                TaskModel.assigned_qa_id,
                func.count(TaskModel.id),
                _count_where(approved),
                _sum_where(approved, TaskModel.points),
                func.coalesce(func.sum(TaskModel.bugs_found), 0),
            )
            .where(
                TaskModel.qa_review_status.in_(
                    [QAReviewStatus.APPROVED.value, QAReviewStatus.FAILED.value]
                ),
                TaskModel.week_number == week,
                TaskModel.assigned_qa_id.is_not(None),
            )
            .group_by(TaskModel.assigned_qa_id)
        )
        rows = result.all()
        users = await self._users(session, {r[0] for r in rows})
        entries = [
            QALeaderboardEntry(
                user_id=qa_id,
                name=users[qa_id].name,
                email=users[qa_id].email,
                reviewed_tasks=reviewed,
                approved=n_approved,
                total_points=points,
                bugs_found=bugs,
            )
            for qa_id, reviewed, n_approved, points, bugs in rows
            if qa_id in users
        ]
        entries.sort(key=lambda e: (-e.total_points, e.user_id))
        return QALeaderboard(week_number=week, entries=entries)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @operation("Failed to fetch team stats")
    async def team_stats(self, actor: Optional[Actor]):
        require_actor(actor, UserRole.PM)
        async with self.db.session() as session:
            return {"stats": await self.compute_team_stats(session)}

    @operation("Failed to fetch QA stats")
    async def qa_stats(self, actor: Optional[Actor]):
        require_actor(actor, UserRole.PM)
        async with self.db.session() as session:
            return {"stats": await self.compute_qa_stats(session)}

    @operation("Failed to fetch leaderboard")
    async def developer_leaderboard(self, actor: Optional[Actor], week_number: Optional[int] = None):
        require_actor(actor)
        week = week_number or current_week_number(self.clock())
        async with self.db.session() as session:
            board = await self.compute_developer_leaderboard(session, week)
        return {"leaderboard": board.entries, "week_number": board.week_number}

    @operation("Failed to fetch QA leaderboard")
    async def qa_leaderboard(self, actor: Optional[Actor], week_number: Optional[int] = None):
        require_actor(actor)
        week = week_number or current_week_number(self.clock())
        async with self.db.session() as session:
            board = await self.compute_qa_leaderboard(session, week)
        return {"leaderboard": board.entries, "week_number": board.week_number}
