"""
Aggregate statistics models for dashboards and leaderboards.
"""

from typing import List

from pydantic import BaseModel


class DeveloperStats(BaseModel):
    """Per-developer totals over their assigned tasks."""
    user_id: str
    name: str
    email: str
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    blocked_tasks: int = 0
    total_points: int = 0
    average_efficiency: float = 0.0


class QAStats(BaseModel):
    """Per-reviewer totals over reviewed tasks."""
    user_id: str
    name: str
    email: str
    total_reviewed: int = 0
    approved: int = 0
    failed: int = 0
    pending: int = 0
    total_bugs_found: int = 0
    total_time_spent: float = 0.0
    total_points: int = 0
    pass_rate: float = 0.0
    avg_review_time: float = 0.0


class DeveloperLeaderboardEntry(BaseModel):
    user_id: str
    name: str
    email: str
    total_points: int = 0
    completed_tasks: int = 0


class QALeaderboardEntry(BaseModel):
    user_id: str
    name: str
    email: str
    reviewed_tasks: int = 0
    approved: int = 0
    total_points: int = 0
    bugs_found: int = 0


class DeveloperLeaderboard(BaseModel):
    week_number: int
    entries: List[DeveloperLeaderboardEntry]


class QALeaderboard(BaseModel):
    week_number: int
    entries: List[QALeaderboardEntry]
