"""
Team statistics and leaderboard API endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from devsprint.dependencies import get_stats_service
from devsprint.infrastructure.auth import get_current_actor
from devsprint.infrastructure.exceptions import result_response
from devsprint.models.user import Actor
from devsprint.services import StatsService

router = APIRouter()


@router.get("/team")
async def team_stats(actor: Actor = Depends(get_current_actor), stats: StatsService = Depends(get_stats_service)):
    """Per-developer totals."""
    return result_response(await stats.team_stats(actor))


@router.get("/qa")
async def qa_stats(actor: Actor = Depends(get_current_actor), stats: StatsService = Depends(get_stats_service)):
    """Per-reviewer totals."""
    return result_response(await stats.qa_stats(actor))


@router.get("/leaderboard")
async def developer_leaderboard(
    week_number: Optional[int] = Query(None, ge=1, le=53, description="Week bucket; defaults to the current week"),
    actor: Actor = Depends(get_current_actor),
    stats: StatsService = Depends(get_stats_service),
):
    return result_response(await stats.developer_leaderboard(actor, week_number))


@router.get("/leaderboard/qa")
async def qa_leaderboard(
    week_number: Optional[int] = Query(None, ge=1, le=53, description="Week bucket; defaults to the current week"),
    actor: Actor = Depends(get_current_actor),
    stats: StatsService = Depends(get_stats_service),
):
    return result_response(await stats.qa_leaderboard(actor, week_number))
