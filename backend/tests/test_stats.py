"""
Tests for team statistics and weekly leaderboards.
"""
import pytest

from devsprint.models.result import FailureKind
from devsprint.models.task import ReviewDecision, TaskComplexity, TaskStatus
from devsprint.services.stats_service import average_review_time, pass_rate


class TestRatios:

    def test_pass_rate(self):
        assert pass_rate(3, 1) == 75.0
        assert pass_rate(0, 0) == 0.0

    def test_average_review_time(self):
        assert average_review_time(1800.0, 2) == 900.0
        assert average_review_time(0.0, 0) == 0.0


async def _complete_through_qa(lifecycle, team, task_id, clock, fail_first=False):
    await lifecycle.start_task(team["dev"], task_id)
    clock.advance(hours=1)
    await lifecycle.submit_for_qa_review(team["dev"], task_id, "https://proof")
    await lifecycle.start_qa_timer(team["qa"], task_id)
    clock.advance(minutes=15)
    if fail_first:
        await lifecycle.fail_qa_review(team["qa"], task_id, "Broken", bugs_found=3)
        await lifecycle.start_task(team["dev"], task_id)
        await lifecycle.submit_for_qa_review(team["dev"], task_id, "https://proof")
    await lifecycle.approve_qa_review(team["qa"], task_id)
    await lifecycle.review_task(team["pm"], task_id, ReviewDecision.APPROVE)


class TestTeamStats:

    @pytest.mark.asyncio
    async def test_per_developer_totals(self, stats_service, lifecycle, make_task, team, clock):
        done = await make_task(complexity=TaskComplexity.HARD, assigned_qa=team["qa"].id, estimated_hours=2)
        await _complete_through_qa(lifecycle, team, done, clock)
        blocked = await make_task(complexity=TaskComplexity.EASY)
        await lifecycle.toggle_blocker(team["dev"], blocked, True, "Waiting")
        await make_task(assigned_to=team["dev2"].id)

        result = await stats_service.team_stats(team["pm"])
        stats = {s.user_id: s for s in result["stats"]}

        dev = stats[team["dev"].id]
        assert dev.total_tasks == 2
        assert dev.completed_tasks == 1
        assert dev.blocked_tasks == 1
        assert dev.total_points == 5
        assert dev.average_efficiency == 200.0
        assert stats[team["dev2"].id].completed_tasks == 0
        assert [s.user_id for s in result["stats"]] == [team["dev"].id, team["dev2"].id]

    @pytest.mark.asyncio
    async def test_pm_only(self, stats_service, team):
        result = await stats_service.team_stats(team["dev"])
        assert result.kind == FailureKind.UNAUTHORIZED


class TestQAStats:

    @pytest.mark.asyncio
    async def test_reviewer_totals(self, stats_service, lifecycle, make_task, team, clock):
        first = await make_task(complexity=TaskComplexity.MEDIUM, assigned_qa=team["qa"].id)
        await _complete_through_qa(lifecycle, team, first, clock, fail_first=True)
        # assigned but never submitted: not counted as reviewed
        await make_task(assigned_qa=team["qa"].id)

        result = await stats_service.qa_stats(team["pm"])
        assert len(result["stats"]) == 1
        qa = result["stats"][0]
        assert qa.user_id == team["qa"].id
        assert qa.total_reviewed == 1
        assert qa.approved == 1
        assert qa.failed == 0
        assert qa.total_bugs_found == 3
        assert qa.total_points == 3
        assert qa.total_time_spent == 900
        assert qa.pass_rate == 100.0


class TestLeaderboards:

    @pytest.mark.asyncio
    async def test_developer_leaderboard_for_current_week(self, stats_service, lifecycle, make_task, team, clock):
        hard = await make_task(complexity=TaskComplexity.HARD)
        easy = await make_task(complexity=TaskComplexity.EASY, assigned_to=team["dev2"].id)
        await lifecycle.change_task_status(team["pm"], hard, TaskStatus.COMPLETED)
        await lifecycle.change_task_status(team["pm"], easy, TaskStatus.COMPLETED)
        await make_task(complexity=TaskComplexity.HARD, assigned_to=team["dev2"].id)

        result = await stats_service.developer_leaderboard(team["dev"])
        assert result["week_number"] == 10
        board = result["leaderboard"]
        assert [(e.user_id, e.total_points) for e in board] == [(team["dev"].id, 5), (team["dev2"].id, 1)]

    @pytest.mark.asyncio
    async def test_other_weeks_are_empty(self, stats_service, lifecycle, make_task, team):
        task_id = await make_task()
        await lifecycle.change_task_status(team["pm"], task_id, TaskStatus.COMPLETED)
        result = await stats_service.developer_leaderboard(team["pm"], week_number=11)
        assert result["leaderboard"] == []
        assert result["week_number"] == 11

    @pytest.mark.asyncio
    async def test_qa_leaderboard(self, stats_service, lifecycle, make_task, team, clock):
        task_id = await make_task(complexity=TaskComplexity.HARD, assigned_qa=team["qa"].id)
        await _complete_through_qa(lifecycle, team, task_id, clock)

        result = await stats_service.qa_leaderboard(team["qa"])
        board = result["leaderboard"]
        assert len(board) == 1
        assert board[0].user_id == team["qa"].id
        assert board[0].approved == 1
        assert board[0].total_points == 5
