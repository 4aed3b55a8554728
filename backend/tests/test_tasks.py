"""
Tests for task CRUD, QA assignment, comments and list views.
"""
import pytest
from datetime import datetime

from devsprint.models.result import FailureKind
from devsprint.models.task import TaskComplexity, TaskCreate, TaskStatus, TaskUpdate


class TestCreateTask:

    @pytest.mark.asyncio
    async def test_defaults(self, task_service, team, clock):
        result = await task_service.create_task(team["pm"], TaskCreate(
            title="  Build login form ",
            assigned_to=team["dev"].id,
            complexity=TaskComplexity.HARD,
            estimated_hours=4,
        ))
        task = result["task"]
        assert task.title == "Build login form"
        assert task.status == TaskStatus.TODO
        assert task.points == 5
        assert task.story_points == 5
        assert task.created_by == team["pm"].id
        assert task.week_number == 10
        assert task.efficiency == 100
        assert result["task_id"] == task.id

    @pytest.mark.asyncio
    async def test_estimate_from_schedule(self, task_service, team):
        result = await task_service.create_task(team["pm"], TaskCreate(
            title="Schedule",
            assigned_to=team["dev"].id,
            complexity=TaskComplexity.EASY,
            scheduled_start_date=datetime(2025, 3, 10, 9, 0),
            scheduled_end_date=datetime(2025, 3, 12, 17, 0),
        ))
        assert result["task"].estimated_hours == 19.5

    @pytest.mark.asyncio
    async def test_estimate_is_required(self, task_service, team):
        result = await task_service.create_task(team["pm"], TaskCreate(
            title="No estimate",
            assigned_to=team["dev"].id,
            complexity=TaskComplexity.EASY,
        ))
        assert result.kind == FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_weekend_schedule_gives_out_of_range_estimate(self, task_service, team):
        result = await task_service.create_task(team["pm"], TaskCreate(
            title="Saturday",
            assigned_to=team["dev"].id,
            complexity=TaskComplexity.EASY,
            scheduled_start_date=datetime(2025, 3, 15, 9, 0),
            scheduled_end_date=datetime(2025, 3, 15, 17, 0),
        ))
        assert result.kind == FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_only_pm_creates(self, task_service, team):
        result = await task_service.create_task(team["dev"], TaskCreate(
            title="Sneaky", assigned_to=team["dev"].id, complexity=TaskComplexity.EASY, estimated_hours=1,
        ))
        assert result.kind == FailureKind.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_assignee_must_be_developer(self, task_service, team):
        result = await task_service.create_task(team["pm"], TaskCreate(
            title="Wrong", assigned_to=team["qa"].id, complexity=TaskComplexity.EASY, estimated_hours=1,
        ))
        assert result.kind == FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_reviewer_must_be_qa(self, task_service, team):
        result = await task_service.create_task(team["pm"], TaskCreate(
            title="Wrong", assigned_to=team["dev"].id, assigned_qa=team["dev2"].id,
            complexity=TaskComplexity.EASY, estimated_hours=1,
        ))
        assert result.kind == FailureKind.VALIDATION
        assert result.error == "Invalid QA member"


class TestUpdateAndDelete:

    @pytest.mark.asyncio
    async def test_complexity_change_recomputes_points(self, task_service, make_task, team):
        task_id = await make_task(complexity=TaskComplexity.EASY)
        result = await task_service.update_task(team["pm"], task_id, TaskUpdate(complexity=TaskComplexity.HARD))
        assert result["task"].points == 5
        assert result["task"].complexity == TaskComplexity.HARD

    @pytest.mark.asyncio
    async def test_reassign_refused_while_timer_runs(self, task_service, lifecycle, make_task, team, clock):
        task_id = await make_task()
        await lifecycle.start_timer(team["dev"], task_id)
        clock.advance(minutes=15)

        result = await task_service.update_task(team["pm"], task_id, TaskUpdate(assigned_to=team["dev2"].id))
        assert result.kind == FailureKind.INVALID_TRANSITION

        await lifecycle.stop_timer(team["dev"], task_id)
        result = await task_service.update_task(team["pm"], task_id, TaskUpdate(assigned_to=team["dev2"].id))
        assert result["task"].assigned_to == team["dev2"].id
        assert result["task"].total_seconds_spent == 900

    @pytest.mark.asyncio
    async def test_delete_cascades_comments(self, task_service, make_task, team):
        task_id = await make_task()
        await task_service.post_comment(team["dev"], task_id, "On it")

        assert (await task_service.delete_task(team["pm"], task_id)).success
        result = await task_service.get_task(team["pm"], task_id)
        assert result.kind == FailureKind.NOT_FOUND


class TestQAAssignment:

    @pytest.mark.asyncio
    async def test_assign_and_unassign(self, task_service, make_task, team):
        task_id = await make_task()
        result = await task_service.assign_qa(team["pm"], task_id, team["qa"].id)
        assert result["task"].assigned_qa == team["qa"].id

        result = await task_service.unassign_qa(team["pm"], task_id)
        assert result["task"].assigned_qa is None

    @pytest.mark.asyncio
    async def test_target_must_be_qa(self, task_service, make_task, team):
        task_id = await make_task()
        result = await task_service.assign_qa(team["pm"], task_id, team["dev2"].id)
        assert result.kind == FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_unassign_refused_while_pending_qa(self, task_service, lifecycle, make_task, team):
        task_id = await make_task(assigned_qa=team["qa"].id)
        await lifecycle.start_task(team["dev"], task_id)
        await lifecycle.submit_for_qa_review(team["dev"], task_id, "https://proof")

        result = await task_service.unassign_qa(team["pm"], task_id)
        assert result.kind == FailureKind.INVALID_TRANSITION

    @pytest.mark.asyncio
    async def test_unassign_keeps_open_review_time(self, task_service, lifecycle, make_task, team, clock):
        task_id = await make_task(assigned_qa=team["qa"].id)
        await lifecycle.start_qa_timer(team["qa"], task_id)
        clock.advance(minutes=40)

        result = await task_service.unassign_qa(team["pm"], task_id)
        task = result["task"]
        assert task.assigned_qa is None
        assert task.is_qa_timer_running is False
        assert task.qa_time_spent == 2400


class TestComments:

    @pytest.mark.asyncio
    async def test_post_comment(self, task_service, make_task, team, clock):
        task_id = await make_task()
        result = await task_service.post_comment(team["qa"], task_id, "  Needs a test ")
        comments = result["task"].comments
        assert len(comments) == 1
        assert comments[0].text == "Needs a test"
        assert comments[0].user_id == team["qa"].id
        assert comments[0].timestamp == clock()

    @pytest.mark.asyncio
    async def test_empty_comment(self, task_service, make_task, team):
        task_id = await make_task()
        result = await task_service.post_comment(team["dev"], task_id, "   ")
        assert result.kind == FailureKind.VALIDATION


class TestListViews:

    @pytest.mark.asyncio
    async def test_views_filter_by_role_and_status(self, task_service, lifecycle, make_task, team, clock):
        mine = await make_task(title="Mine", assigned_qa=team["qa"].id)
        clock.advance(minutes=1)
        await make_task(title="Other", assigned_to=team["dev2"].id)

        await lifecycle.start_task(team["dev"], mine)
        await lifecycle.submit_for_qa_review(team["dev"], mine, "https://proof")

        all_tasks = (await task_service.list_all_tasks(team["pm"]))["tasks"]
        assert [t.title for t in all_tasks] == ["Other", "Mine"]

        my_tasks = (await task_service.list_my_tasks(team["dev"]))["tasks"]
        assert [t.id for t in my_tasks] == [mine]

        queue = (await task_service.list_qa_queue(team["qa"]))["tasks"]
        assert [t.id for t in queue] == [mine]
        assert (await task_service.list_qa_queue(team["qa2"]))["tasks"] == []

        assert (await task_service.list_pending_review(team["pm"]))["tasks"] == []

    @pytest.mark.asyncio
    async def test_qa_views_require_qa(self, task_service, team):
        result = await task_service.list_qa_queue(team["dev"])
        assert result.kind == FailureKind.UNAUTHORIZED
