"""
Tests for project management and the sprint lifecycle.
"""
import pytest
from datetime import datetime

from sqlalchemy import update

from devsprint.db.models import TaskModel
from devsprint.infrastructure.exceptions import StorageError
from devsprint.infrastructure.storage import BlobStorage
from devsprint.models.project import Attachment, AttachmentType, ProjectCreate, ProjectUpdate
from devsprint.models.result import FailureKind
from devsprint.models.sprint import SprintCreate, SprintStatus
from devsprint.models.task import TaskComplexity, TaskStatus, TaskUpdate
from devsprint.services import ProjectService


class BrokenStorage(BlobStorage):
    """Blob store whose deletes always fail."""

    def __init__(self):
        self.deleted = []

    async def upload(self, data, folder, *, fmt, resource_type):
        raise StorageError()

    async def delete(self, public_id, resource_type="image"):
        self.deleted.append((public_id, resource_type))
        raise StorageError("Failed to delete file")


def _project(**overrides) -> ProjectCreate:
    fields = {"name": "Website", "key": "web", "start_date": datetime(2025, 3, 1)}
    fields.update(overrides)
    return ProjectCreate(**fields)


@pytest.fixture
async def project_id(project_service, team):
    result = await project_service.create_project(team["pm"], _project(developers=[team["dev"].id]))
    assert result.success, result.error
    return result["project"].id


def _sprint(project_id, **overrides) -> SprintCreate:
    fields = {
        "project_id": project_id,
        "start_date": datetime(2025, 3, 10),
        "end_date": datetime(2025, 3, 14),
    }
    fields.update(overrides)
    return SprintCreate(**fields)


class TestProjects:

    @pytest.mark.asyncio
    async def test_create_uppercases_key(self, project_service, team):
        result = await project_service.create_project(team["pm"], _project(key="ops"))
        assert result["project"].key == "OPS"
        assert result["project"].task_stats.total == 0

    @pytest.mark.asyncio
    async def test_key_is_unique(self, project_service, project_id, team):
        result = await project_service.create_project(team["pm"], _project(key="WEB"))
        assert result.kind == FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_developers_must_exist(self, project_service, team):
        result = await project_service.create_project(team["pm"], _project(key="X", developers=["ghost"]))
        assert result.kind == FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_stats_and_progress(self, project_service, lifecycle, make_task, project_id, team):
        done = await make_task(project_id=project_id)
        await make_task(project_id=project_id)
        await lifecycle.change_task_status(team["pm"], done, TaskStatus.COMPLETED)

        stats = (await project_service.get_project(team["pm"], project_id))["project"].task_stats
        assert stats.total == 2
        assert stats.completed == 1
        assert stats.todo == 1
        assert stats.total_estimated_hours == 4.0
        assert stats.progress == 50

    @pytest.mark.asyncio
    async def test_update(self, project_service, project_id, team):
        result = await project_service.update_project(
            team["pm"], project_id, ProjectUpdate(name="Web v2", tags=[" a ", "", "b"])
        )
        assert result["project"].name == "Web v2"
        assert result["project"].tags == ["a", "b"]

    @pytest.mark.asyncio
    async def test_team_membership(self, project_service, project_id, team):
        result = await project_service.add_developer(team["pm"], project_id, team["dev2"].id)
        assert set(result["project"].developers) == {team["dev"].id, team["dev2"].id}

        result = await project_service.add_developer(team["pm"], project_id, team["dev2"].id)
        assert result.kind == FailureKind.VALIDATION

        result = await project_service.remove_developer(team["pm"], project_id, team["dev"].id)
        assert result["project"].developers == [team["dev2"].id]

    @pytest.mark.asyncio
    async def test_delete_unlinks_tasks(self, project_service, task_service, make_task, project_id, team):
        task_id = await make_task(project_id=project_id)
        assert (await project_service.delete_project(team["pm"], project_id)).success

        task = (await task_service.get_task(team["pm"], task_id))["task"]
        assert task.project_id is None

    @pytest.mark.asyncio
    async def test_delete_with_tasks(self, project_service, task_service, make_task, project_id, team):
        task_id = await make_task(project_id=project_id)
        await project_service.delete_project(team["pm"], project_id, delete_tasks=True)
        result = await task_service.get_task(team["pm"], task_id)
        assert result.kind == FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_attachment_blob_delete_is_best_effort(self, db, clock, team):
        storage = BrokenStorage()
        service = ProjectService(db, storage, clock)
        project_id = (await service.create_project(team["pm"], _project()))["project"].id
        attachment = Attachment(name="design.pdf", url="http://x/design.pdf", public_id="docs/design", type=AttachmentType.PDF)

        result = await service.add_attachment(team["pm"], project_id, attachment)
        assert result["project"].attachments[0].uploaded_at == clock()

        result = await service.remove_attachment(team["pm"], project_id, "docs/design")
        assert result.success
        assert result["project"].attachments == []
        assert storage.deleted == [("docs/design", "raw")]

    @pytest.mark.asyncio
    async def test_tasks_by_project_with_status(self, task_service, lifecycle, make_task, project_id, team):
        started = await make_task(project_id=project_id)
        await make_task(project_id=project_id)
        await lifecycle.start_task(team["dev"], started)

        result = await task_service.list_tasks_by_project(team["dev"], project_id, TaskStatus.IN_PROGRESS)
        assert [t.id for t in result["tasks"]] == [started]


class TestSprintLifecycle:

    @pytest.mark.asyncio
    async def test_order_and_default_name(self, sprint_service, project_id, team):
        first = (await sprint_service.create_sprint(team["pm"], _sprint(project_id)))["sprint"]
        second = (await sprint_service.create_sprint(team["pm"], _sprint(project_id, name="Polish")))["sprint"]
        assert (first.order, first.name) == (1, "Sprint 1")
        assert (second.order, second.name) == (2, "Polish")
        assert first.status == SprintStatus.PLANNING
        assert first.duration_days == 4

    @pytest.mark.asyncio
    async def test_dates_must_be_ordered(self, sprint_service, project_id, team):
        result = await sprint_service.create_sprint(
            team["pm"], _sprint(project_id, end_date=datetime(2025, 3, 9))
        )
        assert result.kind == FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_one_active_sprint_per_project(self, sprint_service, project_id, team):
        first = (await sprint_service.create_sprint(team["pm"], _sprint(project_id)))["sprint"]
        second = (await sprint_service.create_sprint(team["pm"], _sprint(project_id)))["sprint"]

        assert (await sprint_service.start_sprint(team["pm"], first.id))["sprint"].status == SprintStatus.ACTIVE
        result = await sprint_service.start_sprint(team["pm"], second.id)
        assert result.kind == FailureKind.INVALID_TRANSITION

        active = (await sprint_service.active_sprint(team["pm"], project_id))["sprint"]
        assert active.id == first.id

    @pytest.mark.asyncio
    async def test_complete_records_velocity(self, sprint_service, task_service, lifecycle, make_task, project_id, team):
        sprint = (await sprint_service.create_sprint(team["pm"], _sprint(project_id)))["sprint"]
        done = await make_task(project_id=project_id, complexity=TaskComplexity.HARD)
        open_task = await make_task(project_id=project_id)
        await sprint_service.add_task(team["pm"], sprint.id, done)
        await sprint_service.add_task(team["pm"], sprint.id, open_task)

        result = await sprint_service.complete_sprint(team["pm"], sprint.id)
        assert result.kind == FailureKind.INVALID_TRANSITION

        await sprint_service.start_sprint(team["pm"], sprint.id)
        await lifecycle.change_task_status(team["pm"], done, TaskStatus.COMPLETED)
        result = await sprint_service.complete_sprint(team["pm"], sprint.id)
        assert result["velocity"] == 5
        assert result["sprint"].status == SprintStatus.COMPLETED

        assert (await task_service.get_task(team["pm"], open_task))["task"].sprint_id is None
        assert (await task_service.get_task(team["pm"], done))["task"].sprint_id == sprint.id

        history = (await sprint_service.velocity_history(team["pm"], project_id))["velocity_history"]
        assert [(v.id, v.velocity) for v in history] == [(sprint.id, 5)]

    @pytest.mark.asyncio
    async def test_cancel_returns_tasks_to_backlog(self, sprint_service, make_task, project_id, team):
        sprint = (await sprint_service.create_sprint(team["pm"], _sprint(project_id)))["sprint"]
        task_id = await make_task(project_id=project_id)
        await sprint_service.add_task(team["pm"], sprint.id, task_id)

        result = await sprint_service.cancel_sprint(team["pm"], sprint.id)
        assert result["sprint"].status == SprintStatus.CANCELLED

        board = await sprint_service.get_board(team["pm"], sprint.id)
        assert board["tasks"] == []
        assert [t.id for t in board["backlog"]] == [task_id]

    @pytest.mark.asyncio
    async def test_only_the_creator_manages_a_sprint(self, sprint_service, project_id, team):
        sprint = (await sprint_service.create_sprint(team["pm"], _sprint(project_id)))["sprint"]
        other_pm = team["pm"].model_copy(update={"id": "pm-2"})
        result = await sprint_service.start_sprint(other_pm, sprint.id)
        assert result.kind == FailureKind.UNAUTHORIZED


class TestBoard:

    @pytest.mark.asyncio
    async def test_add_reorder_remove(self, sprint_service, make_task, project_id, team):
        sprint = (await sprint_service.create_sprint(team["pm"], _sprint(project_id)))["sprint"]
        a = await make_task(title="A", project_id=project_id)
        b = await make_task(title="B", project_id=project_id)
        await sprint_service.add_task(team["pm"], sprint.id, a)
        await sprint_service.add_task(team["pm"], sprint.id, b)

        board = await sprint_service.get_board(team["pm"], sprint.id)
        assert [t.title for t in board["tasks"]] == ["A", "B"]
        assert board["task_stats"].total_points == 6

        await sprint_service.reorder_tasks(team["pm"], sprint.id, [b, a])
        board = await sprint_service.get_board(team["pm"], sprint.id)
        assert [t.title for t in board["tasks"]] == ["B", "A"]

        result = await sprint_service.reorder_tasks(team["pm"], sprint.id, ["nope"])
        assert result.kind == FailureKind.VALIDATION

        await sprint_service.remove_task(team["pm"], a)
        board = await sprint_service.get_board(team["pm"], sprint.id)
        assert [t.title for t in board["tasks"]] == ["B"]
        assert [t.title for t in board["backlog"]] == ["A"]

    @pytest.mark.asyncio
    async def test_burndown(self, sprint_service, lifecycle, make_task, project_id, team, clock):
        sprint = (await sprint_service.create_sprint(team["pm"], _sprint(project_id)))["sprint"]
        task_id = await make_task(project_id=project_id, complexity=TaskComplexity.HARD)
        other = await make_task(project_id=project_id, complexity=TaskComplexity.EASY)
        await sprint_service.add_task(team["pm"], sprint.id, task_id)
        await sprint_service.add_task(team["pm"], sprint.id, other)
        await lifecycle.change_task_status(team["pm"], task_id, TaskStatus.COMPLETED)

        clock.advance(days=1)
        result = await sprint_service.burndown(team["pm"], sprint.id)
        points = result["burndown"]
        assert result["total_points"] == 6
        assert len(points) == 5
        assert points[0].ideal == 6.0
        assert points[-1].ideal == 0.0
        assert points[1].actual == 1
        assert points[2].actual is None

    @pytest.mark.asyncio
    async def test_burndown_counts_tasks_by_completion_time(
        self, sprint_service, task_service, lifecycle, make_task, project_id, team, clock, db
    ):
        sprint = (await sprint_service.create_sprint(team["pm"], _sprint(project_id)))["sprint"]
        task_id = await make_task(project_id=project_id, complexity=TaskComplexity.HARD)
        legacy = await make_task(project_id=project_id, complexity=TaskComplexity.EASY)
        for tid in (task_id, legacy):
            await sprint_service.add_task(team["pm"], sprint.id, tid)
            await lifecycle.change_task_status(team["pm"], tid, TaskStatus.COMPLETED)

        # Rows completed before completion times were recorded carry no completed_at
        async with db.session() as session:
            await session.execute(
                update(TaskModel)
                .where(TaskModel.id == legacy)
                .values(completed_at=None, updated_at=datetime(2025, 3, 10, 10, 0))
            )

        clock.advance(days=2)
        await task_service.update_task(team["pm"], task_id, TaskUpdate(title="Renamed after completion"))

        points = (await sprint_service.burndown(team["pm"], sprint.id))["burndown"]
        assert points[0].actual == 6
        assert points[1].actual == 1
        assert points[2].actual == 1
