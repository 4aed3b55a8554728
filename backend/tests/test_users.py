"""
Tests for team membership, sign-in and member deletion.
"""
import pytest

from devsprint.models.result import FailureKind
from devsprint.models.user import MemberCreate, UserRole
from conftest import PM_PASSWORD


class TestLogin:

    @pytest.mark.asyncio
    async def test_valid_credentials(self, user_service, team):
        result = await user_service.login("PM@example.com ", PM_PASSWORD)
        assert result.success
        assert result["token"].user_id == team["pm"].id
        assert result["token"].role == UserRole.PM
        assert result["user"].email == "pm@example.com"

    @pytest.mark.asyncio
    async def test_wrong_password(self, user_service, team):
        result = await user_service.login("pm@example.com", "wrong")
        assert result.kind == FailureKind.UNAUTHORIZED
        assert result.error == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_member_without_password_cannot_sign_in(self, user_service, team):
        result = await user_service.login("dana@example.com", "anything")
        assert result.kind == FailureKind.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_bootstrap_pm_is_idempotent(self, user_service, db):
        first = await user_service.ensure_pm_account("Boss", "boss@example.com", "secret-pass")
        second = await user_service.ensure_pm_account("Boss", "boss@example.com", "secret-pass")
        assert first == second


class TestMembers:

    @pytest.mark.asyncio
    async def test_add_member(self, user_service, team):
        result = await user_service.add_member(
            team["pm"], MemberCreate(name="Sam", email="Sam@Example.com", role=UserRole.QA)
        )
        assert result["user"].email == "sam@example.com"
        assert result["user"].role == UserRole.QA

        qa = (await user_service.list_qa_members(team["pm"]))["qa_members"]
        assert {u.email for u in qa} == {"quinn@example.com", "quincy@example.com", "sam@example.com"}

    @pytest.mark.asyncio
    async def test_duplicate_email(self, user_service, team):
        result = await user_service.add_member(team["pm"], MemberCreate(name="Dup", email="dana@example.com"))
        assert result.kind == FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_pm_role_is_not_addable(self, user_service, team):
        result = await user_service.add_member(
            team["pm"], MemberCreate(name="Boss", email="boss@example.com", role=UserRole.PM)
        )
        assert result.kind == FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_only_pm_adds(self, user_service, team):
        result = await user_service.add_member(team["dev"], MemberCreate(name="X", email="x@example.com"))
        assert result.kind == FailureKind.UNAUTHORIZED


class TestDeletion:

    @pytest.mark.asyncio
    async def test_delete_developer_cascades(self, user_service, task_service, make_task, team):
        theirs = await make_task()
        other = await make_task(assigned_to=team["dev2"].id)
        await task_service.post_comment(team["dev"], other, "Helping out")

        result = await user_service.delete_developer(team["pm"], team["dev"].id)
        assert result["tasks_deleted"] == 1

        assert (await task_service.get_task(team["pm"], theirs)).kind == FailureKind.NOT_FOUND
        assert (await task_service.get_task(team["pm"], other))["task"].comments == []
        assert not await user_service.is_active(team["dev"])

    @pytest.mark.asyncio
    async def test_pm_cannot_be_deleted(self, user_service, team):
        result = await user_service.delete_member(team["pm"], team["pm"].id)
        assert result.kind == FailureKind.INVALID_TRANSITION
        assert result.error == "Cannot delete a Project Manager"

    @pytest.mark.asyncio
    async def test_delete_qa_unassigns(self, user_service, task_service, make_task, team):
        task_id = await make_task(assigned_qa=team["qa"].id)
        result = await user_service.delete_qa_member(team["pm"], team["qa"].id)
        assert result["tasks_unassigned"] == 1
        assert (await task_service.get_task(team["pm"], task_id))["task"].assigned_qa is None

    @pytest.mark.asyncio
    async def test_delete_qa_keeps_open_review_time(self, user_service, task_service, lifecycle, make_task, team, clock):
        task_id = await make_task(assigned_qa=team["qa"].id)
        await lifecycle.start_qa_timer(team["qa"], task_id)
        clock.advance(minutes=25)

        assert (await user_service.delete_qa_member(team["pm"], team["qa"].id)).success
        task = (await task_service.get_task(team["pm"], task_id))["task"]
        assert task.is_qa_timer_running is False
        assert task.qa_time_spent == 1500

    @pytest.mark.asyncio
    async def test_delete_qa_refused_while_reviewing(self, user_service, lifecycle, make_task, team):
        task_id = await make_task(assigned_qa=team["qa"].id)
        await lifecycle.start_task(team["dev"], task_id)
        await lifecycle.submit_for_qa_review(team["dev"], task_id, "https://proof")

        result = await user_service.delete_qa_member(team["pm"], team["qa"].id)
        assert result.kind == FailureKind.INVALID_TRANSITION

    @pytest.mark.asyncio
    async def test_delete_member_dispatches_by_role(self, user_service, team):
        result = await user_service.delete_member(team["pm"], team["qa2"].id)
        assert result["tasks_unassigned"] == 0
