"""
Unit tests for the developer and QA stopwatch timers.
"""
import pytest
from datetime import datetime, timedelta

from devsprint.db.models import TaskModel
from devsprint.models.user import Actor, UserRole
from devsprint.services.operations import InvalidTransition, Unauthorized
from devsprint.services.timer import developer_timer, qa_timer

START = datetime(2025, 3, 10, 9, 0, 0)


@pytest.fixture
def task():
    return TaskModel(
        id="t1",
        assigned_to_id="dev-1",
        assigned_qa_id="qa-1",
        is_timer_running=False,
        timer_start_time=None,
        total_seconds_spent=0.0,
        is_qa_timer_running=False,
        qa_timer_start_time=None,
        qa_time_spent=0.0,
    )


class TestDeveloperTimer:

    def test_start_then_stop_accumulates(self, task):
        timer = developer_timer(task)
        timer.start(START)
        assert task.is_timer_running is True
        assert task.timer_start_time == START

        elapsed = timer.stop(START + timedelta(minutes=90))
        assert elapsed == 5400
        assert task.total_seconds_spent == 5400
        assert task.is_timer_running is False
        assert task.timer_start_time is None

    def test_intervals_add_up(self, task):
        timer = developer_timer(task)
        timer.start(START)
        timer.stop(START + timedelta(hours=1))
        timer.start(START + timedelta(hours=2))
        timer.stop(START + timedelta(hours=2, minutes=30))
        assert task.total_seconds_spent == 5400

    def test_double_start_is_rejected(self, task):
        timer = developer_timer(task)
        timer.start(START)
        with pytest.raises(InvalidTransition):
            timer.start(START + timedelta(minutes=1))

    def test_stop_when_idle_is_rejected(self, task):
        with pytest.raises(InvalidTransition):
            developer_timer(task).stop(START)

    def test_stop_if_running_is_quiet_when_idle(self, task):
        assert developer_timer(task).stop_if_running(START) == 0.0

    def test_elapsed_includes_open_interval(self, task):
        task.total_seconds_spent = 600.0
        timer = developer_timer(task)
        timer.start(START)
        assert timer.elapsed(START + timedelta(minutes=5)) == 900.0
        # accumulator is untouched until stop
        assert task.total_seconds_spent == 600.0

    def test_clock_skew_never_goes_negative(self, task):
        timer = developer_timer(task)
        timer.start(START)
        assert timer.stop(START - timedelta(minutes=5)) == 0.0

    def test_owner_checks(self, task):
        timer = developer_timer(task)
        timer.check_owner(Actor(id="dev-1", role=UserRole.DEVELOPER))
        with pytest.raises(Unauthorized):
            timer.check_owner(Actor(id="dev-2", role=UserRole.DEVELOPER))
        with pytest.raises(Unauthorized):
            timer.check_owner(Actor(id="dev-1", role=UserRole.PM))


class TestQATimer:

    def test_uses_its_own_columns(self, task):
        timer = qa_timer(task)
        timer.start(START)
        timer.stop(START + timedelta(minutes=20))
        assert task.qa_time_spent == 1200
        assert task.total_seconds_spent == 0.0

    def test_only_assigned_reviewer(self, task):
        timer = qa_timer(task)
        timer.check_owner(Actor(id="qa-1", role=UserRole.QA))
        with pytest.raises(Unauthorized):
            timer.check_owner(Actor(id="qa-2", role=UserRole.QA))
        with pytest.raises(Unauthorized):
            timer.check_owner(Actor(id="dev-1", role=UserRole.DEVELOPER))
