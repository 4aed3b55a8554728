"""
Shared test fixtures for DevSprint API tests.
"""
import pytest
from datetime import datetime, timedelta

from httpx import AsyncClient, ASGITransport

from devsprint.db.repositories import UserRepository
from devsprint.infrastructure.auth import hash_password
from devsprint.infrastructure.config import Settings
from devsprint.infrastructure.database import Database
from devsprint.models.task import TaskComplexity, TaskCreate
from devsprint.models.user import Actor, UserRole
from devsprint.services import (
    ProjectService,
    SprintService,
    StatsService,
    TaskLifecycleService,
    TaskService,
    UserService,
)

# Monday, week 10 of 2025
FIXED_NOW = datetime(2025, 3, 10, 9, 0, 0)
PM_PASSWORD = "pm-secret-pass"


class FakeClock:
    """Injected clock the tests move forward by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(FIXED_NOW)


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing at a temporary SQLite database and upload dir."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'devsprint.db'}",
        upload_dir=str(tmp_path / "uploads"),
        public_base_url="http://test",
        secret_key="test-secret-key",
        storage_backend="local",
        cors_origins="http://test",
    )


@pytest.fixture
async def db(test_settings):
    database = Database(test_settings.database_url)
    await database.create_tables()
    yield database
    await database.dispose()


@pytest.fixture
async def team(db, clock):
    """One PM, two developers and two QA members."""
    members = {
        "pm": ("pm-1", "Pat Manager", "pm@example.com", UserRole.PM),
        "dev": ("dev-1", "Dana Dev", "dana@example.com", UserRole.DEVELOPER),
        "dev2": ("dev-2", "Devon Dev", "devon@example.com", UserRole.DEVELOPER),
        "qa": ("qa-1", "Quinn QA", "quinn@example.com", UserRole.QA),
        "qa2": ("qa-2", "Quincy QA", "quincy@example.com", UserRole.QA),
    }
    async with db.session() as session:
        users = UserRepository(session)
        for key, (user_id, name, email, role) in members.items():
            await users.create(
                id=user_id,
                name=name,
                email=email,
                role=role.value,
                password_hash=hash_password(PM_PASSWORD) if role == UserRole.PM else None,
                created_at=clock(),
            )
    return {key: Actor(id=user_id, role=role) for key, (user_id, _, _, role) in members.items()}


@pytest.fixture
def lifecycle(db, clock):
    return TaskLifecycleService(db, clock)


@pytest.fixture
def task_service(db, test_settings, clock):
    return TaskService(db, test_settings, clock)


@pytest.fixture
def user_service(db, test_settings, clock):
    return UserService(db, test_settings, clock)


@pytest.fixture
def project_service(db, clock):
    return ProjectService(db, clock=clock)


@pytest.fixture
def sprint_service(db, clock):
    return SprintService(db, clock)


@pytest.fixture
def stats_service(db, clock):
    return StatsService(db, clock)


@pytest.fixture
def make_task(task_service, team):
    """Create a task as the PM and return its id."""
    async def _make(**overrides) -> str:
        fields = {
            "title": "Build login form",
            "assigned_to": team["dev"].id,
            "complexity": TaskComplexity.MEDIUM,
            "estimated_hours": 2.0,
        }
        fields.update(overrides)
        result = await task_service.create_task(team["pm"], TaskCreate(**fields))
        assert result.success, result.error
        return result["task_id"]

    return _make


@pytest.fixture
async def app(test_settings, clock, team):
    """Application with its lifespan running against the test database."""
    from devsprint.main import create_app

    application = create_app(test_settings, clock)
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def client(app):
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers(test_settings, team):
    """Bearer headers for any seeded member, keyed like ``team``."""
    from devsprint.infrastructure.auth import create_access_token

    def _headers(key: str) -> dict:
        actor = team[key]
        token = create_access_token(actor.id, actor.role, test_settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers
