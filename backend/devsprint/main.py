"""
DevSprint API - FastAPI Backend

Task and sprint tracking for a small development team: Project Managers
plan and review work, Developers execute it, QA members verify it.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import structlog

from devsprint import __version__
from devsprint.infrastructure.clock import Clock, utcnow
from devsprint.infrastructure.config import Settings, get_settings
from devsprint.infrastructure.database import Database
from devsprint.infrastructure.exceptions import register_exception_handlers
from devsprint.infrastructure.storage import BlobStorage, build_storage
from devsprint.routers import auth, projects, qa, sprints, stats, tasks, uploads, users
from devsprint.services import (
    ProjectService,
    SprintService,
    StatsService,
    TaskLifecycleService,
    TaskService,
    UploadService,
    UserService,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def attach_services(app: FastAPI, db: Database, storage: BlobStorage) -> None:
    """Build every service on one database and blob store."""
    settings: Settings = app.state.settings
    clock: Clock = app.state.clock

    app.state.db = db
    app.state.storage = storage
    app.state.user_service = UserService(db, settings, clock)
    app.state.task_service = TaskService(db, settings, clock)
    app.state.lifecycle_service = TaskLifecycleService(db, clock, retries=settings.transition_retries)
    app.state.project_service = ProjectService(db, storage, clock)
    app.state.sprint_service = SprintService(db, clock)
    app.state.stats_service = StatsService(db, clock)
    app.state.upload_service = UploadService(storage, settings, clock)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info("devsprint_starting", storage=settings.storage_backend)

    db = Database(settings.database_url)
    storage = build_storage(settings)
    attach_services(app, db, storage)

    if settings.create_tables_on_startup:
        await db.create_tables()
    if settings.initial_pm_email and settings.initial_pm_password:
        await app.state.user_service.ensure_pm_account(
            settings.initial_pm_name,
            settings.initial_pm_email,
            settings.initial_pm_password,
        )

    yield

    await storage.close()
    await db.dispose()
    logger.info("devsprint_stopped")


def create_app(settings: Optional[Settings] = None, clock: Clock = utcnow) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="DevSprint API",
        description="Task lifecycle, QA review, sprints and team statistics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.clock = clock

    # Register global exception handlers
    register_exception_handlers(app)

    # CORS configuration for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(tasks.router, prefix="/api/tasks", tags=["Tasks"])
    app.include_router(qa.router, prefix="/api/qa", tags=["QA"])
    app.include_router(projects.router, prefix="/api/projects", tags=["Projects"])
    app.include_router(sprints.router, prefix="/api/sprints", tags=["Sprints"])
    app.include_router(stats.router, prefix="/api/stats", tags=["Stats"])
    app.include_router(uploads.router, prefix="/api/upload", tags=["Uploads"])

    # Locally stored proofs are served back from the API process
    if settings.storage_backend == "local":
        app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": "DevSprint API",
            "version": __version__,
        }

    @app.get("/health/live")
    async def health_live():
        """Liveness probe, process is running."""
        return {"alive": True}

    @app.get("/health/ready")
    async def health_ready():
        """
        Readiness probe, checks the database.
        Returns 503 when it cannot be reached.
        """
        checks = {}
        try:
            async with app.state.db.session() as session:
                await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except SQLAlchemyError as e:
            logger.warning("readiness_check_failed", component="database", error=str(e))
            checks["database"] = "unavailable"
        checks["storage"] = settings.storage_backend

        is_ready = checks["database"] == "ok"
        return JSONResponse(
            status_code=200 if is_ready else 503,
            content={
                "ready": is_ready,
                "checks": checks,
                "timestamp": clock().isoformat(),
            },
        )

    return app


app = create_app()
