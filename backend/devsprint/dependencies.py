"""
FastAPI dependencies resolving the services built during startup.
"""

from fastapi import Request

from devsprint.services import (
    ProjectService,
    SprintService,
    StatsService,
    TaskLifecycleService,
    TaskService,
    UploadService,
    UserService,
)


def get_lifecycle_service(request: Request) -> TaskLifecycleService:
    return request.app.state.lifecycle_service


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_project_service(request: Request) -> ProjectService:
    return request.app.state.project_service


def get_sprint_service(request: Request) -> SprintService:
    return request.app.state.sprint_service


def get_stats_service(request: Request) -> StatsService:
    return request.app.state.stats_service


def get_upload_service(request: Request) -> UploadService:
    return request.app.state.upload_service
