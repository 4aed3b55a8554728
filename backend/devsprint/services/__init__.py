# Services
from devsprint.services.lifecycle import TaskLifecycleService
from devsprint.services.project_service import ProjectService
from devsprint.services.sprint_service import SprintService
from devsprint.services.stats_service import StatsService
from devsprint.services.task_service import TaskService
from devsprint.services.uploads import UploadService
from devsprint.services.user_service import UserService

__all__ = [
    "TaskLifecycleService", "ProjectService", "SprintService", "StatsService",
    "TaskService", "UploadService", "UserService",
]
