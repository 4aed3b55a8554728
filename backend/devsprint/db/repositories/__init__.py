"""Session-bound repositories for DevSprint records."""

from devsprint.db.repositories.base import BaseRepository
from devsprint.db.repositories.projects import ProjectRepository
from devsprint.db.repositories.sprints import SprintRepository
from devsprint.db.repositories.tasks import TaskRepository
from devsprint.db.repositories.users import UserRepository

__all__ = [
    "BaseRepository",
    "ProjectRepository",
    "SprintRepository",
    "TaskRepository",
    "UserRepository",
]
