# Data models
from devsprint.models.project import Project, ProjectCreate, ProjectUpdate, ProjectStatus, Attachment
from devsprint.models.result import FailureKind, OperationResult
from devsprint.models.sprint import Sprint, SprintCreate, SprintUpdate, SprintStatus
from devsprint.models.task import Task, TaskCreate, TaskUpdate, TaskStatus, TaskComplexity, TaskPriority
from devsprint.models.user import Actor, User, UserRole

__all__ = [
    "Project", "ProjectCreate", "ProjectUpdate", "ProjectStatus", "Attachment",
    "FailureKind", "OperationResult",
    "Sprint", "SprintCreate", "SprintUpdate", "SprintStatus",
    "Task", "TaskCreate", "TaskUpdate", "TaskStatus", "TaskComplexity", "TaskPriority",
    "Actor", "User", "UserRole",
]
