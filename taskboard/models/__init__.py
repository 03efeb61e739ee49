from .user import User, UserRole
from .project import Project, ProjectMember, ProjectRole, ProjectStatus
from .task import Task, Comment, TaskStatus, TaskPriority
from .activity import ActivityLog

__all__ = [
    "User", "UserRole",
    "Project", "ProjectMember", "ProjectRole", "ProjectStatus",
    "Task", "Comment", "TaskStatus", "TaskPriority",
    "ActivityLog",
]
