"""
Task Model Module

This module defines the Task model and the Comment model attached to it.
"""
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import SQLModel, Field

from taskboard.core.time_utils import utc_now


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# Sort rank used by task listings: most pressing first
PRIORITY_RANK = {
    TaskPriority.URGENT.value: 0,
    TaskPriority.HIGH.value: 1,
    TaskPriority.MEDIUM.value: 2,
    TaskPriority.LOW.value: 3,
}


class TaskBase(SQLModel):
    """
    Base Task model containing common fields.
    """
    title: str = Field(nullable=False)
    description: Optional[str] = None

    project_id: int = Field(foreign_key="projects.id", index=True, ondelete="CASCADE")

    # Must be a project member when assigned; not re-validated afterwards
    assigned_to: Optional[str] = Field(default=None, foreign_key="users.id", index=True, ondelete="SET NULL")
    created_by: str = Field(foreign_key="users.id")

    status: str = Field(default=TaskStatus.TODO.value, index=True)
    priority: str = Field(default=TaskPriority.MEDIUM.value)

    due_date: Optional[date] = None

    # Non-null exactly while status is "done"
    completed_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Task(TaskBase, table=True):
    """
    Task table model.
    """
    __tablename__ = "tasks"

    id: Optional[int] = Field(default=None, primary_key=True)


class Comment(SQLModel, table=True):
    """
    Append-only discussion entry on a task.

    Removed together with its task through the foreign key cascade.
    """
    __tablename__ = "comments"

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="tasks.id", index=True, ondelete="CASCADE")
    user_id: str = Field(foreign_key="users.id")
    content: str = Field(nullable=False)
    created_at: datetime = Field(default_factory=utc_now)


class CommentRead(SQLModel):
    id: int
    task_id: int
    user_id: str
    content: str
    created_at: datetime
    username: Optional[str] = None
    user_name: Optional[str] = None


class TaskRead(TaskBase):
    """Schema for reading basic task data."""
    id: int
    project_name: Optional[str] = None
    assigned_to_name: Optional[str] = None
    created_by_name: Optional[str] = None
    comment_count: int = 0


class TaskReadWithComments(TaskRead):
    """Schema for reading a task together with its discussion."""
    comments: List[CommentRead] = []
