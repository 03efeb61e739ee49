"""
Project Model Module

This module defines the Project model and the ProjectMember junction table that
grants users a project-scoped role.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import SQLModel, Field

from taskboard.core.time_utils import utc_now
from taskboard.models.user import UserSummary


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    COMPLETED = "completed"


class ProjectRole(str, Enum):
    """
    Roles held within a single project.

    OWNER is reserved for the row created alongside the project; members added
    later can only be ADMIN, MEMBER or VIEWER.
    """
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class ProjectBase(SQLModel):
    name: str = Field(nullable=False)
    description: Optional[str] = None

    # Valid values: "active", "archived", "completed"
    status: str = Field(default=ProjectStatus.ACTIVE.value)

    # Hex display colour used by the client
    color: str = Field(default="#3B82F6")

    # Set once at creation, never changed afterwards
    owner_id: str = Field(foreign_key="users.id", index=True)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Project(ProjectBase, table=True):
    """
    Project model.

    Visibility is membership based: a project is visible to its owner and to
    every user holding a ProjectMember row for it, and to nobody else.
    Deleting a project removes its tasks and memberships through the store's
    foreign key cascades.
    """
    __tablename__ = "projects"

    id: Optional[int] = Field(default=None, primary_key=True)


class ProjectMember(SQLModel, table=True):
    """
    Junction table between Projects and Users with a project-scoped role.

    The composite primary key guarantees at most one membership per
    (project, user) pair.
    """
    __tablename__ = "project_members"

    project_id: int = Field(foreign_key="projects.id", primary_key=True, ondelete="CASCADE")
    user_id: str = Field(foreign_key="users.id", primary_key=True, index=True, ondelete="CASCADE")
    role: str = Field(default=ProjectRole.MEMBER.value)
    joined_at: datetime = Field(default_factory=utc_now)


class ProjectRead(ProjectBase):
    id: int


class ProjectSummary(ProjectRead):
    """Listing row: the project plus the caller's role and counters."""
    user_role: Optional[str] = None
    task_count: int = 0
    completed_tasks: int = 0
    member_count: int = 0


class MemberRead(UserSummary):
    """A project member, i.e. a user plus their project role."""
    project_role: str
    joined_at: Optional[datetime] = None


class ProjectDetail(ProjectSummary):
    owner: Optional[UserSummary] = None
    members: List[MemberRead] = []
