"""
Activity Log Model Module

Append-only audit trail. Rows are written after each successful mutation and
are only ever read back for display.
"""
from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field

from taskboard.core.time_utils import utc_now


class ActivityLogBase(SQLModel):
    user_id: str = Field(foreign_key="users.id", index=True)

    # e.g. "task_created", "member_added", "role_changed"
    action: str = Field(nullable=False)

    # e.g. "project", "task", "user", "session"
    entity_type: str = Field(nullable=False)
    entity_id: Optional[str] = None

    # Free-form detail (names, JSON of changed fields, ...)
    details: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now)


class ActivityLog(ActivityLogBase, table=True):
    __tablename__ = "activity_log"

    id: Optional[int] = Field(default=None, primary_key=True)


class ActivityLogRead(ActivityLogBase):
    id: int
