from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from taskboard.models.activity import ActivityLogRead
from taskboard.models.user import UserRead, UserRole


# Properties to receive via API on profile update
class UserUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None


class RoleUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    role: UserRole


class PasswordReset(BaseModel):
    new_password: str = Field(min_length=6)


class UserStats(BaseModel):
    owned_projects: int = 0
    assigned_tasks: int = 0
    completed_tasks: int = 0
    created_tasks: int = 0
    member_projects: int = 0
    total_comments: int = 0


class UserListItem(UserRead):
    owned_projects: int = 0
    assigned_tasks: int = 0
    member_projects: int = 0


class UserProfile(BaseModel):
    user: UserRead
    stats: UserStats
    recent_activity: List[ActivityLogRead] = []
