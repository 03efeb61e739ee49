from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from taskboard.models.project import ProjectStatus

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class ProjectCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    color: str = Field(default="#3B82F6", pattern=HEX_COLOR)


class ProjectUpdate(BaseModel):
    """Partial update: only the fields present in the request are applied."""
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    status: Optional[ProjectStatus] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)


class MemberAdd(BaseModel):
    user_id: str
    # "owner" is reserved for the project creator
    role: Literal["admin", "member", "viewer"] = "member"
