"""
User Model Module

This module defines the User model and UserRole enumeration for authentication
and authorization throughout the application.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field

from taskboard.core.time_utils import utc_now


class UserRole(str, Enum):
    """
    Global roles, applied system-wide.

    - MEMBER: Default role for every registration after the first
    - MANAGER: Elevated staff role
    - ADMIN: Full access to user management and forced project deletion

    Project-scoped permissions are governed separately by ProjectRole.
    """
    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"


class UserBase(SQLModel):
    username: str = Field(unique=True, index=True, nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)
    full_name: str = Field(nullable=False)

    # Stored as the plain enum value ("admin", "manager", "member")
    role: str = Field(default=UserRole.MEMBER.value)

    # Deactivation is the only removal path; users are never hard-deleted
    is_active: bool = True

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class User(UserBase, table=True):
    """
    User model representing authenticated users in the system.

    Users are identified by UUID and authenticate with their username or
    email plus a password. The first user ever registered becomes an admin.

    Attributes:
        id: Unique identifier (UUID) automatically generated for each user
        username: Unique handle used for login
        email: Unique email address, also accepted for login
        password: Salted bcrypt hash
        full_name: User's display name
        role: Global role (see UserRole)
        is_active: False once an admin deactivates the account
    """
    __tablename__ = "users"

    # Primary key - auto-generated UUID for global uniqueness
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    # Hashed password (bcrypt)
    password: str = Field(nullable=False)


class UserRead(UserBase):
    """Public representation of a user (password excluded)."""
    id: str


class UserSummary(SQLModel):
    """Compact user reference embedded in other payloads."""
    id: str
    username: str
    full_name: str
    email: Optional[str] = None
    role: Optional[str] = None
