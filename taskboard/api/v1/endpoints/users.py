"""
User Management Endpoints Module

Profile endpoints available to every authenticated user for their own account,
and administrative endpoints (listing, role changes, activation, password
resets) restricted to global admins.
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from taskboard.api import deps
from taskboard.core.security import Principal
from taskboard.db.session import get_db
from taskboard.models.user import UserRead
from taskboard.schemas.auth import MessageResponse
from taskboard.schemas.user import PasswordReset, RoleUpdate, UserListItem, UserProfile, UserUpdate
from taskboard.services import users as user_service

router = APIRouter()


@router.get("", response_model=List[UserListItem])
def read_users(
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_admin),
) -> Any:
    """
    Retrieve every user with ownership and assignment counters.

    Only administrators can access this endpoint.
    """
    return user_service.list_users(db)


@router.get("/available", response_model=List[UserRead])
def read_available_users(
    project_id: Optional[int] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
) -> Any:
    """
    Active users that can be added to a project.

    Args:
        project_id: When given, the project's owner and members are excluded
    """
    return user_service.list_available_users(db, principal, project_id)


@router.get("/{user_id}", response_model=UserProfile)
def read_user_by_id(
    user_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
) -> Any:
    """
    Get a user's profile, statistics and recent activity.

    Users can retrieve their own profile. Only administrators can retrieve
    other users' profiles; everyone else receives 404.
    """
    return user_service.get_profile(db, principal, user_id)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: str,
    user_in: UserUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
) -> Any:
    """
    Update full name and/or email. Only provided fields are changed.

    Raises:
        HTTPException 400: If no field is provided
        HTTPException 409: If the email is already in use
    """
    return user_service.update_profile(db, principal, user_id, user_in)


@router.put("/{user_id}/role", response_model=UserRead)
def update_user_role(
    user_id: str,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_admin),
) -> Any:
    """
    Change a user's global role (admin only).

    Raises:
        HTTPException 400: If this would demote the last active admin
    """
    return user_service.change_role(db, principal, user_id, payload.role)


@router.put("/{user_id}/toggle-active", response_model=MessageResponse)
def toggle_user_active(
    user_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_admin),
) -> Any:
    """
    Activate or deactivate a user (admin only).

    Raises:
        HTTPException 400: If admins target themselves or the last active admin
    """
    user = user_service.toggle_active(db, principal, user_id)
    state = "activated" if user.is_active else "deactivated"
    return MessageResponse(message=f"User {state} successfully", is_active=user.is_active)


@router.post("/{user_id}/reset-password", response_model=MessageResponse)
def reset_user_password(
    user_id: str,
    payload: PasswordReset,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_admin),
) -> Any:
    user_service.reset_password(db, principal, user_id, payload.new_password)
    return MessageResponse(message="Password reset successfully")
