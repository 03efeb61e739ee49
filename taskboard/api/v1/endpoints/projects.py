"""
Project Endpoints Module

This module provides CRUD endpoints for projects and their memberships. A
project is visible only to its owner and its members; to anyone else it does
not exist (404).
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from taskboard.api import deps
from taskboard.core.security import Principal
from taskboard.db.session import get_db
from taskboard.models.project import MemberRead, ProjectDetail, ProjectRead, ProjectSummary
from taskboard.schemas.auth import MessageResponse
from taskboard.schemas.project import MemberAdd, ProjectCreate, ProjectUpdate
from taskboard.services import projects as project_service

router = APIRouter()


@router.get("", response_model=List[ProjectSummary])
def list_projects(
    status: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """
    Retrieve the projects the current user owns or is a member of.

    Args:
        status: Optional status filter ("all" to disable)
        search: Optional substring matched against name and description
    """
    return project_service.list_projects(db, principal, status=status, search=search)


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    project_in: ProjectCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """
    Create a new project owned by the current user.
    """
    return project_service.create_project(db, principal, project_in)


@router.get("/{project_id}", response_model=ProjectDetail)
def read_project(
    project_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """
    Get a project with its members and task counters.

    Raises:
        HTTPException 404: If the project doesn't exist or isn't visible to the user
    """
    return project_service.get_project(db, principal, project_id)


@router.put("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: int,
    project_in: ProjectUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """
    Update name, description, status or colour of a project.

    Raises:
        HTTPException 404: If the project doesn't exist or isn't visible to the user
        HTTPException 403: If the user is not the owner or a project admin
        HTTPException 400: If no field is provided
    """
    return project_service.update_project(db, principal, project_id, project_in)


@router.delete("/{project_id}", response_model=MessageResponse)
def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """
    Delete a project with all of its tasks, comments and memberships.

    Only the owner, or a global admin, may delete a project.
    """
    project_service.delete_project(db, principal, project_id)
    return MessageResponse(message="Project deleted successfully")


@router.post("/{project_id}/members", response_model=MemberRead, status_code=status.HTTP_201_CREATED)
def add_member(
    project_id: int,
    member_in: MemberAdd,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
) -> Any:
    """
    Add a user to a project as admin, member or viewer.

    Raises:
        HTTPException 404: If the project or the user doesn't exist
        HTTPException 403: If the user may not manage members
        HTTPException 409: If the user is already a member
    """
    return project_service.add_member(db, principal, project_id, member_in)


@router.delete("/{project_id}/members/{user_id}", response_model=MessageResponse)
def remove_member(
    project_id: int,
    user_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
) -> Any:
    """
    Remove a member from a project. Members may always remove themselves.
    """
    project_service.remove_member(db, principal, project_id, user_id)
    return MessageResponse(message="Member removed successfully")
