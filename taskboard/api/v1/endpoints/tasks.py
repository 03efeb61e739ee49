"""
Task Endpoints Module

This module provides CRUD endpoints for tasks and their comments. Tasks are
reachable by anyone who can see their project.
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from taskboard.api import deps
from taskboard.core.security import Principal
from taskboard.db.session import get_db
from taskboard.models.task import CommentRead, TaskPriority, TaskRead, TaskReadWithComments, TaskStatus
from taskboard.schemas.auth import MessageResponse
from taskboard.schemas.task import CommentCreate, TaskCreate, TaskFilters, TaskUpdate
from taskboard.services import tasks as task_service

router = APIRouter()


@router.get("", response_model=List[TaskRead])
def list_tasks(
    project_id: Optional[int] = None,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    assigned_to: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """
    Retrieve tasks from every project the user can see.

    Results are ordered by priority (urgent first), then due date with undated
    tasks last, then newest first.
    """
    filters = TaskFilters(
        project_id=project_id,
        status=status,
        priority=priority,
        assigned_to=assigned_to,
        search=search.strip() if search else None,
    )
    return task_service.list_tasks(db, principal, filters)


@router.get("/my-tasks", response_model=List[TaskRead])
def list_my_tasks(
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """Open tasks (not done or cancelled) assigned to the current user."""
    return task_service.list_my_tasks(db, principal)


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
def create_task(
    task_in: TaskCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """
    Create a new task.

    Raises:
        HTTPException 404: If the project doesn't exist or isn't visible to the user
        HTTPException 400: If the assignee is not a project member
    """
    return task_service.create_task(db, principal, task_in)


@router.get("/{task_id}", response_model=TaskReadWithComments)
def read_task(
    task_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """Get a task with its comments, newest first."""
    return task_service.get_task(db, principal, task_id)


@router.put("/{task_id}", response_model=TaskRead)
def update_task(
    task_id: int,
    task_in: TaskUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """
    Update an existing task. Only the fields present in the body change.

    Setting status to "done" stamps completed_at; any other status clears it.
    """
    return task_service.update_task(db, principal, task_id, task_in)


@router.delete("/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
):
    """
    Delete a task and its comments.

    Only the creator, the assignee, or a project owner/admin can delete tasks.
    """
    task_service.delete_task(db, principal, task_id)
    return MessageResponse(message="Task deleted successfully")


@router.post("/{task_id}/comments", response_model=CommentRead, status_code=status.HTTP_201_CREATED)
def add_comment(
    task_id: int,
    comment_in: CommentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
) -> Any:
    return task_service.add_comment(db, principal, task_id, comment_in.content)
