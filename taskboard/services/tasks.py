"""
Task Service

Task CRUD, comments and filtered listings. All permission decisions are
delegated to ``taskboard.core.permissions``.
"""
import json
import logging
from typing import List, Optional, Tuple

from sqlalchemy import case, func, or_
from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from taskboard.core import permissions
from taskboard.core.errors import Forbidden, NoFieldsToUpdate, NotFound, ValidationFailed
from taskboard.core.security import Principal
from taskboard.core.time_utils import utc_now
from taskboard.models.project import Project, ProjectMember
from taskboard.models.task import (
    PRIORITY_RANK,
    Comment,
    CommentRead,
    Task,
    TaskRead,
    TaskReadWithComments,
    TaskStatus,
)
from taskboard.models.user import User
from taskboard.schemas.task import TaskCreate, TaskFilters, TaskUpdate
from taskboard.services.activity import record_activity
from taskboard.services.projects import get_membership, load_project_access

logger = logging.getLogger(__name__)

# Columns that may not be set to null through an update
REQUIRED_FIELDS = {"title", "status", "priority"}

# Statuses that no longer show up in "my tasks"
CLOSED_STATUSES = (TaskStatus.DONE.value, TaskStatus.CANCELLED.value)


def load_task_access(
    db: Session, principal: Principal, task_id: int
) -> Tuple[Task, Project, Optional[ProjectMember]]:
    """
    Load a task, its project and the caller's membership in that project.

    Raises:
        NotFound: If the task does not exist or its project is hidden from the caller
    """
    task = db.get(Task, task_id)
    if not task:
        raise NotFound("Task not found")

    try:
        project, membership = load_project_access(db, principal, task.project_id)
    except NotFound:
        raise NotFound("Task not found")
    return task, project, membership


def _check_assignee(db: Session, project: Project, assignee_id: str) -> None:
    """
    Raises:
        ValidationFailed: If the assignee is neither owner nor member of the project
    """
    assignee_membership = get_membership(db, project.id, assignee_id)
    if not permissions.is_assignable(project, assignee_membership, assignee_id):
        raise ValidationFailed("Assigned user is not a project member", fields=["assigned_to"])


def _ordering():
    """Priority rank, then due date (nulls last), then newest first."""
    priority_rank = case(PRIORITY_RANK, value=Task.priority, else_=len(PRIORITY_RANK))
    return (
        priority_rank,
        Task.due_date.is_(None),
        Task.due_date.asc(),
        Task.created_at.desc(),
        Task.id.desc(),
    )


def _read_statement():
    assignee = aliased(User)
    creator = aliased(User)
    comment_count = (
        select(func.count(Comment.id)).where(Comment.task_id == Task.id)
        .correlate(Task).scalar_subquery()
    )
    return (
        select(Task, Project.name, assignee.full_name, creator.full_name, comment_count)
        .join(Project, Project.id == Task.project_id)
        .outerjoin(assignee, assignee.id == Task.assigned_to)
        .outerjoin(creator, creator.id == Task.created_by)
    )


def _to_read(row, model=TaskRead):
    task, project_name, assigned_to_name, created_by_name, comment_count = row
    return model.model_validate(
        task,
        update={
            "project_name": project_name,
            "assigned_to_name": assigned_to_name,
            "created_by_name": created_by_name,
            "comment_count": comment_count or 0,
        },
    )


def list_tasks(db: Session, principal: Principal, filters: Optional[TaskFilters] = None) -> List[TaskRead]:
    """
    Tasks from every project visible to the caller, filtered and sorted.
    """
    filters = filters or TaskFilters()
    statement = _read_statement().where(
        Task.project_id.in_(permissions.visible_project_ids(principal))
    )

    if filters.project_id is not None:
        statement = statement.where(Task.project_id == filters.project_id)
    if filters.status:
        statement = statement.where(Task.status == filters.status)
    if filters.priority:
        statement = statement.where(Task.priority == filters.priority)
    if filters.assigned_to:
        statement = statement.where(Task.assigned_to == filters.assigned_to)
    if filters.search:
        pattern = f"%{filters.search}%"
        statement = statement.where(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    statement = statement.order_by(*_ordering())
    return [_to_read(row) for row in db.exec(statement).all()]


def list_my_tasks(db: Session, principal: Principal) -> List[TaskRead]:
    """Open tasks assigned to the caller."""
    statement = (
        _read_statement()
        .where(
            Task.project_id.in_(permissions.visible_project_ids(principal)),
            Task.assigned_to == principal.id,
            Task.status.not_in(CLOSED_STATUSES),
        )
        .order_by(*_ordering())
    )
    return [_to_read(row) for row in db.exec(statement).all()]


def list_comments(db: Session, task_id: int) -> List[CommentRead]:
    statement = (
        select(Comment, User.username, User.full_name)
        .join(User, User.id == Comment.user_id)
        .where(Comment.task_id == task_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return [
        CommentRead.model_validate(comment, update={"username": username, "user_name": full_name})
        for comment, username, full_name in db.exec(statement).all()
    ]


def get_task(db: Session, principal: Principal, task_id: int) -> TaskReadWithComments:
    task, _, _ = load_task_access(db, principal, task_id)

    row = db.exec(_read_statement().where(Task.id == task.id)).one()
    detail = _to_read(row, model=TaskReadWithComments)
    detail.comments = list_comments(db, task.id)
    return detail


def create_task(db: Session, principal: Principal, task_in: TaskCreate) -> TaskRead:
    """
    Create a task in a visible project.

    Raises:
        NotFound: If the project is missing or hidden
        ValidationFailed: If the assignee is not a member of the project
    """
    project, membership = load_project_access(db, principal, task_in.project_id)
    if not permissions.can_edit_task(principal, project, membership):
        raise Forbidden("No access to this project")

    if task_in.assigned_to:
        _check_assignee(db, project, task_in.assigned_to)

    task = Task(
        title=task_in.title,
        description=task_in.description,
        project_id=project.id,
        assigned_to=task_in.assigned_to,
        created_by=principal.id,
        status=task_in.status,
        priority=task_in.priority,
        due_date=task_in.due_date,
        completed_at=utc_now() if task_in.status == TaskStatus.DONE.value else None,
    )
    db.add(task)
    db.commit()
    db.refresh(task)

    logger.info("Task %s created in project %s by %s", task.id, project.id, principal.username)
    record_activity(db, principal.id, "task_created", "task", task.id, task.title)
    return _to_read(db.exec(_read_statement().where(Task.id == task.id)).one())


def update_task(db: Session, principal: Principal, task_id: int, task_in: TaskUpdate) -> TaskRead:
    """
    Partially update a task.

    Moving into "done" stamps ``completed_at``; any other status clears it. A
    rejected assignment leaves the task untouched.

    Raises:
        NotFound: If the task is missing or hidden
        NoFieldsToUpdate: If the request carries no recognized field
        ValidationFailed: If a required field is nulled or the assignee is not a member
    """
    task, project, membership = load_task_access(db, principal, task_id)
    if not permissions.can_edit_task(principal, project, membership):
        raise Forbidden("No access to this task")

    update_data = task_in.model_dump(exclude_unset=True)
    if not update_data:
        raise NoFieldsToUpdate()

    null_fields = [field for field in REQUIRED_FIELDS if field in update_data and update_data[field] is None]
    if null_fields:
        raise ValidationFailed("Fields cannot be null", fields=sorted(null_fields))

    if update_data.get("assigned_to") is not None:
        _check_assignee(db, project, update_data["assigned_to"])

    if "status" in update_data:
        new_status = update_data["status"]
        if new_status != TaskStatus.DONE.value:
            task.completed_at = None
        elif task.status != TaskStatus.DONE.value or task.completed_at is None:
            task.completed_at = utc_now()

    for field, value in update_data.items():
        setattr(task, field, value)
    task.updated_at = utc_now()

    db.add(task)
    db.commit()
    db.refresh(task)

    record_activity(
        db, principal.id, "task_updated", "task", task.id, json.dumps(update_data, default=str)
    )
    return _to_read(db.exec(_read_statement().where(Task.id == task.id)).one())


def delete_task(db: Session, principal: Principal, task_id: int) -> None:
    """
    Delete a task and, through the cascade, its comments.

    Raises:
        NotFound: If the task is missing or hidden
        Forbidden: If the caller is not the creator, the assignee or a project owner/admin
    """
    task, project, membership = load_task_access(db, principal, task_id)
    if not permissions.can_delete_task(principal, task, project, membership):
        raise Forbidden("Permission denied")

    title = task.title
    db.delete(task)
    db.commit()

    logger.info("Task %s deleted by %s", task_id, principal.username)
    record_activity(db, principal.id, "task_deleted", "task", task_id, title)


def add_comment(db: Session, principal: Principal, task_id: int, content: str) -> CommentRead:
    task, project, membership = load_task_access(db, principal, task_id)
    if not permissions.can_edit_task(principal, project, membership):
        raise Forbidden("No access to this task")

    comment = Comment(task_id=task.id, user_id=principal.id, content=content)
    db.add(comment)
    db.commit()
    db.refresh(comment)

    record_activity(db, principal.id, "comment_added", "task", task.id, "Added comment")

    author = db.get(User, principal.id)
    return CommentRead.model_validate(
        comment,
        update={"username": author.username, "user_name": author.full_name},
    )
