"""
Project Service

Project CRUD and membership management. Visibility and administration rules
come from ``taskboard.core.permissions``; this module only loads rows, asks,
mutates, and records activity.
"""
import json
import logging
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlmodel import Session, select

from taskboard.core import permissions
from taskboard.core.errors import Conflict, Forbidden, NoFieldsToUpdate, NotFound, ValidationFailed
from taskboard.core.security import Principal
from taskboard.core.time_utils import utc_now
from taskboard.models.project import (
    MemberRead,
    Project,
    ProjectDetail,
    ProjectMember,
    ProjectRole,
    ProjectSummary,
)
from taskboard.models.task import Task, TaskStatus
from taskboard.models.user import User, UserSummary
from taskboard.schemas.project import MemberAdd, ProjectCreate, ProjectUpdate
from taskboard.services.activity import record_activity

logger = logging.getLogger(__name__)

# Columns that may not be set to null through an update
REQUIRED_FIELDS = {"name", "status", "color"}


def get_membership(db: Session, project_id: int, user_id: str) -> Optional[ProjectMember]:
    return db.get(ProjectMember, (project_id, user_id))


def load_project_access(db: Session, principal: Principal, project_id: int) -> Tuple[Project, Optional[ProjectMember]]:
    """
    Load a project together with the caller's membership row.

    Raises:
        NotFound: If the project does not exist or is not visible to the caller
    """
    project = db.get(Project, project_id)
    if not project:
        raise NotFound("Project not found")

    membership = get_membership(db, project_id, principal.id)
    if not permissions.can_view_project(principal, project, membership):
        raise NotFound("Project not found")
    return project, membership


def load_visible_project(db: Session, principal: Principal, project_id: int) -> Project:
    project, _ = load_project_access(db, principal, project_id)
    return project


def _summary_statement(principal: Principal):
    task_count = (
        select(func.count(Task.id)).where(Task.project_id == Project.id)
        .correlate(Project).scalar_subquery()
    )
    completed_tasks = (
        select(func.count(Task.id))
        .where(Task.project_id == Project.id, Task.status == TaskStatus.DONE.value)
        .correlate(Project).scalar_subquery()
    )
    member_count = (
        select(func.count(ProjectMember.user_id)).where(ProjectMember.project_id == Project.id)
        .correlate(Project).scalar_subquery()
    )
    return (
        select(Project, ProjectMember.role, task_count, completed_tasks, member_count)
        .outerjoin(
            ProjectMember,
            and_(ProjectMember.project_id == Project.id, ProjectMember.user_id == principal.id),
        )
    )


def _to_summary(row, model=ProjectSummary):
    project, user_role, task_count, completed_tasks, member_count = row
    return model.model_validate(
        project,
        update={
            "user_role": user_role,
            "task_count": task_count or 0,
            "completed_tasks": completed_tasks or 0,
            "member_count": member_count or 0,
        },
    )


def list_projects(
    db: Session,
    principal: Principal,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[ProjectSummary]:
    """
    Projects visible to the caller, most recently updated first.

    Args:
        status: Only projects with this status ("all" disables the filter)
        search: Case-insensitive substring of name or description
    """
    statement = _summary_statement(principal).where(
        Project.id.in_(permissions.visible_project_ids(principal))
    )

    if status and status != "all":
        statement = statement.where(Project.status == status)

    if search:
        pattern = f"%{search}%"
        statement = statement.where(or_(Project.name.ilike(pattern), Project.description.ilike(pattern)))

    statement = statement.order_by(Project.updated_at.desc(), Project.id.desc())
    return [_to_summary(row) for row in db.exec(statement).all()]


def list_members(db: Session, project_id: int) -> List[MemberRead]:
    statement = (
        select(User, ProjectMember)
        .join(ProjectMember, ProjectMember.user_id == User.id)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.joined_at)
    )
    return [
        MemberRead(
            id=user.id,
            username=user.username,
            full_name=user.full_name,
            email=user.email,
            role=user.role,
            project_role=membership.role,
            joined_at=membership.joined_at,
        )
        for user, membership in db.exec(statement).all()
    ]


def get_project(db: Session, principal: Principal, project_id: int) -> ProjectDetail:
    """
    A single visible project with its counters, owner and members.

    Raises:
        NotFound: If the project does not exist or is hidden from the caller
    """
    project = load_visible_project(db, principal, project_id)

    row = db.exec(_summary_statement(principal).where(Project.id == project.id)).one()
    detail = _to_summary(row, model=ProjectDetail)

    owner = db.get(User, project.owner_id)
    if owner:
        detail.owner = UserSummary(
            id=owner.id, username=owner.username, full_name=owner.full_name, email=owner.email
        )
    detail.members = list_members(db, project.id)
    return detail


def create_project(db: Session, principal: Principal, project_in: ProjectCreate) -> Project:
    """
    Create a project owned by the caller.

    The owner also gets a membership row with role "owner" in the same
    transaction.
    """
    project = Project(
        name=project_in.name,
        description=project_in.description,
        color=project_in.color,
        owner_id=principal.id,
    )
    db.add(project)
    db.flush()  # assigns project.id

    db.add(ProjectMember(project_id=project.id, user_id=principal.id, role=ProjectRole.OWNER.value))
    db.commit()
    db.refresh(project)

    logger.info("Project %s created by %s", project.id, principal.username)
    record_activity(db, principal.id, "project_created", "project", project.id, project.name)
    return project


def update_project(db: Session, principal: Principal, project_id: int, project_in: ProjectUpdate) -> Project:
    """
    Partially update a project.

    Raises:
        NotFound: If the project is missing or hidden
        Forbidden: If the caller is neither owner nor a project owner/admin
        NoFieldsToUpdate: If the request carries no recognized field
    """
    project, membership = load_project_access(db, principal, project_id)
    if not permissions.can_edit_project(principal, project, membership):
        raise Forbidden("Permission denied")

    update_data = project_in.model_dump(exclude_unset=True)
    if not update_data:
        raise NoFieldsToUpdate()

    null_fields = [field for field in REQUIRED_FIELDS if field in update_data and update_data[field] is None]
    if null_fields:
        raise ValidationFailed("Fields cannot be null", fields=sorted(null_fields))

    for field, value in update_data.items():
        setattr(project, field, value)
    project.updated_at = utc_now()

    db.add(project)
    db.commit()
    db.refresh(project)

    record_activity(db, principal.id, "project_updated", "project", project.id, json.dumps(update_data))
    return project


def delete_project(db: Session, principal: Principal, project_id: int) -> None:
    """
    Delete a project; its tasks, comments and memberships go with it.

    Global admins may delete any project, even one they cannot see.
    """
    if permissions.is_global_admin(principal):
        project = db.get(Project, project_id)
        if not project:
            raise NotFound("Project not found")
    else:
        project = load_visible_project(db, principal, project_id)

    if not permissions.can_delete_project(principal, project):
        raise Forbidden("Only the project owner can delete the project")

    name = project.name
    db.delete(project)
    db.commit()

    logger.info("Project %s deleted by %s", project_id, principal.username)
    record_activity(db, principal.id, "project_deleted", "project", project_id, name)


def add_member(db: Session, principal: Principal, project_id: int, member_in: MemberAdd) -> MemberRead:
    """
    Grant a user a role in a project.

    Raises:
        NotFound: If the project is hidden/missing or the user does not exist
        Forbidden: If the caller may not manage members
        Conflict: If the user already belongs to the project
    """
    project, membership = load_project_access(db, principal, project_id)
    if not permissions.can_manage_members(principal, project, membership):
        raise Forbidden("Permission denied")

    user = db.get(User, member_in.user_id)
    if not user:
        raise NotFound("User not found")

    if user.id == project.owner_id or get_membership(db, project.id, user.id):
        raise Conflict("User is already a member of this project")

    new_membership = ProjectMember(project_id=project.id, user_id=user.id, role=member_in.role)
    db.add(new_membership)
    db.commit()
    db.refresh(new_membership)

    record_activity(
        db, principal.id, "member_added", "project", project.id,
        f"Added {user.username} as {member_in.role}",
    )
    return MemberRead(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        email=user.email,
        role=user.role,
        project_role=new_membership.role,
        joined_at=new_membership.joined_at,
    )


def remove_member(db: Session, principal: Principal, project_id: int, user_id: str) -> None:
    """
    Remove a membership. Members can always remove themselves.

    Raises:
        ValidationFailed: If the target is the project owner
        Forbidden: If the caller may not remove other members
        NotFound: If the project is hidden/missing or the user is not a member
    """
    project, membership = load_project_access(db, principal, project_id)

    if user_id == project.owner_id:
        raise ValidationFailed("Cannot remove project owner", fields=["user_id"])

    if not permissions.can_remove_member(principal, project, membership, user_id):
        raise Forbidden("Permission denied")

    target = get_membership(db, project.id, user_id)
    if not target:
        raise NotFound("Member not found in project")

    db.delete(target)
    db.commit()

    record_activity(db, principal.id, "member_removed", "project", project.id, f"Removed user {user_id}")
