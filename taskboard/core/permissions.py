"""
Access Control Module

The single home of every permission rule. Resource services load the rows they
need (project, the caller's membership, the task) and ask one of the decision
functions below; nothing else in the code base re-derives a permission.

Rules, in order of precedence:

1. Global ``admin`` bypasses project checks for administrative actions
   (user management, forced project deletion).
2. A project is visible (readable and writable) to its owner and to anyone
   holding a membership row for it, and to nobody else.
3. Editing a project and managing its members needs ownership or a membership
   role of owner/admin. Deletion needs true ownership or global admin. Anyone
   may remove themselves; nobody may remove the owner.
4. Any visible-project principal may create or update tasks; deletion is for
   the creator, the current assignee, or a project owner/admin.
5. Tasks may only be assigned to the owner or a member of their project.
6. The last active global admin can be neither demoted nor deactivated.
"""
from typing import Iterable, Optional

from sqlalchemy import or_
from sqlmodel import select

from taskboard.core.errors import LastAdminProtected
from taskboard.core.security import Principal
from taskboard.models.project import Project, ProjectMember, ProjectRole
from taskboard.models.task import Task
from taskboard.models.user import User, UserRole

# Project roles allowed to edit a project and manage its members
PROJECT_MANAGER_ROLES = {ProjectRole.OWNER.value, ProjectRole.ADMIN.value}


def is_global_admin(principal: Principal) -> bool:
    return principal.role == UserRole.ADMIN.value


def has_global_role(principal: Principal, allowed_roles: Iterable[UserRole]) -> bool:
    return principal.role in {role.value for role in allowed_roles}


def is_project_owner(principal: Principal, project: Project) -> bool:
    return project.owner_id == principal.id


def can_view_project(principal: Principal, project: Project, membership: Optional[ProjectMember]) -> bool:
    return is_project_owner(principal, project) or membership is not None


def can_edit_project(principal: Principal, project: Project, membership: Optional[ProjectMember]) -> bool:
    if is_project_owner(principal, project):
        return True
    return membership is not None and membership.role in PROJECT_MANAGER_ROLES


def can_manage_members(principal: Principal, project: Project, membership: Optional[ProjectMember]) -> bool:
    return can_edit_project(principal, project, membership)


def can_delete_project(principal: Principal, project: Project) -> bool:
    return is_project_owner(principal, project) or is_global_admin(principal)


def can_remove_member(
    principal: Principal,
    project: Project,
    membership: Optional[ProjectMember],
    target_user_id: str,
) -> bool:
    if target_user_id == project.owner_id:
        return False
    if target_user_id == principal.id:
        return True
    return can_manage_members(principal, project, membership)


def can_edit_task(principal: Principal, project: Project, membership: Optional[ProjectMember]) -> bool:
    return can_view_project(principal, project, membership)


def can_delete_task(
    principal: Principal,
    task: Task,
    project: Project,
    membership: Optional[ProjectMember],
) -> bool:
    if principal.id in (task.created_by, task.assigned_to):
        return True
    return can_edit_project(principal, project, membership)


def is_assignable(project: Project, assignee_membership: Optional[ProjectMember], assignee_id: str) -> bool:
    """Whether ``assignee_id`` may hold tasks in ``project`` right now."""
    return assignee_id == project.owner_id or assignee_membership is not None


def ensure_admin_retained(
    active_admin_count: int,
    target: User,
    new_role: Optional[str] = None,
    new_active: Optional[bool] = None,
) -> None:
    """
    Refuse a role change or deactivation that would leave no active admin.

    ``active_admin_count`` is the current number of active admins, the target
    included if it is one.

    Raises:
        LastAdminProtected: If the change would drop the count to zero
    """
    if not (target.is_active and target.role == UserRole.ADMIN.value):
        return

    loses_admin = (
        (new_role is not None and new_role != UserRole.ADMIN.value)
        or new_active is False
    )
    if loses_admin and active_admin_count - 1 < 1:
        raise LastAdminProtected()


def visible_project_ids(principal: Principal):
    """
    Subquery selecting the ids of every project visible to ``principal``.

    This is the SQL form of ``can_view_project`` used by listings.
    """
    member_project_ids = select(ProjectMember.project_id).where(ProjectMember.user_id == principal.id)
    return select(Project.id).where(
        or_(Project.owner_id == principal.id, Project.id.in_(member_project_ids))
    )
