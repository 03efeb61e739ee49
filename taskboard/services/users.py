"""
User Service

Registration, authentication and user management. Every function takes the
acting principal explicitly; global-role gates for the admin-only operations
are applied at the route with ``deps.RoleChecker`` and the remaining rules go
through ``taskboard.core.permissions``.
"""
import json
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlmodel import Session, select

from taskboard.core import permissions
from taskboard.core.errors import Conflict, NoFieldsToUpdate, NotFound, Unauthorized, ValidationFailed
from taskboard.core.security import Principal, get_password_hash, verify_password
from taskboard.core.time_utils import utc_now
from taskboard.models.activity import ActivityLogRead
from taskboard.models.project import Project, ProjectMember
from taskboard.models.task import Comment, Task, TaskStatus
from taskboard.models.user import User, UserRead, UserRole
from taskboard.schemas.auth import UserRegister
from taskboard.schemas.user import UserListItem, UserProfile, UserStats, UserUpdate
from taskboard.services.activity import recent_activity, record_activity
from taskboard.services.projects import load_visible_project

logger = logging.getLogger(__name__)

# Columns that may not be set to null through an update
REQUIRED_FIELDS = {"full_name", "email"}


def get_user_or_404(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def get_user_by_login(db: Session, login: str) -> Optional[User]:
    """Look a user up by username or email."""
    statement = select(User).where(or_(User.username == login, User.email == login))
    return db.exec(statement).first()


def count_active_admins(db: Session) -> int:
    statement = select(func.count()).select_from(User).where(
        User.role == UserRole.ADMIN.value, User.is_active == True  # noqa: E712
    )
    return db.exec(statement).one()


def register(db: Session, user_in: UserRegister) -> Tuple[User, bool]:
    """
    Create a new account.

    The very first account becomes a global admin; every later one is a member.

    Returns:
        The created user and whether it was the first one

    Raises:
        Conflict: If the username or email is already taken
    """
    existing = db.exec(
        select(User).where(or_(User.username == user_in.username, User.email == user_in.email))
    ).first()
    if existing:
        raise Conflict("User already exists with this username or email")

    user_count = db.exec(select(func.count()).select_from(User)).one()
    is_first_user = user_count == 0

    db_user = User(
        username=user_in.username,
        email=user_in.email,
        password=get_password_hash(user_in.password),
        full_name=user_in.full_name,
        role=UserRole.ADMIN.value if is_first_user else UserRole.MEMBER.value,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)

    logger.info("Registered user %s (role=%s)", db_user.username, db_user.role)
    record_activity(db, db_user.id, "user_registered", "user", db_user.id)
    return db_user, is_first_user


def authenticate(db: Session, login: str, password: str) -> User:
    """
    Check credentials and return the matching active user.

    Raises:
        Unauthorized: If the credentials are wrong or the account is deactivated
    """
    user = get_user_by_login(db, login)
    if not user:
        logger.warning("Login failed for unknown user %s", login)
        raise Unauthorized("Invalid credentials")

    if not user.is_active:
        logger.warning("Login refused for deactivated user %s", user.username)
        raise Unauthorized("Account is deactivated")

    if not verify_password(password, user.password):
        logger.warning("Login failed for user %s", user.username)
        raise Unauthorized("Invalid credentials")

    record_activity(db, user.id, "user_login", "session")
    return user


def logout(db: Session, principal: Principal) -> None:
    record_activity(db, principal.id, "user_logout", "session")


def change_password(db: Session, principal: Principal, current_password: str, new_password: str) -> None:
    user = get_user_or_404(db, principal.id)
    if not verify_password(current_password, user.password):
        raise Unauthorized("Current password is incorrect")

    user.password = get_password_hash(new_password)
    user.updated_at = utc_now()
    db.add(user)
    db.commit()

    record_activity(db, principal.id, "password_changed", "user", principal.id)


def get_stats(db: Session, user_id: str) -> UserStats:
    def count(statement) -> int:
        return db.exec(statement).one()

    return UserStats(
        owned_projects=count(select(func.count()).select_from(Project).where(Project.owner_id == user_id)),
        assigned_tasks=count(select(func.count()).select_from(Task).where(Task.assigned_to == user_id)),
        completed_tasks=count(
            select(func.count()).select_from(Task).where(
                Task.assigned_to == user_id, Task.status == TaskStatus.DONE.value
            )
        ),
        created_tasks=count(select(func.count()).select_from(Task).where(Task.created_by == user_id)),
        member_projects=count(
            select(func.count()).select_from(ProjectMember).where(ProjectMember.user_id == user_id)
        ),
        total_comments=count(select(func.count()).select_from(Comment).where(Comment.user_id == user_id)),
    )


def get_profile(db: Session, principal: Principal, user_id: str) -> UserProfile:
    """
    Profile, statistics and recent activity of a user.

    Users see their own profile; global admins see anyone's. Everyone else gets
    NotFound, as if the user did not exist.
    """
    if user_id != principal.id and not permissions.is_global_admin(principal):
        raise NotFound("User not found")

    user = get_user_or_404(db, user_id)
    return UserProfile(
        user=UserRead.model_validate(user),
        stats=get_stats(db, user_id),
        recent_activity=[ActivityLogRead.model_validate(entry) for entry in recent_activity(db, user_id)],
    )


def list_users(db: Session) -> List[UserListItem]:
    owned = (
        select(func.count(Project.id)).where(Project.owner_id == User.id)
        .correlate(User).scalar_subquery()
    )
    assigned = (
        select(func.count(Task.id)).where(Task.assigned_to == User.id)
        .correlate(User).scalar_subquery()
    )
    member_of = (
        select(func.count(ProjectMember.project_id)).where(ProjectMember.user_id == User.id)
        .correlate(User).scalar_subquery()
    )
    statement = select(User, owned, assigned, member_of).order_by(User.created_at.desc())

    return [
        UserListItem.model_validate(
            user,
            update={"owned_projects": o, "assigned_tasks": a, "member_projects": m},
        )
        for user, o, a, m in db.exec(statement).all()
    ]


def list_available_users(db: Session, principal: Principal, project_id: Optional[int] = None) -> List[User]:
    """
    Active users, optionally excluding the owner and members of a project.
    """
    statement = select(User).where(User.is_active == True)  # noqa: E712

    if project_id is not None:
        project = load_visible_project(db, principal, project_id)
        member_ids = select(ProjectMember.user_id).where(ProjectMember.project_id == project.id)
        statement = statement.where(User.id != project.owner_id, User.id.not_in(member_ids))

    statement = statement.order_by(User.full_name)
    return list(db.exec(statement).all())


def update_profile(db: Session, principal: Principal, user_id: str, user_in: UserUpdate) -> User:
    if user_id != principal.id and not permissions.is_global_admin(principal):
        raise NotFound("User not found")

    user = get_user_or_404(db, user_id)

    update_data = user_in.model_dump(exclude_unset=True)
    if not update_data:
        raise NoFieldsToUpdate()

    null_fields = [field for field in REQUIRED_FIELDS if field in update_data and update_data[field] is None]
    if null_fields:
        raise ValidationFailed("Fields cannot be null", fields=sorted(null_fields))

    if "email" in update_data:
        taken = db.exec(select(User).where(User.email == update_data["email"], User.id != user_id)).first()
        if taken:
            raise Conflict("Email already in use")

    for field, value in update_data.items():
        setattr(user, field, value)
    user.updated_at = utc_now()

    db.add(user)
    db.commit()
    db.refresh(user)

    record_activity(db, principal.id, "user_updated", "user", user_id, json.dumps(update_data))
    return user


def change_role(db: Session, principal: Principal, user_id: str, role: str) -> User:
    """
    Change a user's global role.

    Raises:
        NotFound: If the user does not exist
        LastAdminProtected: If this would demote the last active admin
    """
    user = get_user_or_404(db, user_id)
    permissions.ensure_admin_retained(count_active_admins(db), user, new_role=role)

    user.role = role
    user.updated_at = utc_now()
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("User %s changed role of %s to %s", principal.username, user.username, role)
    record_activity(db, principal.id, "role_changed", "user", user_id, f"Changed role to {role}")
    return user


def toggle_active(db: Session, principal: Principal, user_id: str) -> User:
    """
    Flip a user's active flag (the soft-delete path).

    Raises:
        ValidationFailed: If admins try to deactivate themselves
        LastAdminProtected: If this would deactivate the last active admin
    """
    if user_id == principal.id:
        raise ValidationFailed("Cannot deactivate your own account")

    user = get_user_or_404(db, user_id)
    new_status = not user.is_active
    permissions.ensure_admin_retained(count_active_admins(db), user, new_active=new_status)

    user.is_active = new_status
    user.updated_at = utc_now()
    db.add(user)
    db.commit()
    db.refresh(user)

    action = "user_activated" if new_status else "user_deactivated"
    logger.info("User %s: %s by %s", user.username, action, principal.username)
    record_activity(db, principal.id, action, "user", user_id)
    return user


def reset_password(db: Session, principal: Principal, user_id: str, new_password: str) -> None:
    user = get_user_or_404(db, user_id)
    user.password = get_password_hash(new_password)
    user.updated_at = utc_now()
    db.add(user)
    db.commit()

    record_activity(db, principal.id, "password_reset", "user", user_id, "Admin password reset")
