"""
API Dependencies Module

This module provides FastAPI dependency functions for authentication and authorization.
It implements a dual authentication strategy supporting both bearer tokens (for API clients)
and HTTP-only cookies (for browser clients), plus the sliding-session refresh.
"""
import logging
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from taskboard.core import permissions
from taskboard.core.config import settings
from taskboard.core.errors import Forbidden, Unauthorized
from taskboard.core.security import Principal, TokenService
from taskboard.db.session import get_db
from taskboard.models.user import User, UserRole

logger = logging.getLogger(__name__)

# auto_error=False allows us to check cookies as a fallback
reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    auto_error=False  # Don't raise error immediately if Authorization header is missing
)


@lru_cache()
def get_token_service() -> TokenService:
    """The process-wide token service, built once from settings."""
    return TokenService.from_settings(settings)


def _extract_token(request: Request, token: Optional[str]) -> Optional[str]:
    # Try Authorization header first, then fall back to cookie
    if token:
        return token
    cookie = request.cookies.get("access_token")
    # Cookie format is "Bearer <token>"
    if cookie and cookie.startswith("Bearer "):
        return cookie[len("Bearer "):]
    return cookie


def get_current_user(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(reusable_oauth2),
    token_service: TokenService = Depends(get_token_service),
) -> User:
    """
    Dependency that retrieves and validates the current authenticated user.

    After the token verifies, the user is re-read from the database so a
    deactivated account is locked out immediately. When the token is close to
    expiry a replacement is issued and returned in the refresh header; the old
    token keeps working until it runs out.

    Raises:
        Unauthorized: Missing, invalid or expired token; unknown or deactivated user
    """
    token = _extract_token(request, token)
    if not token:
        raise Unauthorized("Access token required")

    claims = token_service.verify(token)

    user = db.get(User, claims.user_id)
    if not user:
        raise Unauthorized("User not found")
    if not user.is_active:
        logger.warning("Rejected token for deactivated user %s", user.username)
        raise Unauthorized("Account is deactivated")

    if token_service.needs_refresh(claims):
        new_token = token_service.issue(user)
        response.headers[settings.REFRESH_TOKEN_HEADER] = new_token
        # Error responses are built by the handlers, which read it from here
        request.state.refreshed_token = new_token

    return user


def get_current_principal(current_user: User = Depends(get_current_user)) -> Principal:
    """The authenticated identity, passed explicitly into every service call."""
    return Principal.from_user(current_user)


class RoleChecker:
    """
    Dependency factory for checking global roles.

    Usage: Depends(RoleChecker([UserRole.ADMIN]))
    """
    def __init__(self, allowed_roles: List[UserRole]):
        self.allowed_roles = allowed_roles

    def __call__(self, principal: Principal = Depends(get_current_principal)) -> Principal:
        if not permissions.has_global_role(principal, self.allowed_roles):
            raise Forbidden("Insufficient permissions")
        return principal


require_admin = RoleChecker([UserRole.ADMIN])
