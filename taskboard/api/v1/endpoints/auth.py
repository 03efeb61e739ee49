"""
Authentication Endpoints Module

This module provides authentication endpoints for registration, login, logout and
password changes. The system supports both JWT bearer token authentication and
HTTP-only cookie-based authentication for browser clients.
"""
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session

from taskboard.api import deps
from taskboard.core.security import Principal, TokenService
from taskboard.db.session import get_db
from taskboard.models.user import UserRead
from taskboard.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordChange,
    RegisterResponse,
    UserRegister,
)
from taskboard.schemas.user import UserProfile
from taskboard.services import users as user_service

router = APIRouter()


def _set_session_cookie(response: Response, token: str, token_service: TokenService) -> None:
    # httponly=True prevents JavaScript access to the cookie (XSS protection)
    # samesite="lax" provides CSRF protection while allowing normal navigation
    response.set_cookie(
        key="access_token",
        value=f"Bearer {token}",
        httponly=True,
        max_age=int(token_service.expires_delta.total_seconds()),
        samesite="lax",
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    user_in: UserRegister,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(deps.get_token_service),
) -> Any:
    """
    Register a new user account.

    The first account ever registered becomes a global admin; every later one
    is a member. A session token is returned straight away.

    Raises:
        HTTPException 409: If the username or email is already taken
    """
    user, is_first_user = user_service.register(db, user_in)
    return RegisterResponse(
        user=UserRead.model_validate(user),
        access_token=token_service.issue(user),
        is_first_user=is_first_user,
    )


@router.post("/login", response_model=LoginResponse)
def login(
    response: Response,
    credentials: LoginRequest,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(deps.get_token_service),
) -> Any:
    """
    Authenticate with username (or email) and password.

    The token is returned in the body and also set as an HTTP-only cookie for
    browser clients.

    Raises:
        HTTPException 401: If credentials are invalid or the account is deactivated
    """
    user = user_service.authenticate(db, credentials.username, credentials.password)
    access_token = token_service.issue(user)
    _set_session_cookie(response, access_token, token_service)
    return LoginResponse(user=UserRead.model_validate(user), access_token=access_token)


@router.get("/me", response_model=UserProfile)
def read_me(
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
) -> Any:
    """Get the current user's profile and statistics."""
    return user_service.get_profile(db, principal, principal.id)


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    payload: PasswordChange,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
) -> Any:
    user_service.change_password(db, principal, payload.current_password, payload.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.get_current_principal),
) -> Any:
    """
    Log out by clearing the authentication cookie.

    Tokens are not revoked; API clients simply discard theirs.
    """
    user_service.logout(db, principal)
    response.delete_cookie("access_token")
    return MessageResponse(message="Logout successful")
