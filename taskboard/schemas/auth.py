from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from taskboard.models.user import UserRead


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRegister(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_]+$")
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=2, max_length=100)


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    # Username or email
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class RegisterResponse(Token):
    message: str = "Registration successful"
    user: UserRead
    is_first_user: bool = False


class LoginResponse(Token):
    message: str = "Login successful"
    user: UserRead


class MessageResponse(BaseModel):
    message: str
    is_active: Optional[bool] = None
