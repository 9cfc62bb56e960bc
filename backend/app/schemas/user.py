"""Pydantic schemas for user operations."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from app.core.roles import Role, normalize_role

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _parse_role(value: str | Role | None) -> Role | None:
    if value is None:
        return None
    role = normalize_role(value)
    if role is None:
        raise ValueError("Role must be one of: ADMIN, SCRUM_MASTER, USER")
    return role


RoleField = Annotated[Role, BeforeValidator(_parse_role)]
OptionalRoleField = Annotated[Role | None, BeforeValidator(_parse_role)]


class UserPublic(BaseModel):
    """Safe projection of a user: no password hash, OTP or reset state."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    full_name: str | None = Field(default=None, serialization_alias="fullName")
    role: str
    avatar_url: str | None = Field(default=None, serialization_alias="avatarUrl")


class UserRead(UserPublic):
    is_active: bool = Field(serialization_alias="isActive")
    email_verified: bool = Field(serialization_alias="emailVerified")
    last_login_at: datetime | None = Field(default=None, serialization_alias="lastLogin")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")


class UserCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    username: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., max_length=100, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1, max_length=128)
    full_name: str | None = Field(default=None, alias="fullName", max_length=100)
    role: RoleField = Role.USER


class UserUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    role: OptionalRoleField = None
    is_active: bool | None = Field(default=None, alias="isActive")
    full_name: str | None = Field(default=None, alias="fullName", max_length=100)
    avatar_url: str | None = Field(default=None, alias="avatarUrl", max_length=255)


class InviteRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., max_length=100, pattern=EMAIL_PATTERN)
    role: str | None = Field(default=None, max_length=32)


class InviteResponse(BaseModel):
    success: bool = True
    message: str = "Invitation sent successfully"
    user: UserPublic
