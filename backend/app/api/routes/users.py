"""User administration endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_db, require_authenticated, require_roles
from app.core.errors import NotFound
from app.core.roles import Role
from app.models.auth_session import AuthSession
from app.schemas.user import UserCreate, UserRead, UserUpdate
from app.services import sessions
from app.services import users as user_service
from app.services.authorization import COLLABORATOR_ROLES, STRUCTURAL_ROLES, authorize

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserRead])
async def list_users(
    session: AsyncSession = Depends(get_db),
    _: AuthSession = Depends(require_authenticated),
) -> list[UserRead]:
    users = await user_service.list_users(session)
    return [UserRead.model_validate(user) for user in users]


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    _: AuthSession = Depends(require_authenticated),
) -> UserRead:
    user = await user_service.get_user_by_id(session, user_id, active_only=False)
    if not user:
        raise NotFound("User not found")
    return UserRead.model_validate(user)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    session: AsyncSession = Depends(get_db),
    auth_session: AuthSession = Depends(require_roles(*COLLABORATOR_ROLES)),
) -> UserRead:
    # Only admins may hand out elevated roles.
    if payload.role is not Role.USER:
        authorize(auth_session, STRUCTURAL_ROLES)
    user = await user_service.create_user(session, payload)
    await session.commit()
    return UserRead.model_validate(user)


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    session: AsyncSession = Depends(get_db),
    _: AuthSession = Depends(require_roles(*STRUCTURAL_ROLES)),
) -> UserRead:
    user = await user_service.get_user_by_id(session, user_id, active_only=False)
    if not user:
        raise NotFound("User not found")
    user = await user_service.update_user(session, user, payload)
    await sessions.sync_user_sessions(session, user)
    await session.commit()
    return UserRead.model_validate(user)
