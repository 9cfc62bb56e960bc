"""Authentication endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.session_cookie import clear_session_cookie, set_session_cookie
from app.core.dependencies import get_auth_session, get_current_user, get_db, get_mailer
from app.models.auth_session import AuthSession
from app.models.user import User
from app.schemas.auth import (
    AuthStatus,
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResetPasswordRequest,
)
from app.schemas.user import UserPublic
from app.services import sessions
from app.services.auth import password_login
from app.services.mailer import Mailer, password_reset_email
from app.services.users import change_password as change_user_password
from app.services.users import request_password_reset, reset_password as reset_user_password

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If this email exists, a password reset link has been sent"


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_db),
    auth_session: AuthSession | None = Depends(get_auth_session),
) -> LoginResponse:
    user = await password_login(session, payload.email, payload.password)
    record = await sessions.establish(session, auth_session, user)
    await session.commit()
    set_session_cookie(response, record)
    return LoginResponse(user=UserPublic.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    session: AsyncSession = Depends(get_db),
    auth_session: AuthSession | None = Depends(get_auth_session),
) -> MessageResponse:
    await sessions.destroy(session, auth_session)
    await session.commit()
    clear_session_cookie(response)
    return MessageResponse(message="Logged out successfully")


@router.get("/status", response_model=AuthStatus, response_model_exclude_none=True)
async def auth_status(auth_session: AuthSession | None = Depends(get_auth_session)) -> AuthStatus:
    return AuthStatus(**sessions.status(auth_session))


@router.get("/user", response_model=UserPublic)
async def get_current_user_info(current_user: User = Depends(get_current_user)) -> UserPublic:
    return UserPublic.model_validate(current_user)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: EmailRequest,
    session: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    issued = await request_password_reset(session, payload.email)
    if issued is not None:
        user, token = issued
        await session.commit()
        mailer.dispatch(password_reset_email(user, token))
    # Same answer whether or not the account exists.
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    payload: ResetPasswordRequest,
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await reset_user_password(session, payload.token, payload.password)
    await session.commit()
    return MessageResponse(message="Password reset successfully")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    await change_user_password(session, current_user, payload.current_password, payload.new_password)
    await session.commit()
    return MessageResponse(message="Password changed successfully")
