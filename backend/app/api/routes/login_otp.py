"""Two-step login: password check, then an emailed one-time code."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.session_cookie import set_session_cookie
from app.core.dependencies import get_auth_session, get_db, get_mailer
from app.core.errors import Expired
from app.models.auth_session import AuthSession
from app.schemas.auth import LoginOtpVerifyRequest, LoginRequest, LoginResponse, OtpSentResponse
from app.schemas.user import UserPublic
from app.services import sessions
from app.services.auth import send_login_otp, verify_login_otp
from app.services.mailer import Mailer

router = APIRouter(prefix="/login-otp", tags=["login-otp"])


@router.post("/send-otp", response_model=OtpSentResponse)
async def send_otp(
    payload: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_db),
    auth_session: AuthSession | None = Depends(get_auth_session),
    mailer: Mailer = Depends(get_mailer),
) -> OtpSentResponse:
    record = auth_session or await sessions.open_session(session)
    issued, message = await send_login_otp(session, record, payload.email, payload.password)
    await session.commit()
    mailer.dispatch(message)
    set_session_cookie(response, record)
    return OtpSentResponse(expires_in_minutes=issued.expires_in_minutes)


@router.post("/verify-login", response_model=LoginResponse)
async def verify_login(
    payload: LoginOtpVerifyRequest,
    response: Response,
    session: AsyncSession = Depends(get_db),
    auth_session: AuthSession | None = Depends(get_auth_session),
) -> LoginResponse:
    try:
        user, record = await verify_login_otp(
            session, auth_session, payload.email, payload.password, payload.otp
        )
    except Expired:
        # Persist the cleared pending code before reporting the expiry.
        await session.commit()
        raise
    await session.commit()
    set_session_cookie(response, record)
    return LoginResponse(user=UserPublic.model_validate(user))
