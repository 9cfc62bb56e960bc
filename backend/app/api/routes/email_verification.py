"""Email ownership verification with a one-time code."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db, get_mailer
from app.models.user import User
from app.schemas.auth import (
    EmailOtpVerifyRequest,
    EmailRequest,
    EmailVerifiedResponse,
    OtpSentResponse,
    VerificationStatus,
)
from app.services.mailer import Mailer
from app.services.otp import send_email_verification_otp, verify_email_otp

router = APIRouter(prefix="/email-verification", tags=["email-verification"])


@router.post("/send-otp", response_model=OtpSentResponse, response_model_exclude={"success"})
async def send_otp(
    payload: EmailRequest,
    session: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> OtpSentResponse:
    issued, message = await send_email_verification_otp(session, payload.email)
    await session.commit()
    mailer.dispatch(message)
    return OtpSentResponse(expires_in_minutes=issued.expires_in_minutes)


@router.post("/resend-otp", response_model=OtpSentResponse, response_model_exclude={"success"})
async def resend_otp(
    payload: EmailRequest,
    session: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
) -> OtpSentResponse:
    return await send_otp(payload, session, mailer)


@router.post("/verify-otp", response_model=EmailVerifiedResponse)
async def verify_otp(
    payload: EmailOtpVerifyRequest,
    session: AsyncSession = Depends(get_db),
) -> EmailVerifiedResponse:
    await verify_email_otp(session, payload.email, payload.otp)
    await session.commit()
    return EmailVerifiedResponse()


@router.get("/status", response_model=VerificationStatus)
async def verification_status(current_user: User = Depends(get_current_user)) -> VerificationStatus:
    return VerificationStatus(email_verified=current_user.email_verified, email=current_user.email)
