"""API router aggregator."""
from fastapi import APIRouter

from app.api.routes import auth, email_verification, invite, login_otp, users

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(login_otp.router)
api_router.include_router(email_verification.router)
api_router.include_router(users.router)
api_router.include_router(invite.router)

__all__ = ["api_router"]
