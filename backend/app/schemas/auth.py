"""Authentication-related schemas."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.user import UserPublic


class _Request(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)


class LoginRequest(_Request):
    email: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=128)


class LoginOtpVerifyRequest(LoginRequest):
    otp: str = Field(..., min_length=1, max_length=16)


class EmailRequest(_Request):
    email: str = Field(..., min_length=1, max_length=100)


class EmailOtpVerifyRequest(EmailRequest):
    otp: str = Field(..., min_length=1, max_length=16)


class ChangePasswordRequest(_Request):
    current_password: str = Field(..., alias="currentPassword", min_length=1, max_length=128)
    new_password: str = Field(..., alias="newPassword", min_length=1, max_length=128)


class ResetPasswordRequest(_Request):
    token: str = Field(..., min_length=1, max_length=256)
    password: str = Field(..., min_length=1, max_length=128)


class MessageResponse(BaseModel):
    message: str


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "Login successful"
    user: UserPublic


class AuthStatus(BaseModel):
    authenticated: bool
    user_role: str | None = Field(default=None, serialization_alias="userRole")


class OtpSentResponse(BaseModel):
    success: bool = True
    message: str = "OTP sent successfully to your email address"
    expires_in_minutes: int


class EmailVerifiedResponse(BaseModel):
    success: bool = True
    message: str = "Email verified successfully"


class VerificationStatus(BaseModel):
    email_verified: bool
    email: str
