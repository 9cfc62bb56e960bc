"""SQLAlchemy models registered on the shared metadata."""
from .auth_session import AuthSession
from .user import OtpPurpose, User

__all__ = ["User", "OtpPurpose", "AuthSession"]
