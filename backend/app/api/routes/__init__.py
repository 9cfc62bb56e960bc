"""Route modules for the tracker API."""
from . import auth, email_verification, invite, login_otp, users

__all__ = ["auth", "login_otp", "email_verification", "users", "invite"]
