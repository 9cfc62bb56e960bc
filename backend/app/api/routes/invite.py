"""Invite new members by email."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_db, get_mailer, require_roles
from app.core.roles import Role, role_for_invite
from app.models.auth_session import AuthSession
from app.schemas.user import InviteRequest, InviteResponse, UserPublic
from app.services.authorization import COLLABORATOR_ROLES, STRUCTURAL_ROLES, authorize
from app.services.mailer import Mailer, invitation_email
from app.services.users import invite_user

router = APIRouter(prefix="/invite", tags=["invite"])


@router.post("", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def invite(
    payload: InviteRequest,
    session: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    auth_session: AuthSession = Depends(require_roles(*COLLABORATOR_ROLES)),
) -> InviteResponse:
    if role_for_invite(payload.role) is not Role.USER:
        authorize(auth_session, STRUCTURAL_ROLES)
    user, temporary_password = await invite_user(session, payload.email, payload.role)
    await session.commit()
    mailer.dispatch(invitation_email(user, temporary_password))
    return InviteResponse(user=UserPublic.model_validate(user))
