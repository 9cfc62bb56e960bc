"""Canonical role enums shared by the authorization gate and team memberships."""
from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    SCRUM_MASTER = "SCRUM_MASTER"
    USER = "USER"


class TeamRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    LEAD = "LEAD"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"
    SCRUM_MASTER = "SCRUM_MASTER"


_ALIASES = {"SCRUM": "SCRUM_MASTER", "SCRUM MASTER": "SCRUM_MASTER", "SCRUM-MASTER": "SCRUM_MASTER"}

# Roles offered by the invite form, mapped onto global roles.
INVITE_ROLE_MAP = {
    "ADMIN": Role.ADMIN,
    "MANAGER": Role.SCRUM_MASTER,
    "LEAD": Role.SCRUM_MASTER,
    "MEMBER": Role.USER,
}


def _canonical(raw: str) -> str:
    text = raw.strip().upper()
    return _ALIASES.get(text, text)


def normalize_role(raw: str | Role | None) -> Role | None:
    """Parse a global role, accepting legacy spellings. Returns None if unknown."""
    if raw is None:
        return None
    if isinstance(raw, Role):
        return raw
    try:
        return Role(_canonical(raw))
    except ValueError:
        return None


def normalize_team_role(raw: str | TeamRole | None) -> TeamRole | None:
    if raw is None:
        return None
    if isinstance(raw, TeamRole):
        return raw
    try:
        return TeamRole(_canonical(raw))
    except ValueError:
        return None


def role_for_invite(raw: str | None) -> Role:
    """Map an invite-form role onto a global role; unknown values become USER."""
    if not raw:
        return Role.USER
    return INVITE_ROLE_MAP.get(_canonical(raw), Role.USER)
