"""Role checks for mutating operations."""
from __future__ import annotations

import logging
from typing import Iterable

from app.core.errors import Forbidden, Unauthorized
from app.core.roles import Role, normalize_role
from app.models.auth_session import AuthSession

logger = logging.getLogger(__name__)

# Structural changes: deleting projects or teams, key resets, user role and activation changes.
STRUCTURAL_ROLES = frozenset({Role.ADMIN})
# Collaborative changes: inviting or adding members, editing projects, deleting work items.
COLLABORATOR_ROLES = frozenset({Role.ADMIN, Role.SCRUM_MASTER})

ELEVATED_ITEM_TYPES = frozenset({"EPIC", "FEATURE"})


def session_role(record: AuthSession | None) -> Role | None:
    if record is None or not record.is_authenticated:
        return None
    return normalize_role(record.role)


def authorize(record: AuthSession | None, required_roles: Iterable[Role]) -> bool:
    """Raise Unauthorized without a session, Forbidden if its role is not allowed."""
    if record is None or not record.is_authenticated:
        raise Unauthorized()
    allowed = frozenset(required_roles)
    role = session_role(record)
    if role not in allowed:
        logger.warning(
            "User %s with role %s denied; requires one of %s",
            record.user_id, record.role, sorted(r.value for r in allowed),
        )
        raise Forbidden()
    return True


def authorize_item_type(record: AuthSession | None, item_type: str) -> bool:
    """Epics and features may only be created by collaborator roles."""
    if record is None or not record.is_authenticated:
        raise Unauthorized()
    if item_type.strip().upper() in ELEVATED_ITEM_TYPES:
        return authorize(record, COLLABORATOR_ROLES)
    return True
