"""Scope-based permission helpers.

Every privileged operation consults these before issuing a request, so a
refused operation never has a partial remote side effect.
"""
from __future__ import annotations
from typing import TYPE_CHECKING

from appmixer_sync.core.appmixer.exceptions import InsufficientPermissionsError

if TYPE_CHECKING:
    from appmixer_sync.core.appmixer.client import Session

ADMIN_SCOPE = "admin"


def has_scope(session: "Session", scope_name: str) -> bool:
    """Check if the session was granted a specific scope."""
    return scope_name in (session.scope or ())


def is_admin(session: "Session") -> bool:
    """Check if the session carries the admin scope."""
    return has_scope(session, ADMIN_SCOPE)


def require_scope(session: "Session", scope_name: str, action: str) -> None:
    """Raise when the session lacks ``scope_name``.

    Args:
        session: Authenticated session
        scope_name: Required scope (e.g., "admin")
        action: Human-readable description used in the error message

    Raises:
        InsufficientPermissionsError: If the scope is missing
    """
    if not has_scope(session, scope_name):
        raise InsufficientPermissionsError(f"{action} requires {scope_name} permissions")


def require_admin(session: "Session", action: str) -> None:
    """Raise unless the session carries the admin scope."""
    require_scope(session, ADMIN_SCOPE, action)


def is_self(session: "Session", user_id: str) -> bool:
    """Check if ``user_id`` is the caller's own identity."""
    return bool(user_id) and user_id == session.user_id
