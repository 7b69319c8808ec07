"""Input validation helpers for reconciler records.

Every check here runs before any request is issued.
"""
from __future__ import annotations
from typing import Any, Mapping

from appmixer_sync.core.appmixer.exceptions import ValidationError

PASSWORD_MIN_LENGTH = 5


def validate_password(password: str) -> str:
    """Validate password length against the Appmixer minimum.

    Args:
        password: Password to validate

    Returns:
        The password unchanged

    Raises:
        ValidationError: If password is shorter than PASSWORD_MIN_LENGTH
    """
    if password is None or len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long according to Appmixer requirements"
        )
    return password


def validate_username(username: str) -> str:
    """Require a non-empty username."""
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    return username


def validate_token_map(token: Mapping[str, Any]) -> dict[str, str]:
    """Validate account credentials: every value must be a string.

    Args:
        token: Credential map (keys depend on the service type)

    Returns:
        Plain dict copy of the credentials

    Raises:
        ValidationError: If token is not a mapping or a value is not a string
    """
    if not isinstance(token, Mapping):
        raise ValidationError("'token' must be a map of string values")
    validated: dict[str, str] = {}
    for key, value in token.items():
        if not isinstance(value, str):
            raise ValidationError(f"value for key '{key}' in 'token' map is not a string")
        validated[str(key)] = value
    return validated


def validate_service(service: str) -> str:
    """Require a non-empty service identifier (e.g., "appmixer:slack")."""
    service = (service or "").strip()
    if not service:
        raise ValidationError("service is required")
    return service


def validate_id(entity_id: str, kind: str) -> str:
    """Require a non-empty remote id before a per-entity request.

    An empty id would address the collection endpoint instead of one entity.
    """
    entity_id = (entity_id or "").strip()
    if not entity_id:
        raise ValidationError(f"{kind} id is required")
    if "/" in entity_id:
        raise ValidationError(f"{kind} id must not contain '/': {entity_id!r}")
    return entity_id
