"""Appmixer-specific exceptions for error handling."""
from __future__ import annotations

import json
from typing import Optional


class AppmixerError(Exception):
    """Base exception for all Appmixer operations."""
    pass


class ValidationError(AppmixerError):
    """Local validation failed - no request was sent."""
    pass


class SelfModificationError(ValidationError):
    """Operation targets the caller's own identity and is refused."""
    pass


class InsufficientPermissionsError(AppmixerError):
    """Session lacks the scope required for the operation."""
    pass


class AuthenticationError(AppmixerError):
    """Session bootstrap failed.

    Attributes:
        status_code: HTTP status code (None when no request was made)
        body: Raw response text
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class AppmixerTransportError(AppmixerError):
    """Network failure or undecodable response body."""
    pass


class AppmixerAPIError(AppmixerError):
    """Non-2xx response from the Appmixer API.

    Attributes:
        status_code: HTTP status code
        message: Message extracted from the error body
        endpoint: API endpoint that failed
        method: HTTP method
        body: Raw response body
    """

    def __init__(self, status_code: int, message: str, endpoint: str, method: str = "", body: bytes = b""):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        self.method = method
        self.body = body or b""
        super().__init__(f"API request failed with status {status_code}: {message}")

    @property
    def body_status(self) -> Optional[int]:
        """Status code carried in the JSON error body (``statusCode``), if any."""
        try:
            payload = json.loads(self.body)
        except (TypeError, ValueError):
            return None
        if not isinstance(payload, dict):
            return None
        status = payload.get("statusCode")
        if isinstance(status, (int, float)) and not isinstance(status, bool):
            return int(status)
        return None

    @property
    def is_not_found(self) -> bool:
        if self.status_code == 404 or self.body_status == 404:
            return True
        # Weak fallback for gateways that rewrite the status line.
        return "status 404" in self.message.lower()


class OperationError(AppmixerError):
    """Transport failure wrapped with the reconciler operation that caused it.

    Attributes:
        kind: Entity kind ("user", "account", ...)
        verb: Operation ("create", "read", ...)
        entity_id: Entity identifier or name (may be empty)
    """

    def __init__(self, kind: str, verb: str, entity_id: str, detail: str):
        self.kind = kind
        self.verb = verb
        self.entity_id = entity_id
        self.detail = detail
        target = f"{kind} {entity_id}" if entity_id else kind
        super().__init__(f"failed to {verb} {target}: {detail}")

    @property
    def status_code(self) -> Optional[int]:
        cause = self.__cause__
        return getattr(cause, "status_code", None)


class AccountCredentialsError(OperationError):
    """Account creation rejected the supplied token credentials."""
    pass


class NotFoundError(AppmixerError):
    """Entity does not exist remotely."""
    pass


class UserNotFoundError(NotFoundError):
    """User lookup failed - id or username does not exist."""
    pass


class AccountNotFoundError(NotFoundError):
    """Account lookup failed - account id does not exist."""
    pass


class IdentityRecoveryError(AppmixerError):
    """Entity was written remotely but its id could not be resolved."""
    pass


class DeletionFailedError(AppmixerError):
    """Asynchronous deletion reached a terminal failure status."""

    def __init__(self, entity_id: str, status: str):
        self.entity_id = entity_id
        self.status = status
        super().__init__(f"deletion of {entity_id} failed with status: {status}")


class DeletionTimeoutError(AppmixerError):
    """Asynchronous deletion did not reach a terminal status in time."""

    def __init__(self, entity_id: str, ticket: str, attempts: int, last_status: str = ""):
        self.entity_id = entity_id
        self.ticket = ticket
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            f"deletion of {entity_id} (ticket {ticket}) still {last_status or 'pending'} "
            f"after {attempts} status checks"
        )
