"""Appmixer API client library.

Architecture:
- client.py: Session bootstrap and authenticated HTTP transport
- users.py: User reconciler (create/read/update/delete/import) and user listings
- accounts.py: Account reconciler and account listings
- polling.py: Deletion ticket poller used by user deletion
- catalog.py: Apps and component manifests (read-only)
- models.py: Records returned to the host
- exceptions.py: Typed exceptions for error handling

Usage:
    from appmixer_sync.core.appmixer import AppmixerClient, UserService, UserRecord, authenticate

    session = authenticate("https://api.appmixer.example", "admin@example.com", "secret")
    client = AppmixerClient(session)

    users = UserService(client)
    alice = users.create(UserRecord(username="alice", email="alice@example.com", password="secret"))
"""
from .client import (
    AppmixerClient,
    Session,
    authenticate,
    REQUEST_TIMEOUT,
)
from .exceptions import (
    AppmixerError,
    AppmixerAPIError,
    AppmixerTransportError,
    AuthenticationError,
    ValidationError,
    SelfModificationError,
    InsufficientPermissionsError,
    OperationError,
    AccountCredentialsError,
    NotFoundError,
    UserNotFoundError,
    AccountNotFoundError,
    IdentityRecoveryError,
    DeletionFailedError,
    DeletionTimeoutError,
)
from .models import (
    UserRecord,
    AccountRecord,
    DeletionStatus,
    App,
    Component,
)
from .polling import DeletionPoller
from .users import UserService
from .accounts import AccountService, READ_MODE_DIRECT, READ_MODE_LIST
from .catalog import CatalogService

__all__ = [
    # Client
    "AppmixerClient",
    "Session",
    "authenticate",
    "REQUEST_TIMEOUT",

    # Exceptions
    "AppmixerError",
    "AppmixerAPIError",
    "AppmixerTransportError",
    "AuthenticationError",
    "ValidationError",
    "SelfModificationError",
    "InsufficientPermissionsError",
    "OperationError",
    "AccountCredentialsError",
    "NotFoundError",
    "UserNotFoundError",
    "AccountNotFoundError",
    "IdentityRecoveryError",
    "DeletionFailedError",
    "DeletionTimeoutError",

    # Records
    "UserRecord",
    "AccountRecord",
    "DeletionStatus",
    "App",
    "Component",

    # Services
    "DeletionPoller",
    "UserService",
    "AccountService",
    "CatalogService",
    "READ_MODE_DIRECT",
    "READ_MODE_LIST",
]
