"""Appmixer user lifecycle operations."""
from __future__ import annotations
import dataclasses
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from appmixer_sync.core import rbac, validators
from appmixer_sync.core.reconciler import ResourceReconciler
from scripts import audit

from .client import AppmixerClient
from .exceptions import (
    AppmixerAPIError,
    AppmixerTransportError,
    IdentityRecoveryError,
    OperationError,
    SelfModificationError,
    UserNotFoundError,
    ValidationError,
)
from .models import UserRecord
from .polling import DeletionPoller

logger = logging.getLogger(__name__)


@contextmanager
def _operation(verb: str, entity_id: str) -> Iterator[None]:
    """Wrap transport failures with the user operation that caused them."""
    try:
        yield
    except (AppmixerAPIError, AppmixerTransportError) as exc:
        raise OperationError("user", verb, entity_id, str(exc)) from exc


class UserService(ResourceReconciler[UserRecord]):
    """Reconciler and collection reader for Appmixer users."""

    kind = "user"
    record_type = UserRecord
    not_found_error = UserNotFoundError

    def __init__(self, client: AppmixerClient, poller: Optional[DeletionPoller] = None):
        """Initialize user service.

        Args:
            client: Authenticated Appmixer client
            poller: Deletion poller (defaults to 30 attempts, 2 seconds apart)
        """
        self.client = client
        self.poller = poller or DeletionPoller(client)

    @property
    def session(self):
        return self.client.session

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def create(self, desired: UserRecord) -> UserRecord:
        """Create a user, recover its id by username, then apply scope/vendor.

        The create endpoint only answers with a session token, so the id is
        looked up afterwards through the pattern search.

        Raises:
            ValidationError: Password too short or username missing
            InsufficientPermissionsError: scope/vendor declared without admin
            IdentityRecoveryError: User created but not found by username, or not
                readable by the recovered id
            OperationError: On transport failure
        """
        username = validators.validate_username(desired.username)
        validators.validate_password(desired.password)
        manages_permissions = desired.scope is not None or desired.vendor is not None
        if manages_permissions:
            rbac.require_admin(self.session, "Setting scope or vendor")

        logger.info("Creating new Appmixer user username=%s email=%s", username, desired.email)
        with _operation("create", username):
            self.client.post(
                "/user",
                json={"email": desired.email, "username": username, "password": desired.password},
            )

        with _operation("create", username):
            match = self.find_by_username(username)
        if match is None:
            raise IdentityRecoveryError(
                f"Failed to find newly created user with username {username}; "
                "the user may exist remotely without being tracked"
            )
        user_id = match.id
        logger.info("Created Appmixer user username=%s id=%s", username, user_id)

        if manages_permissions:
            update = self._permissions_payload(desired.scope, desired.vendor, omit_empty=True)
            if update:
                with _operation("update", user_id):
                    self.client.put(f"/users/{user_id}", json=update)

        audit.safe_log_event(
            "user_create",
            "user",
            user_id,
            operator=self.session.user_id or "system",
            details={"username": username, "scope": desired.scope, "vendor": desired.vendor},
        )

        state = dataclasses.replace(desired, id=user_id, username=username)
        result = self.read(state)
        if not result.id:
            raise IdentityRecoveryError(
                f"User {username} was created with id {user_id} but could not be read back; "
                "the user may exist remotely without being tracked"
            )
        return result

    def read(self, state: UserRecord) -> UserRecord:
        """Refresh a user by id.

        A 404 clears the id instead of raising, so the host treats the user as
        deleted out-of-band.
        """
        user_id = validators.validate_id(state.id, "user")
        logger.debug("Reading Appmixer user user_id=%s", user_id)
        try:
            payload = self.client.get(f"/users/{user_id}")
        except AppmixerAPIError as exc:
            if exc.is_not_found:
                logger.warning("User not found, removing from state user_id=%s", user_id)
                return dataclasses.replace(state, id="")
            raise OperationError("user", "read", user_id, str(exc)) from exc
        except AppmixerTransportError as exc:
            raise OperationError("user", "read", user_id, str(exc)) from exc

        with _operation("read", user_id):
            remote = UserRecord.from_api(payload or {}, password=state.password)
        return dataclasses.replace(remote, id=remote.id or user_id)

    def update(self, state: UserRecord, desired: UserRecord) -> UserRecord:
        """Apply scope, vendor and password changes.

        Raises:
            ValidationError: username change or short password
            SelfModificationError: Changing own scope/vendor/password
            InsufficientPermissionsError: Changing another user without admin
            OperationError: On transport failure
        """
        user_id = validators.validate_id(state.id, "user")
        if desired.username and desired.username != state.username:
            raise ValidationError("username cannot be changed after creation")

        scope_changed = desired.scope is not None and desired.scope != state.scope
        vendor_changed = desired.vendor is not None and desired.vendor != state.vendor
        password_changed = bool(desired.password) and desired.password != state.password
        is_self = rbac.is_self(self.session, user_id)

        logger.info(
            "Updating Appmixer user user_id=%s is_self=%s scope_changed=%s vendor_changed=%s password_changed=%s",
            user_id, is_self, scope_changed, vendor_changed, password_changed,
        )

        if is_self and (scope_changed or vendor_changed):
            raise SelfModificationError("Modifying your own permissions is not allowed for security reasons")
        if is_self and password_changed:
            raise SelfModificationError(
                "Cannot update your own password through the reconciler. Use the Appmixer UI or API directly"
            )
        if scope_changed or vendor_changed or password_changed:
            rbac.require_admin(self.session, "Modifying other users (scope, vendor, or password)")
        if password_changed:
            validators.validate_password(desired.password)

        if scope_changed or vendor_changed:
            update = self._permissions_payload(
                desired.scope if scope_changed else None,
                desired.vendor if vendor_changed else None,
            )
            with _operation("update", user_id):
                self.client.put(f"/users/{user_id}", json=update)
            audit.safe_log_event(
                "user_update",
                "user",
                user_id,
                operator=self.session.user_id or "system",
                details=update,
            )

        password = state.password
        if password_changed:
            email = desired.email or state.email
            logger.debug("Resetting password for user via admin API user_id=%s", user_id)
            with _operation("update", user_id):
                self.client.post("/user/reset-password", json={"email": email, "password": desired.password})
            password = desired.password
            logger.info("Password successfully reset for user via admin API user_id=%s", user_id)
            audit.safe_log_event(
                "user_password_reset",
                "user",
                user_id,
                operator=self.session.user_id or "system",
                details={"email": email},
            )

        return self.read(dataclasses.replace(state, password=password))

    def delete(self, state: UserRecord) -> UserRecord:
        """Delete a user and wait for the background job to complete.

        A user that is already gone (404) counts as deleted.

        Raises:
            SelfModificationError: Deleting own account
            InsufficientPermissionsError: Without admin scope
            DeletionFailedError: Ticket reached failed/cancelled
            DeletionTimeoutError: Ticket did not complete in time
            OperationError: On transport failure
        """
        user_id = validators.validate_id(state.id, "user")
        logger.info("Deleting Appmixer user user_id=%s", user_id)
        if rbac.is_self(self.session, user_id):
            raise SelfModificationError("Deleting your own account is not allowed for security reasons")
        rbac.require_admin(self.session, "Deleting users")

        try:
            payload = self.client.delete(f"/users/{user_id}") or {}
        except AppmixerAPIError as exc:
            if not exc.is_not_found:
                raise OperationError("user", "delete", user_id, str(exc)) from exc
            logger.warning("User already deleted user_id=%s", user_id)
            return dataclasses.replace(state, id="")
        except AppmixerTransportError as exc:
            raise OperationError("user", "delete", user_id, str(exc)) from exc
        ticket = payload.get("ticket") if isinstance(payload, dict) else None
        if not ticket:
            raise OperationError("user", "delete", user_id, "API did not return a deletion ticket")

        with _operation("delete", user_id):
            status = self.poller.wait_for_user_deletion(user_id, ticket)

        audit.safe_log_event(
            "user_delete",
            "user",
            user_id,
            operator=self.session.user_id or "system",
            details={"ticket": ticket, "steps_total": status.steps_total},
        )
        logger.info("Deleted Appmixer user user_id=%s", user_id)
        return dataclasses.replace(state, id="")

    # ─────────────────────────────────────────────────────────────────────
    # Collection readers
    # ─────────────────────────────────────────────────────────────────────

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        """Return the user whose username exactly matches, or None.

        The pattern search is a substring match, so results are filtered.
        """
        users = self.client.get("/users", params={"pattern": username}) or []
        for user in users:
            if user.get("username") == username:
                return UserRecord.from_api(user)
        return None

    def current_user(self) -> UserRecord:
        """Return the user behind the session (GET /user)."""
        with _operation("read", self.session.user_id):
            payload = self.client.get("/user") or {}
        return UserRecord.from_api(payload)

    def list_users(
        self,
        filter: Optional[str] = None,
        pattern: Optional[str] = None,
        sort: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[UserRecord]:
        """List all users (admin only).

        Args:
            filter: Server-side filter expression (e.g., "scope:admin")
            pattern: Substring matched against username and email
            sort: Sort expression (e.g., "created:-1")
            limit: Page size
            offset: Page offset
        """
        rbac.require_admin(self.session, "Listing all users")
        params: Dict[str, Any] = {}
        if filter:
            params["filter"] = filter
        if pattern:
            params["pattern"] = pattern
        if sort:
            params["sort"] = sort
        params["limit"] = limit
        params["offset"] = offset

        with _operation("list", ""):
            users = self.client.get("/users", params=params) or []
        return [UserRecord.from_api(user) for user in users]

    def count_users(self) -> int:
        """Return the total number of users (admin only)."""
        rbac.require_admin(self.session, "Getting user count")
        with _operation("count", ""):
            payload = self.client.get("/users/count") or {}
        return int(payload.get("count", 0))

    @staticmethod
    def _permissions_payload(
        scope: Optional[List[str]],
        vendor: Optional[List[str]],
        omit_empty: bool = False,
    ) -> Dict[str, List[str]]:
        payload: Dict[str, List[str]] = {}
        if scope is not None and (scope or not omit_empty):
            payload["scope"] = list(scope)
        if vendor is not None and (vendor or not omit_empty):
            payload["vendor"] = list(vendor)
        return payload
