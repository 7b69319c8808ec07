"""Appmixer account (service connection) operations."""
from __future__ import annotations
import dataclasses
import logging
from typing import Any, Dict, List, Optional

from appmixer_sync.core import validators
from appmixer_sync.core.reconciler import ResourceReconciler
from scripts import audit

from .client import AppmixerClient
from .exceptions import (
    AccountCredentialsError,
    AccountNotFoundError,
    AppmixerAPIError,
    AppmixerTransportError,
    IdentityRecoveryError,
    OperationError,
    ValidationError,
)
from .models import AccountRecord

READ_MODE_DIRECT = "direct"
READ_MODE_LIST = "list"

logger = logging.getLogger(__name__)


def classify_create_error(service: str, exc: AppmixerAPIError) -> OperationError:
    """Turn a failed POST /accounts into an actionable error.

    The API only reports credential problems in free text, so the message is
    inspected for the known phrases.
    """
    text = exc.message or str(exc)
    if "Credentials validation failed" in text or "Invalid credentials" in text:
        return AccountCredentialsError(
            "account", "create", service,
            "Invalid credentials provided in the 'token' attribute. Please check the required keys "
            f"and values for this service type. Original error: {exc}",
        )
    if "missing" in text and "required key" in text:
        return AccountCredentialsError(
            "account", "create", service,
            "Missing required key in the 'token' attribute. Please check the required keys for "
            f"this service type. Original error: {exc}",
        )
    return OperationError("account", "create", service, str(exc))


class AccountService(ResourceReconciler[AccountRecord]):
    """Reconciler and collection reader for Appmixer accounts."""

    kind = "account"
    record_type = AccountRecord
    not_found_error = AccountNotFoundError

    def __init__(self, client: AppmixerClient, read_mode: str = READ_MODE_DIRECT):
        """Initialize account service.

        Args:
            client: Authenticated Appmixer client
            read_mode: "direct" (GET /accounts/<id>) or "list" (GET /accounts and filter)
        """
        if read_mode not in (READ_MODE_DIRECT, READ_MODE_LIST):
            raise ValueError(f"unknown account read mode: {read_mode}")
        self.client = client
        self.read_mode = read_mode

    def create(self, desired: AccountRecord) -> AccountRecord:
        """Create an account from service credentials.

        No read follows: computed fields (name, profile_info, ...) fill in on
        the next read, which also tolerates read-after-write lag.

        Raises:
            ValidationError: Missing service or non-string token value
            AccountCredentialsError: Credentials rejected by the service
            IdentityRecoveryError: No accountId in the response
            OperationError: On any other transport failure
        """
        service = validators.validate_service(desired.service)
        token = validators.validate_token_map(desired.token)

        logger.info("Creating new Appmixer account service=%s", service)
        payload: Dict[str, Any] = {"service": service, "token": token}
        if desired.display_name:
            payload["displayName"] = desired.display_name

        try:
            response = self.client.post("/accounts", json=payload) or {}
        except AppmixerAPIError as exc:
            raise classify_create_error(service, exc) from exc
        except AppmixerTransportError as exc:
            raise OperationError("account", "create", service, str(exc)) from exc

        account_id = response.get("accountId") if isinstance(response, dict) else None
        if not account_id:
            raise IdentityRecoveryError(
                f"API did not return an accountId after creating the account for service {service}"
            )
        logger.info("Successfully received account ID from creation POST account_id=%s service=%s", account_id, service)

        audit.safe_log_event(
            "account_create",
            "account",
            account_id,
            operator=self.client.session.user_id or "system",
            details={"service": service, "display_name": desired.display_name},
        )
        return AccountRecord(
            id=account_id,
            service=service,
            display_name=desired.display_name,
        )

    def read(self, state: AccountRecord) -> AccountRecord:
        """Refresh an account. A missing account clears the id."""
        account_id = validators.validate_id(state.id, "account")
        if self.read_mode == READ_MODE_LIST:
            remote = self._find_in_list(account_id)
        else:
            remote = self._fetch(account_id)

        if remote is None:
            logger.warning("Account not found, removing from state account_id=%s", account_id)
            return dataclasses.replace(state, id="")
        return dataclasses.replace(remote, id=remote.id or account_id)

    def update(self, state: AccountRecord, desired: AccountRecord) -> AccountRecord:
        """Update the display name, the only mutable field.

        The token is never read back, so it cannot be diffed here; hosts must
        recreate the account to rotate credentials.

        Raises:
            ValidationError: service change requested
            OperationError: On transport failure
        """
        account_id = validators.validate_id(state.id, "account")
        if desired.service and state.service and desired.service != state.service:
            raise ValidationError("service cannot be changed after creation")

        logger.info("Updating Appmixer account account_id=%s", account_id)
        if desired.display_name is not None and desired.display_name != state.display_name:
            logger.debug("Updating display name for account account_id=%s display_name=%s", account_id, desired.display_name)
            try:
                self.client.put(f"/accounts/{account_id}", json={"displayName": desired.display_name})
            except (AppmixerAPIError, AppmixerTransportError) as exc:
                raise OperationError("account", "update display_name for", account_id, str(exc)) from exc
            audit.safe_log_event(
                "account_update",
                "account",
                account_id,
                operator=self.client.session.user_id or "system",
                details={"display_name": desired.display_name},
            )
        else:
            logger.debug("No detectable changes requiring API update for account account_id=%s", account_id)

        return self.read(state)

    def delete(self, state: AccountRecord) -> AccountRecord:
        """Delete an account synchronously. An already-deleted account is success."""
        account_id = validators.validate_id(state.id, "account")
        logger.info("Deleting Appmixer account account_id=%s", account_id)
        try:
            self.client.execute("DELETE", f"/accounts/{account_id}")
        except AppmixerAPIError as exc:
            if not exc.is_not_found:
                raise OperationError("account", "delete", account_id, str(exc)) from exc
            logger.warning("Account already deleted account_id=%s", account_id)
            return dataclasses.replace(state, id="")
        except AppmixerTransportError as exc:
            raise OperationError("account", "delete", account_id, str(exc)) from exc

        audit.safe_log_event(
            "account_delete",
            "account",
            account_id,
            operator=self.client.session.user_id or "system",
        )
        logger.info("Successfully deleted account account_id=%s", account_id)
        return dataclasses.replace(state, id="")

    # ─────────────────────────────────────────────────────────────────────
    # Collection readers
    # ─────────────────────────────────────────────────────────────────────

    def list_accounts(self, filter: Optional[str] = None) -> List[AccountRecord]:
        """List the caller's accounts, optionally filtered server-side."""
        params = {"filter": filter} if filter else None
        try:
            accounts = self.client.get("/accounts", params=params) or []
        except (AppmixerAPIError, AppmixerTransportError) as exc:
            raise OperationError("account", "list", "", str(exc)) from exc
        return [AccountRecord.from_api(acc) for acc in accounts]

    def lookup_account(self, account_id: str) -> AccountRecord:
        """Fetch one account by id for a read-only lookup.

        Raises:
            AccountNotFoundError: If the account does not exist
            ValidationError: If account_id is empty
        """
        account_id = validators.validate_id(account_id, "account")
        account = self._fetch(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account with ID {account_id} not found")
        return account

    def _fetch(self, account_id: str) -> Optional[AccountRecord]:
        logger.debug("Reading Appmixer account account_id=%s", account_id)
        try:
            payload = self.client.get(f"/accounts/{account_id}")
        except AppmixerAPIError as exc:
            if exc.is_not_found:
                return None
            raise OperationError("account", "read", account_id, str(exc)) from exc
        except AppmixerTransportError as exc:
            raise OperationError("account", "read", account_id, str(exc)) from exc
        try:
            return AccountRecord.from_api(payload or {})
        except AppmixerTransportError as exc:
            raise OperationError("account", "read", account_id, str(exc)) from exc

    def _find_in_list(self, account_id: str) -> Optional[AccountRecord]:
        logger.debug("Reading Appmixer account by listing all accounts target_account_id=%s", account_id)
        try:
            accounts = self.client.get("/accounts") or []
        except (AppmixerAPIError, AppmixerTransportError) as exc:
            raise OperationError("account", "read", account_id, f"failed to list accounts: {exc}") from exc
        for acc in accounts:
            if isinstance(acc, dict) and acc.get("accountId") == account_id:
                return AccountRecord.from_api(acc)
        return None
