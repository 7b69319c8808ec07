"""Unit tests for the reconciliation audit trail."""

import json

import pytest

from appmixer_sync.core.appmixer import AccountRecord, AccountService
from scripts import audit


@pytest.fixture
def temp_audit_dir(monkeypatch, tmp_path):
    """Provide isolated audit directory for each test."""
    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "reconcile-events.jsonl"

    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)

    # Set signing key for tests (loaded by _get_signing_key() from environment)
    monkeypatch.delenv("AUDIT_LOG_SIGNING_KEY_FILE", raising=False)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")

    yield audit_dir, audit_file


def test_disabled_audit_writes_nothing(tmp_path):
    """Without a directory the trail is off."""
    assert audit.audit_log_file() is None
    assert audit.log_event("user_create", "user", "u1") is False
    assert list(tmp_path.iterdir()) == []


def test_log_event_creates_file_with_restricted_permissions(temp_audit_dir):
    audit_dir, audit_file = temp_audit_dir

    assert audit.log_event("user_create", "user", "u1", operator="admin-1", details={"username": "alice"})

    assert audit_file.exists()
    assert audit_file.stat().st_mode & 0o777 == 0o600
    assert audit_dir.stat().st_mode & 0o777 == 0o700


def test_log_event_writes_signed_json(temp_audit_dir):
    _, audit_file = temp_audit_dir

    audit.log_event("account_delete", "account", "a1", operator="admin-1")

    event = json.loads(audit_file.read_text().splitlines()[0])
    assert event["event_type"] == "account_delete"
    assert event["entity_kind"] == "account"
    assert event["entity_id"] == "a1"
    assert event["operator"] == "admin-1"
    assert event["success"] is True
    assert event["details"] == {}
    assert "timestamp" in event
    assert "signature" in event


def test_verify_audit_log_with_valid_signatures(temp_audit_dir):
    for i in range(3):
        audit.log_event("user_delete", "user", f"u{i}", operator="test")

    assert audit.verify_audit_log() == (3, 3)


def test_verify_audit_log_detects_tampering(temp_audit_dir):
    _, audit_file = temp_audit_dir
    audit.log_event("user_update", "user", "u1", operator="test", details={"scope": ["user"]})

    event = json.loads(audit_file.read_text().splitlines()[0])
    event["details"] = {"scope": ["user", "admin"]}
    audit_file.write_text(json.dumps(event) + "\n")

    assert audit.verify_audit_log() == (1, 0)


def test_log_event_without_signing_key(temp_audit_dir, monkeypatch):
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "")
    _, audit_file = temp_audit_dir

    audit.log_event("user_create", "user", "u1")

    event = json.loads(audit_file.read_text().splitlines()[0])
    assert "signature" not in event
    assert audit.verify_event(event) is False


def test_signing_key_file_takes_priority(temp_audit_dir, monkeypatch, tmp_path):
    key_file = tmp_path / "audit_key"
    key_file.write_text("file-key\n")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY_FILE", str(key_file))

    assert audit._get_signing_key() == b"file-key"


def test_safe_log_event_never_raises(temp_audit_dir, mocker, capsys):
    mocker.patch.object(audit, "log_event", side_effect=OSError("disk full"))

    assert audit.safe_log_event("user_create", "user", "u1") is False
    assert "[audit] Failed to log user_create for user u1: disk full" in capsys.readouterr().err


def test_account_mutations_are_audited(temp_audit_dir, fake_api, admin_client):
    _, audit_file = temp_audit_dir
    fake_api.add("POST", "/accounts", (200, {"accountId": "a1"}))
    fake_api.add("DELETE", "/accounts/a1", (200, None))
    service = AccountService(admin_client)

    created = service.create(AccountRecord(service="svc", token={"apiKey": "k"}, display_name="D"))
    service.delete(created)

    events = [json.loads(line) for line in audit_file.read_text().splitlines()]
    assert [e["event_type"] for e in events] == ["account_create", "account_delete"]
    assert all(e["operator"] == "admin-1" for e in events)
    assert "apiKey" not in audit_file.read_text()
