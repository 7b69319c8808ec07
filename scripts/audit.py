"""Audit logging utilities for reconciliation mutations."""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import os
import sys
from pathlib import Path
from typing import Any, Literal, Optional

_audit_dir_env = os.environ.get("APPMIXER_AUDIT_LOG_DIR", "")
AUDIT_LOG_DIR: Optional[Path] = Path(_audit_dir_env) if _audit_dir_env else None
AUDIT_LOG_FILENAME = "reconcile-events.jsonl"

EventType = Literal[
    "user_create", "user_update", "user_password_reset", "user_delete",
    "account_create", "account_update", "account_delete",
]


def _get_signing_key() -> bytes:
    """Get the audit signing key (loaded lazily so tests can override the environment)."""
    key_file = os.environ.get("AUDIT_LOG_SIGNING_KEY_FILE")
    if key_file:
        path = Path(key_file)
        if path.exists():
            try:
                return path.read_text(encoding="utf-8").strip().encode("utf-8")
            except OSError:
                pass
    if "AUDIT_LOG_SIGNING_KEY" in os.environ:
        return os.environ.get("AUDIT_LOG_SIGNING_KEY", "").strip().encode("utf-8")
    demo_default = os.environ.get("AUDIT_LOG_SIGNING_KEY_DEMO", "demo-audit-signing-key-change-in-production")
    return demo_default.encode("utf-8")


def audit_log_file() -> Optional[Path]:
    """Return the JSONL audit file, or None when auditing is disabled."""
    if AUDIT_LOG_DIR is None:
        return None
    return AUDIT_LOG_DIR / AUDIT_LOG_FILENAME


def _ensure_audit_dir(audit_dir: Path) -> None:
    """Create audit directory with restricted permissions."""
    audit_dir.mkdir(parents=True, exist_ok=True)
    audit_dir.chmod(0o700)


def _sign_event(event: dict[str, Any]) -> str:
    """Generate HMAC-SHA256 signature for audit event."""
    signing_key = _get_signing_key()
    if not signing_key:
        return ""
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def log_event(
    event_type: EventType,
    entity_kind: str,
    entity_id: str,
    *,
    operator: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> bool:
    """Append a mutation event to the audit trail with timestamp and signature.

    Args:
        event_type: Type of mutation (user_create, account_delete, ...)
        entity_kind: "user" or "account"
        entity_id: Remote identifier of the affected entity
        operator: Identity of the session that performed the mutation
        details: Additional context (never secrets)
        success: Whether the operation succeeded

    Returns:
        True if the event was written, False when auditing is disabled
    """
    audit_file = audit_log_file()
    if audit_file is None:
        return False
    _ensure_audit_dir(audit_file.parent)

    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "event_type": event_type,
        "entity_kind": entity_kind,
        "entity_id": entity_id,
        "operator": operator,
        "success": success,
        "details": details or {},
    }

    signature = _sign_event(event)
    if signature:
        event["signature"] = signature

    with audit_file.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")

    audit_file.chmod(0o600)
    return True


def safe_log_event(
    event_type: EventType,
    entity_kind: str,
    entity_id: str,
    *,
    operator: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> bool:
    """Log an event without ever raising.

    Audit failures must not turn a completed remote mutation into a failed
    reconciliation; they are reported on stderr instead.

    Returns:
        True if the event was written, False otherwise
    """
    try:
        return log_event(
            event_type,
            entity_kind,
            entity_id,
            operator=operator,
            details=details,
            success=success,
        )
    except Exception as exc:
        print(f"[audit] Failed to log {event_type} for {entity_kind} {entity_id}: {exc}", file=sys.stderr)
        return False


def verify_event(event: dict[str, Any]) -> bool:
    """Verify the HMAC signature of a single audit event."""
    if "signature" not in event:
        return False
    unsigned = {k: v for k, v in event.items() if k != "signature"}
    expected = _sign_event(unsigned)
    return bool(expected) and hmac.compare_digest(expected, event["signature"])


def verify_audit_log(audit_file: Optional[Path] = None) -> tuple[int, int]:
    """Verify all signatures in the audit log.

    Returns:
        Tuple of (total_events, valid_signatures)
    """
    audit_file = audit_file or audit_log_file()
    if audit_file is None or not audit_file.exists():
        return 0, 0

    total = 0
    valid = 0

    with audit_file.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                continue
            if verify_event(event):
                valid += 1

    return total, valid


if __name__ == "__main__":
    total, valid = verify_audit_log()
    print(f"Audit log: {valid}/{total} events with valid signatures")
    sys.exit(0 if total == valid else 1)
