"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

ACCOUNT_READ_MODES = ("direct", "list")


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.debug("Loaded %s from /run/secrets", secret_name)
                return secret_value
        except OSError as exc:
            logger.warning("Failed to read /run/secrets/%s: %s", secret_name, exc)

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            logger.debug("Loaded %s from environment (fallback)", env_var)
            return secret_value

    return None


def _get_number(var_name: str, default: float, minimum: float = 0, integer: bool = False) -> float:
    """Read a numeric environment variable, failing loudly on garbage."""
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw) if integer else float(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be a number, got {raw!r}")
    if value < minimum:
        raise RuntimeError(f"Environment variable {var_name} must be >= {minimum}, got {raw!r}")
    return value


@dataclass
class AppConfig:
    """Application configuration container."""
    # Bootstrap credentials
    api_url: str = ""
    email: str = ""
    password: str = ""

    # Transport
    request_timeout: float = 10.0

    # Deletion polling
    delete_poll_attempts: int = 30
    delete_poll_delay: float = 2.0
    delete_poll_backoff: float = 1.0
    delete_timeout: Optional[float] = None

    # Accounts
    account_read_mode: str = "direct"

    # Audit
    audit_log_dir: str = ""

    def missing_credentials(self) -> list[str]:
        """Return the names of the bootstrap settings that are empty."""
        missing = []
        if not self.api_url:
            missing.append("APPMIXER_API_URL")
        if not self.email:
            missing.append("APPMIXER_EMAIL")
        if not self.password:
            missing.append("APPMIXER_PASSWORD")
        return missing


def load_settings() -> AppConfig:
    """Load settings from environment and /run/secrets.

    Credentials may be empty here; they are only required when a session is
    bootstrapped (see AppConfig.missing_credentials).
    """
    password = _load_secret_from_file("appmixer_password", "APPMIXER_PASSWORD") or ""

    account_read_mode = os.environ.get("APPMIXER_ACCOUNT_READ_MODE", "direct").strip().lower() or "direct"
    if account_read_mode not in ACCOUNT_READ_MODES:
        raise RuntimeError(
            f"APPMIXER_ACCOUNT_READ_MODE must be one of {', '.join(ACCOUNT_READ_MODES)}, got {account_read_mode!r}"
        )

    delete_timeout_raw = os.environ.get("APPMIXER_DELETE_TIMEOUT", "").strip()
    delete_timeout = _get_number("APPMIXER_DELETE_TIMEOUT", 0) if delete_timeout_raw else None

    config = AppConfig(
        api_url=os.environ.get("APPMIXER_API_URL", "").strip().rstrip("/"),
        email=os.environ.get("APPMIXER_EMAIL", "").strip(),
        password=password,
        request_timeout=_get_number("APPMIXER_REQUEST_TIMEOUT", 10.0, minimum=0.1),
        delete_poll_attempts=int(_get_number("APPMIXER_DELETE_POLL_ATTEMPTS", 30, minimum=1, integer=True)),
        delete_poll_delay=_get_number("APPMIXER_DELETE_POLL_DELAY", 2.0),
        delete_poll_backoff=_get_number("APPMIXER_DELETE_POLL_BACKOFF", 1.0, minimum=1),
        delete_timeout=delete_timeout,
        account_read_mode=account_read_mode,
        audit_log_dir=os.environ.get("APPMIXER_AUDIT_LOG_DIR", "").strip(),
    )

    logger.debug(
        "Settings loaded api_url=%s email=%s password=%s account_read_mode=%s",
        config.api_url or "<unset>",
        config.email or "<unset>",
        "***" if config.password else "EMPTY",
        config.account_read_mode,
    )
    return config
