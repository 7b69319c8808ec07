"""Command line wrapper around the Appmixer reconcilers.

Every subcommand bootstraps one session from the configured credentials and
prints its result as JSON on stdout. Secrets are redacted from the output.
"""
from __future__ import annotations
import argparse
import dataclasses
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from appmixer_sync.config import AppConfig, load_settings
from appmixer_sync.core.appmixer import (
    AccountNotFoundError,
    AccountRecord,
    AccountService,
    AppmixerClient,
    AppmixerError,
    CatalogService,
    DeletionPoller,
    UserRecord,
    UserService,
    authenticate,
)
from scripts import audit

REDACTED = "***"
SECRET_FIELDS = ("password", "token")


def _parse_token_pairs(pairs: Sequence[str]) -> dict[str, str]:
    """Turn repeated ``KEY=VALUE`` arguments into a credential map."""
    token: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"--token expects KEY=VALUE, got {pair!r}")
        token[key] = value
    return token


def _load_token_file(path: str) -> dict[str, Any]:
    """Read account credentials from a YAML mapping."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping of credential keys")
    return data


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: (REDACTED if key in SECRET_FIELDS and item else _redact(item))
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _emit(result: Any) -> None:
    """Print a record, a list of records or a plain value as JSON."""
    if dataclasses.is_dataclass(result) and not isinstance(result, type):
        result = dataclasses.asdict(result)
    elif isinstance(result, list):
        result = [
            dataclasses.asdict(item) if dataclasses.is_dataclass(item) else item
            for item in result
        ]
    print(json.dumps(_redact(result), indent=2, sort_keys=True, default=_json_default))


def build_parser(config: AppConfig) -> argparse.ArgumentParser:
    """Build the argument parser with defaults taken from ``config``."""
    parser = argparse.ArgumentParser(description="Appmixer users and accounts reconciler")
    parser.add_argument("--api-url", default=config.api_url)
    parser.add_argument("--email", default=config.email)
    parser.add_argument("--password", default=config.password)
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("whoami", help="Show the authenticated identity")

    su = sub.add_parser("users", help="List users (admin)")
    su.add_argument("--filter")
    su.add_argument("--pattern")
    su.add_argument("--sort")
    su.add_argument("--limit", type=int, default=100)
    su.add_argument("--offset", type=int, default=0)

    sub.add_parser("users-count", help="Count users (admin)")

    uc = sub.add_parser("user-create")
    uc.add_argument("--username", required=True)
    uc.add_argument("--email", dest="user_email", required=True)
    uc.add_argument("--password", dest="user_password", required=True)
    uc.add_argument("--scope", nargs="*")
    uc.add_argument("--vendor", nargs="*")

    ug = sub.add_parser("user-get")
    ug.add_argument("--id", required=True)

    uu = sub.add_parser("user-update")
    uu.add_argument("--id", required=True)
    uu.add_argument("--scope", nargs="*")
    uu.add_argument("--vendor", nargs="*")
    uu.add_argument("--password", dest="user_password")

    ud = sub.add_parser("user-delete")
    ud.add_argument("--id", required=True)

    sa = sub.add_parser("accounts", help="List the caller's accounts")
    sa.add_argument("--filter")

    ag = sub.add_parser("account-get")
    ag.add_argument("--id", required=True)

    ac = sub.add_parser("account-create")
    ac.add_argument("--service", required=True)
    ac.add_argument("--display-name")
    ac.add_argument("--token", action="append", default=[], metavar="KEY=VALUE")
    ac.add_argument("--token-file", help="YAML file holding the credential map")

    ar = sub.add_parser("account-rename")
    ar.add_argument("--id", required=True)
    ar.add_argument("--display-name", required=True)

    ad = sub.add_parser("account-delete")
    ad.add_argument("--id", required=True)

    sub.add_parser("apps", help="List the apps catalog")

    sc = sub.add_parser("components")
    sc.add_argument("--app", required=True)

    return parser


def _run(args: argparse.Namespace, config: AppConfig, parser: argparse.ArgumentParser) -> Any:
    session = authenticate(args.api_url, args.email, args.password, timeout=config.request_timeout)
    client = AppmixerClient(session, timeout=config.request_timeout)
    poller = DeletionPoller(
        client,
        max_attempts=config.delete_poll_attempts,
        delay=config.delete_poll_delay,
        backoff=config.delete_poll_backoff,
        timeout=config.delete_timeout,
    )
    users = UserService(client, poller=poller)
    accounts = AccountService(client, read_mode=config.account_read_mode)
    catalog = CatalogService(client)

    if args.cmd == "whoami":
        return session
    if args.cmd == "users":
        return users.list_users(args.filter, args.pattern, args.sort, args.limit, args.offset)
    if args.cmd == "users-count":
        return {"count": users.count_users()}
    if args.cmd == "user-create":
        return users.create(UserRecord(
            username=args.username,
            email=args.user_email,
            password=args.user_password,
            scope=args.scope,
            vendor=args.vendor,
        ))
    if args.cmd == "user-get":
        return users.import_state(args.id)
    if args.cmd == "user-update":
        state = users.import_state(args.id)
        desired = dataclasses.replace(
            state,
            scope=args.scope,
            vendor=args.vendor,
            password=args.user_password or "",
        )
        return users.update(state, desired)
    if args.cmd == "user-delete":
        return users.delete(UserRecord(id=args.id))
    if args.cmd == "accounts":
        return accounts.list_accounts(args.filter)
    if args.cmd == "account-get":
        return accounts.lookup_account(args.id)
    if args.cmd == "account-create":
        token: dict[str, Any] = {}
        try:
            if args.token_file:
                token.update(_load_token_file(args.token_file))
            token.update(_parse_token_pairs(args.token))
        except (OSError, ValueError, yaml.YAMLError) as exc:
            parser.error(str(exc))
        return accounts.create(AccountRecord(
            service=args.service,
            token=token,
            display_name=args.display_name,
        ))
    if args.cmd == "account-rename":
        state = accounts.read(AccountRecord(id=args.id))
        if not state.id:
            raise AccountNotFoundError(f"Account with ID {args.id} not found")
        return accounts.update(state, dataclasses.replace(state, display_name=args.display_name))
    if args.cmd == "account-delete":
        return accounts.delete(AccountRecord(id=args.id))
    if args.cmd == "apps":
        return catalog.list_apps()
    if args.cmd == "components":
        return catalog.list_components(args.app)
    parser.error(f"Unknown command {args.cmd}")


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Command-line entry point."""
    try:
        config = load_settings()
    except RuntimeError as exc:
        print(f"[config] Error: {exc}", file=sys.stderr)
        sys.exit(2)

    parser = build_parser(config)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.cmd:
        parser.print_help()
        return

    missing = [
        name for name, value in (
            ("--api-url", args.api_url),
            ("--email", args.email),
            ("--password", args.password),
        )
        if not value
    ]
    if missing:
        parser.error(f"Missing credentials: {', '.join(missing)} (or APPMIXER_* environment variables)")

    if config.audit_log_dir:
        audit.AUDIT_LOG_DIR = Path(config.audit_log_dir)

    try:
        result = _run(args, config, parser)
    except AppmixerError as e:
        print(f"[{args.cmd}] Error: {e}", file=sys.stderr)
        sys.exit(1)
    _emit(result)


if __name__ == "__main__":
    main()
