"""Records exchanged between the reconcilers and their host.

An empty ``id`` on a returned record means the entity no longer exists
remotely and should be dropped from local state.
"""
from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .exceptions import AppmixerTransportError


@dataclass
class UserRecord:
    """Local state of an Appmixer user.

    ``scope`` and ``vendor`` are None when the caller does not manage them.
    ``password`` is write-only remotely; it only ever holds what was last set.
    """
    id: str = ""
    username: str = ""
    email: str = ""
    password: str = ""
    is_active: bool = False
    plan: dict[str, Any] = field(default_factory=dict)
    scope: Optional[list[str]] = None
    vendor: Optional[list[str]] = None
    created: str = ""

    @classmethod
    def from_api(cls, payload: Mapping[str, Any], password: str = "") -> "UserRecord":
        _require_mapping(payload, "user")
        return cls(
            id=payload.get("id") or "",
            username=payload.get("username") or "",
            email=payload.get("email") or "",
            password=password,
            is_active=bool(payload.get("isActive", False)),
            plan=normalize_plan(payload.get("plan")),
            scope=list(payload.get("scope") or []),
            vendor=list(payload.get("vendor") or []),
            created=payload.get("created") or "",
        )


@dataclass
class AccountRecord:
    """Local state of a service-linked account.

    ``token`` is only ever populated by the caller for creation; reads never
    fill it in.
    """
    id: str = ""
    service: str = ""
    token: dict[str, Any] = field(default_factory=dict, repr=False)
    display_name: Optional[str] = None
    name: str = ""
    user_id: str = ""
    profile_info: dict[str, str] = field(default_factory=dict)
    icon: str = ""
    label: str = ""

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "AccountRecord":
        _require_mapping(payload, "account")
        display_name = payload.get("displayName")
        return cls(
            id=payload.get("accountId") or "",
            service=payload.get("service") or "",
            display_name=display_name if display_name is not None else "",
            name=payload.get("name") or "",
            user_id=payload.get("userId") or "",
            profile_info=stringify_values(payload.get("profileInfo")),
            icon=payload.get("icon") or "",
            label=payload.get("label") or "",
        )


@dataclass(frozen=True)
class DeletionStatus:
    """Progress of an asynchronous deletion ticket."""
    entity_id: str
    ticket: str
    status: str
    steps_done: int = 0
    steps_total: int = 0

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_completed(self) -> bool:
        return self.status == self.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status in (self.FAILED, self.CANCELLED)

    @classmethod
    def from_api(cls, entity_id: str, ticket: str, payload: Mapping[str, Any]) -> "DeletionStatus":
        _require_mapping(payload, "deletion status")
        try:
            steps_done = int(payload.get("stepsDone") or 0)
            steps_total = int(payload.get("stepsTotal") or 0)
        except (TypeError, ValueError) as exc:
            raise AppmixerTransportError(f"invalid deletion progress counters for ticket {ticket}: {exc}") from exc
        return cls(
            entity_id=entity_id,
            ticket=ticket,
            status=str(payload.get("status") or cls.PENDING),
            steps_done=steps_done,
            steps_total=steps_total,
        )


@dataclass(frozen=True)
class App:
    """Catalog entry from GET /apps."""
    name: str
    label: str = ""
    category: str = ""
    description: str = ""
    icon: str = ""


@dataclass(frozen=True)
class Component:
    """Component manifest from GET /apps/components.

    Nested structures with a variable shape are kept as JSON strings.
    """
    name: str
    author: str = ""
    icon: str = ""
    description: str = ""
    auth: dict[str, str] = field(default_factory=dict)
    in_ports_json: str = ""
    out_ports_json: str = ""
    properties_json: str = ""
    webhook: bool = False
    webhook_async: bool = False
    http_request_methods: list[str] = field(default_factory=list)
    state: dict[str, str] = field(default_factory=dict)
    private: bool = False

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Component":
        return cls(
            name=payload.get("name") or "",
            author=payload.get("author") or "",
            icon=payload.get("icon") or "",
            description=payload.get("description") or "",
            auth=stringify_values(payload.get("auth")),
            in_ports_json=_raw_json(payload.get("inPorts")),
            out_ports_json=_raw_json(payload.get("outPorts")),
            properties_json=_raw_json(payload.get("properties")),
            webhook=bool(payload.get("webhook", False)),
            webhook_async=bool(payload.get("webhookAsync", False)),
            http_request_methods=list(payload.get("httpRequestMethods") or []),
            state=stringify_values(payload.get("state")),
            private=bool(payload.get("private", False)),
        )


def _require_mapping(payload: Any, kind: str) -> None:
    if not isinstance(payload, Mapping):
        raise AppmixerTransportError(
            f"expected a JSON object for {kind}, got {type(payload).__name__}"
        )


def normalize_plan(plan: Any) -> dict[str, Any]:
    """Normalize the wire ``plan`` (object or bare string) into a mapping."""
    if isinstance(plan, Mapping):
        return dict(plan)
    if isinstance(plan, str):
        return {"name": plan}
    return {}


def stringify_values(values: Any) -> dict[str, str]:
    """Coerce every value of a free-form map to its string representation."""
    if not isinstance(values, Mapping):
        return {}
    result: dict[str, str] = {}
    for key, value in values.items():
        result[str(key)] = value if isinstance(value, str) else _format_value(value)
    return result


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def _raw_json(value: Any) -> str:
    if value is None:
        return ""
    return json.dumps(value)
