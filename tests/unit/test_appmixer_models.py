"""Unit tests for record mapping from API payloads."""
import json

import pytest

from appmixer_sync.core.appmixer import (
    AccountRecord,
    AppmixerTransportError,
    Component,
    DeletionStatus,
    UserRecord,
)
from appmixer_sync.core.appmixer.models import normalize_plan, stringify_values


@pytest.mark.parametrize(
    "plan, expected",
    [
        ({"name": "pro", "limit": 10}, {"name": "pro", "limit": 10}),
        ("free", {"name": "free"}),
        (None, {}),
        (42, {}),
    ],
)
def test_normalize_plan(plan, expected):
    assert normalize_plan(plan) == expected


def test_stringify_values():
    result = stringify_values({"a": "x", "b": 7, "c": True, "d": None, "e": {"z": 1, "y": 2}, "f": [1, 2]})
    assert result == {
        "a": "x",
        "b": "7",
        "c": "true",
        "d": "",
        "e": '{"y": 2, "z": 1}',
        "f": "[1, 2]",
    }
    assert stringify_values(None) == {}


def test_user_record_from_api_defaults():
    user = UserRecord.from_api({"id": "u1", "username": "alice", "plan": "free"}, password="secret")
    assert user.id == "u1"
    assert user.password == "secret"
    assert user.plan == {"name": "free"}
    assert user.scope == []
    assert user.vendor == []
    assert user.is_active is False


def test_account_record_from_api_never_fills_token():
    account = AccountRecord.from_api({
        "accountId": "a1",
        "service": "appmixer:slack",
        "displayName": None,
        "userId": "u1",
        "profileInfo": {"id": 5, "verified": False},
        "token": {"accessToken": "leak"},
    })
    assert account.id == "a1"
    assert account.display_name == ""
    assert account.user_id == "u1"
    assert account.profile_info == {"id": "5", "verified": "false"}
    assert account.token == {}
    assert "leak" not in repr(account)


def test_deletion_status_from_api():
    status = DeletionStatus.from_api("u1", "t1", {"status": "completed", "stepsDone": 3, "stepsTotal": 3})
    assert status.is_completed is True
    assert status.is_failed is False
    assert status.steps_total == 3

    unknown = DeletionStatus.from_api("u1", "t1", {})
    assert unknown.status == DeletionStatus.PENDING
    assert DeletionStatus("u1", "t1", "cancelled").is_failed is True


def test_component_from_api_keeps_nested_structures_as_json():
    component = Component.from_api({
        "name": "appmixer.slack.SendMessage",
        "author": "Appmixer",
        "auth": {"service": "appmixer:slack", "scope": ["chat:write"]},
        "inPorts": [{"name": "in"}],
        "webhookAsync": True,
        "httpRequestMethods": ["POST"],
        "state": {"persistent": True},
    })
    assert component.auth == {"service": "appmixer:slack", "scope": '["chat:write"]'}
    assert json.loads(component.in_ports_json) == [{"name": "in"}]
    assert component.out_ports_json == ""
    assert component.properties_json == ""
    assert component.webhook_async is True
    assert component.http_request_methods == ["POST"]
    assert component.state == {"persistent": "true"}


def test_deletion_status_rejects_non_numeric_counters():
    with pytest.raises(AppmixerTransportError, match="invalid deletion progress counters"):
        DeletionStatus.from_api("u1", "t1", {"status": "pending", "stepsDone": "lots"})


@pytest.mark.parametrize("record_type", [UserRecord, AccountRecord])
def test_records_reject_non_object_payloads(record_type):
    with pytest.raises(AppmixerTransportError, match="expected a JSON object"):
        record_type.from_api([{"id": "u1"}])
