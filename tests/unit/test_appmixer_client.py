"""Unit tests for the authenticated Appmixer transport."""
import json

import pytest
import requests

from appmixer_sync.core.appmixer import (
    AppmixerAPIError,
    AppmixerClient,
    AppmixerTransportError,
    Session,
)
from appmixer_sync.core.appmixer.exceptions import OperationError

BASE_URL = "https://api.appmixer.test"


def test_post_sends_bearer_token_and_json_body(fake_api, admin_client):
    fake_api.add("POST", "/things", (200, {"ok": True}))

    result = admin_client.post("/things", json={"name": "a"})

    assert result == {"ok": True}
    call = fake_api.calls[0]
    assert call.headers["Authorization"] == "Bearer admin-token"
    assert call.headers["Content-Type"] == "application/json"
    assert call.body == {"name": "a"}
    assert call.timeout == 10


def test_get_without_body_omits_content_type(fake_api, admin_client):
    fake_api.add("GET", "/users", (200, []))

    admin_client.get("/users", params={"pattern": "al"})

    call = fake_api.calls[0]
    assert call.body is None
    assert "Content-Type" not in call.headers
    assert call.params == {"pattern": "al"}


def test_empty_token_sends_no_authorization_header(fake_api):
    client = AppmixerClient(Session(base_url=BASE_URL, token=""))
    fake_api.add("GET", "/apps", (200, {}))

    client.get("/apps")

    assert "Authorization" not in fake_api.calls[0].headers


def test_custom_timeout_is_forwarded(fake_api, admin_session):
    client = AppmixerClient(admin_session, timeout=3.5)
    fake_api.add("GET", "/user", (200, {}))

    client.get("/user")

    assert fake_api.calls[0].timeout == 3.5


def test_empty_response_body_decodes_to_none(fake_api, admin_client):
    fake_api.add("DELETE", "/accounts/a1", (204, None))

    assert admin_client.delete("/accounts/a1") is None


def test_invalid_json_body_raises_transport_error(fake_api, admin_client):
    fake_api.add("GET", "/user", (200, b"<html>oops</html>"))

    with pytest.raises(AppmixerTransportError):
        admin_client.get("/user")


def test_error_message_extracted_from_message_field(fake_api, admin_client):
    fake_api.add("GET", "/users/u1", (400, {"message": "bad thing"}))

    with pytest.raises(AppmixerAPIError) as exc_info:
        admin_client.get("/users/u1")

    exc = exc_info.value
    assert exc.status_code == 400
    assert exc.message == "bad thing"
    assert exc.method == "GET"
    assert exc.endpoint == f"{BASE_URL}/users/u1"
    assert exc.body == json.dumps({"message": "bad thing"}).encode("utf-8")
    assert str(exc) == "API request failed with status 400: bad thing"


def test_error_message_falls_back_to_error_field(fake_api, admin_client):
    fake_api.add("PUT", "/users/u1", (403, {"error": "forbidden"}))

    with pytest.raises(AppmixerAPIError) as exc_info:
        admin_client.put("/users/u1", json={"scope": ["user"]})

    assert exc_info.value.message == "forbidden"


def test_error_message_falls_back_to_raw_text(fake_api, admin_client):
    fake_api.add("GET", "/apps", (502, b"gateway down"))

    with pytest.raises(AppmixerAPIError) as exc_info:
        admin_client.get("/apps")

    assert exc_info.value.message == "gateway down"
    assert exc_info.value.body == b"gateway down"


@pytest.mark.parametrize(
    "status, payload, expected",
    [
        (404, {"message": "Not found"}, True),
        (500, {"statusCode": 404, "message": "wrapped"}, True),
        (400, {"message": "Invalid request"}, False),
        (500, b"upstream failed", False),
    ],
)
def test_not_found_detection(fake_api, admin_client, status, payload, expected):
    fake_api.add("GET", "/accounts/a1", (status, payload))

    with pytest.raises(AppmixerAPIError) as exc_info:
        admin_client.get("/accounts/a1")

    assert exc_info.value.is_not_found is expected


def test_network_failure_raises_transport_error(monkeypatch, admin_client):
    def _boom(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(requests, "request", _boom)

    with pytest.raises(AppmixerTransportError) as exc_info:
        admin_client.get("/users")

    assert "connection refused" in str(exc_info.value)


def test_operation_error_exposes_cause_status():
    cause = AppmixerAPIError(409, "conflict", f"{BASE_URL}/users")
    try:
        raise OperationError("user", "create", "alice", str(cause)) from cause
    except OperationError as exc:
        assert exc.status_code == 409
        assert str(exc).startswith("failed to create user alice:")
