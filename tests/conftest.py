"""Pytest shared fixtures for the reconciler tests."""
import json
import pathlib
import sys
from types import SimpleNamespace
from typing import Any

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from appmixer_sync.core.appmixer import AppmixerClient, Session
from scripts import audit

BASE_URL = "https://api.appmixer.test"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting a live Appmixer instance.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _fail(method, url, *args, **kwargs):
        raise RuntimeError(f"Unexpected network access in tests: {method} {url}")

    monkeypatch.setattr(requests, "request", _fail)


@pytest.fixture(autouse=True)
def _audit_disabled(monkeypatch):
    """Keep the audit trail off unless a test points it at a temp dir."""
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", None)


# ─────────────────────────────────────────────────────────────────────────────
# Fake Appmixer API
# ─────────────────────────────────────────────────────────────────────────────
class _StubResponse:
    def __init__(self, status_code: int, payload: Any = None, url: str = ""):
        if payload is None:
            content = b""
        elif isinstance(payload, bytes):
            content = payload
        else:
            content = json.dumps(payload).encode("utf-8")
        self.status_code = status_code
        self.content = content
        self.text = content.decode("utf-8")
        self.url = url

    def json(self):
        return json.loads(self.content)


class FakeAppmixerAPI:
    """Route table standing in for ``requests.request``.

    Each route holds a queue of ``(status, payload)`` responses; the last one
    is repeated once the queue is down to a single entry.
    """

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.routes: dict[tuple[str, str], list[tuple[int, Any]]] = {}
        self.calls: list[SimpleNamespace] = []

    def add(self, method: str, path: str, *responses: tuple[int, Any]) -> None:
        self.routes.setdefault((method, path), []).extend(responses)

    def __call__(self, method, url, *args, **kwargs):
        path = url[len(self.base_url):] if url.startswith(self.base_url) else url
        body = kwargs.get("json")
        if body is None and kwargs.get("data"):
            body = json.loads(kwargs["data"])
        self.calls.append(SimpleNamespace(
            method=method,
            path=path,
            params=kwargs.get("params"),
            body=body,
            headers=kwargs.get("headers") or {},
            timeout=kwargs.get("timeout"),
        ))

        queue = self.routes.get((method, path))
        if not queue:
            raise AssertionError(f"Unexpected request in test: {method} {path}")
        status, payload = queue[0] if len(queue) == 1 else queue.pop(0)
        return _StubResponse(status, payload, url)

    def requests_to(self, method: str, path: str) -> list[SimpleNamespace]:
        return [c for c in self.calls if c.method == method and c.path == path]


@pytest.fixture()
def fake_api(monkeypatch):
    """Fake Appmixer API recording every request."""
    api = FakeAppmixerAPI()
    monkeypatch.setattr(requests, "request", api)
    return api


# ─────────────────────────────────────────────────────────────────────────────
# Sessions and clients
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def admin_session():
    return Session(
        base_url=BASE_URL,
        token="admin-token",
        user_id="admin-1",
        username="admin",
        email="admin@example.com",
        scope=frozenset({"user", "admin"}),
    )


@pytest.fixture()
def user_session():
    return Session(
        base_url=BASE_URL,
        token="user-token",
        user_id="self-1",
        username="joe",
        email="joe@example.com",
        scope=frozenset({"user"}),
    )


@pytest.fixture()
def admin_client(admin_session):
    return AppmixerClient(admin_session)


@pytest.fixture()
def user_client(user_session):
    return AppmixerClient(user_session)
