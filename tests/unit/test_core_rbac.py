"""Unit tests for scope-based permission helpers."""
import pytest

from appmixer_sync.core import rbac
from appmixer_sync.core.appmixer import InsufficientPermissionsError, Session


def _session(scope=(), user_id="u1"):
    return Session(base_url="https://api.appmixer.test", token="t", user_id=user_id, scope=frozenset(scope))


def test_has_scope():
    session = _session(["user", "vendor"])
    assert rbac.has_scope(session, "vendor") is True
    assert rbac.has_scope(session, "admin") is False


def test_is_admin_only_with_admin_scope():
    assert rbac.is_admin(_session(["user", "admin"])) is True
    assert rbac.is_admin(_session(["user"])) is False
    assert rbac.is_admin(_session()) is False


def test_require_admin_message_names_action():
    with pytest.raises(InsufficientPermissionsError) as exc_info:
        rbac.require_admin(_session(["user"]), "Listing all users")
    assert str(exc_info.value) == "Listing all users requires admin permissions"


def test_require_admin_passes_for_admin():
    rbac.require_admin(_session(["admin"]), "Deleting users")


def test_require_scope_custom_scope():
    with pytest.raises(InsufficientPermissionsError, match="requires vendor permissions"):
        rbac.require_scope(_session(["user"]), "vendor", "Publishing components")


def test_is_self():
    session = _session(user_id="u1")
    assert rbac.is_self(session, "u1") is True
    assert rbac.is_self(session, "u2") is False
    assert rbac.is_self(session, "") is False
    assert rbac.is_self(_session(user_id=""), "") is False
