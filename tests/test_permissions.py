"""Tests for the role gate."""

from unittest.mock import MagicMock

import pytest

from chatroute.events import Actor, MessageEvent, ReplyColor
from chatroute.exceptions import InvalidArgument, PermissionDenied
from chatroute.permissions import PermissionGate, authorize


def _event(*roles):
    return MessageEvent(
        actor=Actor(id="+15550001111", roles=frozenset(roles)),
        channel="+15550001111",
        send_reply=MagicMock(),
        text="&cmd",
    )


# --- authorize ---

def test_missing_required_role_denied():
    """Missing a required role denies."""
    assert authorize({"A"}, {"A", "B"}, set()) is False


def test_blacklist_checked_before_required():
    """A blacklisted role denies even with all required roles."""
    assert authorize({"A"}, {"A"}, {"A"}) is False


def test_empty_required_passes():
    """No required roles lets anyone through."""
    assert authorize(set(), set(), set()) is True
    assert authorize({"X"}, set(), {"Y"}) is True


def test_all_required_held_passes():
    """Holding every required role passes."""
    assert authorize({"A", "B", "C"}, {"A", "B"}, {"Z"}) is True


def test_any_blacklisted_role_denies():
    """One blacklisted role is enough to deny."""
    assert authorize({"A", "muted"}, set(), {"muted", "banned"}) is False


# --- PermissionGate ---

class TestPermissionGate:

    def test_enforce_passes_silently(self):
        """Authorized actors pass without a reply."""
        gate = PermissionGate(owner="kick")
        gate.require(["mod"])
        event = _event("mod")
        gate.enforce(event)
        event.send_reply.assert_not_called()

    def test_enforce_sends_denial_then_raises(self):
        """Denied actors get the denial reply, then PermissionDenied."""
        gate = PermissionGate(owner="kick")
        gate.require(["mod"])
        event = _event()
        with pytest.raises(PermissionDenied) as exc_info:
            gate.enforce(event)
        assert exc_info.value.command == "kick"
        assert exc_info.value.actor_id == "+15550001111"
        event.send_reply.assert_called_once()
        reply = event.send_reply.call_args[0][0]
        assert reply.title == "Role Permission Error"
        assert reply.color is ReplyColor.ERROR
        assert "`mod`" in reply.body

    def test_custom_fail_handler_replaces_default(self):
        """A custom handler runs instead of the denial reply."""
        gate = PermissionGate(owner="kick")
        gate.blacklist(["muted"])
        handler = MagicMock()
        gate.on_fail = handler
        event = _event("muted")
        with pytest.raises(PermissionDenied):
            gate.enforce(event)
        handler.assert_called_once_with(event)
        event.send_reply.assert_not_called()

    def test_none_fail_handler_rejected(self):
        """The fail handler cannot be set to None."""
        gate = PermissionGate()
        with pytest.raises(InvalidArgument):
            gate.on_fail = None

    def test_roles_accumulate(self):
        """require and blacklist add to the existing sets."""
        gate = PermissionGate()
        gate.require(["a"])
        gate.require(["b"])
        assert gate.required == {"a", "b"}
