"""Tests for Command, MessageCommand and CommandGroup."""

import weakref
from unittest.mock import MagicMock

import pytest

from chatroute.commands import Command, CommandGroup, MessageCommand
from chatroute.events import Actor, EventKind, MessageEvent, Reply, ReplyColor
from chatroute.exceptions import ContractViolation, PermissionDenied
from chatroute.filters import FilterPreset
from chatroute.registry import CommandRegistry


def _message(text, roles=(), is_bot=False):
    return MessageEvent(
        actor=Actor(id="+15550003333", roles=frozenset(roles), is_bot=is_bot),
        channel="+15550003333",
        send_reply=MagicMock(),
        text=text,
    )


class EchoCommand(MessageCommand):
    def __init__(self, registry, group=None):
        super().__init__(
            registry, "Echo", "echo", syntax="<text...>", examples=("hi",), group=group
        )
        self.calls = []

    def execute(self, event, args):
        self.calls.append(list(args))
        event.reply(Reply(body=" ".join(args), color=ReplyColor.SUCCESS))


# --- Construction ---

class TestConstruction:

    @pytest.mark.parametrize("name, prefix", [("", "p"), (None, "p"), ("n", ""), ("n", None), ("n", "  ")])
    def test_missing_required_field(self, name, prefix):
        """Blank or missing name and prefix are contract violations."""
        with pytest.raises(ContractViolation):
            Command(CommandRegistry(), name, prefix)

    def test_none_syntax_rejected(self):
        """A None syntax is a contract violation."""
        with pytest.raises(ContractViolation) as exc_info:
            Command(CommandRegistry(), "n", "p", syntax=None)
        assert exc_info.value.field_name == "syntax"

    def test_registry_required(self):
        """A command cannot be built without a registry."""
        with pytest.raises(ContractViolation):
            Command(None, "n", "p")

    def test_group_children_none_rejected(self):
        """A group cannot be built with children=None."""
        with pytest.raises(ContractViolation):
            CommandGroup(CommandRegistry(), "Group", "grp", children=None)

    def test_registers_itself(self):
        """Construction registers the command with its registry."""
        registry = CommandRegistry()
        command = Command(registry, "Ping", "ping")
        assert command in registry.commands

    def test_examples_default_empty(self):
        """Examples default to an empty tuple."""
        command = Command(CommandRegistry(), "Ping", "ping", examples=None)
        assert command.examples == ()


# --- Hierarchy ---

class TestHierarchy:

    def test_parent_is_weak_reference(self):
        """The parent link does not keep the group alive."""
        registry = CommandRegistry()
        group = CommandGroup(registry, "Admin", "adm")
        command = Command(registry, "Kick", "kick", group=group)
        assert isinstance(command._parent_ref, weakref.ReferenceType)
        assert command.parent is group
        assert group.children == (command,)

    def test_invocation_prefix_includes_group(self):
        """Grouped commands are invoked through the group prefix."""
        registry = CommandRegistry(bot_prefix="&")
        group = CommandGroup(registry, "Admin", "adm")
        command = Command(registry, "Kick", "kick", group=group)
        assert command.invocation_prefix == "&adm kick"
        assert command.is_valid_invocation("&adm kick bob")
        assert not command.is_valid_invocation("&kick bob")

    def test_children_unique_by_identity(self):
        """Adding the same command twice keeps one child."""
        registry = CommandRegistry()
        group = CommandGroup(registry, "Admin", "adm")
        first = Command(registry, "Kick", "kick", group=group)
        second = Command(registry, "Kick again", "kick", group=group)
        group.add(first)
        assert group.children == (first, second)

    def test_command_cannot_move_between_groups(self):
        """A grouped command cannot be adopted by another group."""
        registry = CommandRegistry()
        one = CommandGroup(registry, "One", "one")
        two = CommandGroup(registry, "Two", "two")
        command = Command(registry, "Kick", "kick", group=one)
        with pytest.raises(ContractViolation):
            two.add(command)

    def test_group_adopts_children_passed_at_construction(self):
        """Children passed to a group get it as their parent."""
        registry = CommandRegistry()
        command = Command(registry, "Kick", "kick")
        group = CommandGroup(registry, "Admin", "adm", children=[command])
        assert command.parent is group
        assert group.find_child("kick") is command
        assert group.find_child("KICK") is None


# --- Filter-chain style ---

class TestSimpleCommand:

    def test_entries_are_independent(self):
        """A failing or denied entry does not stop its siblings."""
        registry = CommandRegistry()
        command = Command(registry, "Multi", "multi")
        command.require_roles("admin")
        good = MagicMock()

        def boom(event):
            raise RuntimeError("handler bug")

        def guarded(event):
            command.enforce_permissions(event)

        command.on_message(boom).on_message(guarded).on_message(good)
        event = _message("&multi")
        assert command.notify(event) == 1
        good.assert_called_once_with(event)

    def test_one_event_can_fire_several_entries(self):
        """Every matching entry fires for one event."""
        registry = CommandRegistry()
        command = Command(registry, "Multi", "multi")
        first, second = MagicMock(), MagicMock()
        command.on_message(first, *command.presets(FilterPreset.IS_VALID))
        command.on(EventKind.ANY, second)
        assert command.notify(_message("&multi x")) == 2
        assert command.notify(_message("unrelated")) == 1
        first.assert_called_once()
        assert second.call_count == 2

    def test_contract_violation_propagates(self):
        """ContractViolation from an entry escapes notify."""
        registry = CommandRegistry()
        command = Command(registry, "Multi", "multi")

        def broken(event):
            raise ContractViolation("bad")

        command.on_message(broken)
        with pytest.raises(ContractViolation):
            command.notify(_message("&multi"))

    def test_none_entry_rejected(self):
        """Adding a None entry is a contract violation."""
        command = Command(CommandRegistry(), "Multi", "multi")
        with pytest.raises(ContractViolation):
            command.add_entry(None)

    def test_role_sets_exposed_read_only(self):
        """Role helpers chain and expose frozen sets."""
        command = Command(CommandRegistry(), "Kick", "kick")
        command.require_roles("mod", "admin").blacklist_roles("muted")
        assert command.required_roles == frozenset({"mod", "admin"})
        assert command.blacklisted_roles == frozenset({"muted"})
        assert command.check_permission(Actor(id="x", roles=frozenset({"mod", "admin"})))
        assert not command.check_permission(
            Actor(id="x", roles=frozenset({"mod", "admin", "muted"}))
        )


# --- Dedicated handler style ---

class TestMessageCommand:

    def test_executes_with_tokenized_arguments(self):
        """execute() receives the tokenized arguments."""
        registry = CommandRegistry()
        echo = EchoCommand(registry)
        event = _message('&echo a "b c"')
        assert registry.dispatch(event) == 1
        assert echo.calls == [["a", "b c"]]
        reply = event.send_reply.call_args[0][0]
        assert reply.body == "a b c"

    def test_no_arguments_gives_empty_list(self):
        """A bare invocation gives an empty argument list."""
        registry = CommandRegistry()
        echo = EchoCommand(registry)
        registry.dispatch(_message("&echo"))
        assert echo.calls == [[]]

    def test_ignores_bots_and_other_commands(self):
        """Bot messages and other invocations are ignored."""
        registry = CommandRegistry()
        echo = EchoCommand(registry)
        registry.dispatch(_message("&echo hi", is_bot=True))
        registry.dispatch(_message("&echoes hi"))
        registry.dispatch(_message("echo hi"))
        assert echo.calls == []

    def test_permission_denied_sends_denial_and_skips_execute(self):
        """A denied actor gets the denial reply and no execution."""
        registry = CommandRegistry()
        echo = EchoCommand(registry)
        echo.require_roles("speaker")
        event = _message("&echo hi")
        assert registry.dispatch(event) == 0
        assert echo.calls == []
        event.send_reply.assert_called_once()
        assert event.send_reply.call_args[0][0].title == "Role Permission Error"

    def test_permission_denied_does_not_affect_siblings(self):
        """A denial in one command leaves other commands untouched."""
        registry = CommandRegistry()
        echo = EchoCommand(registry)
        echo.require_roles("speaker")
        listener = MagicMock()
        Command(registry, "Log", "log").on(EventKind.ANY, listener)
        registry.dispatch(_message("&echo hi"))
        listener.assert_called_once()

    def test_custom_permission_fail_handler(self):
        """A custom failure handler replaces the denial reply."""
        registry = CommandRegistry()
        echo = EchoCommand(registry)
        echo.blacklist_roles("muted")
        handler = MagicMock()
        echo.set_on_permission_fail(handler)
        event = _message("&echo hi", roles=("muted",))
        registry.dispatch(event)
        handler.assert_called_once_with(event)
        event.send_reply.assert_not_called()

    def test_enforce_raises_for_direct_callers(self):
        """enforce_permissions raises PermissionDenied when called directly."""
        echo = EchoCommand(CommandRegistry())
        echo.require_roles("speaker")
        with pytest.raises(PermissionDenied):
            echo.enforce_permissions(_message("&echo"))


# --- Replies ---

class TestReplies:

    def test_info_block_for_grouped_command(self):
        """Info block lists group, prefix, syntax and example."""
        registry = CommandRegistry(bot_prefix="&")
        group = CommandGroup(registry, "Fun", "fun")
        echo = EchoCommand(registry, group=group)
        info = echo.info()
        assert info.title == 'Command: "Echo"'
        assert info.get_field("Command group").value == "Fun"
        assert info.get_field("Prefix").value == "echo"
        assert info.get_field("Syntax").value == "`&fun echo <text...>`"
        assert info.get_field("Example").value == "`&fun echo hi`"

    def test_info_block_plural_examples(self):
        """Several examples are rendered under "Examples"."""
        command = Command(
            CommandRegistry(), "Roll", "roll", syntax="<dice>", examples=("1d6", "2d20")
        )
        info = command.info()
        assert info.get_field("Command group") is None
        assert info.get_field("Examples").value == "`&roll 1d6\n&roll 2d20`"

    def test_hidden_command_has_no_info(self):
        """Hidden commands have no info block."""
        class Secret(Command):
            hidden = True

        assert Secret(CommandRegistry(), "Secret", "secret").info() is None

    def test_missing_arguments_points_to_help(self):
        """The missing-arguments reply suggests the group help."""
        registry = CommandRegistry(bot_prefix="&")
        group = CommandGroup(registry, "Fun", "fun")
        echo = EchoCommand(registry, group=group)
        reply = echo.missing_arguments()
        assert reply.title == "Missing Argument(s) Error"
        assert reply.color is ReplyColor.ERROR
        assert "`&fun help echo`" in reply.body
        assert reply.get_field("Syntax").value == "`&fun echo <text...>`"

    def test_invalid_parameter_types_top_level(self):
        """Top-level commands get no help hint."""
        echo = EchoCommand(CommandRegistry())
        reply = echo.invalid_parameter_types()
        assert reply.title == "Invalid Parameter Type(s)"
        assert reply.body is None
