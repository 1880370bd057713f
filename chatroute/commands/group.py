"""Command groups and the built-in help command."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

import structlog

from ..events import MessageEvent
from ..exceptions import ContractViolation
from ..rendering import group_listing, hidden_notice, not_found_notice
from .base import Command, MessageCommand, require_field

if TYPE_CHECKING:
    from ..registry import CommandRegistry

logger = structlog.get_logger("chatroute.dispatch")


class CommandGroup:
    """A namespace of commands reachable through its own prefix.

    Every group owns a :class:`HelpCommand` (``<bot><group> help``)
    whose parent is the group itself. The help command is not one of
    the group's children, so it does not show up in the listing.

    Args:
        registry: Registry the group registers itself with.
        name: Display name (required).
        prefix: Group prefix (required).
        description: Optional description for the listing.
        children: Commands to adopt. None is rejected.

    Raises:
        ContractViolation: If name, prefix or children is missing.
    """

    def __init__(
        self,
        registry: "CommandRegistry",
        name: str,
        prefix: str,
        *,
        description: Optional[str] = None,
        children: Iterable[Command] = (),
    ):
        cls_name = type(self).__name__
        self.name = require_field(name, "name", cls_name)
        self.prefix = require_field(prefix, "prefix", cls_name)
        if children is None:
            raise ContractViolation(
                '"children" cannot be None.', field_name="children", owner=cls_name
            )
        if registry is None:
            raise ContractViolation(
                '"registry" is required.', field_name="registry", owner=cls_name
            )
        self.description = description
        self._registry = registry
        self._children: List[Command] = []
        for child in children:
            self.add(child)
        registry.register_group(self)
        self.help = HelpCommand(registry, group=self)

    @property
    def children(self) -> Tuple[Command, ...]:
        return tuple(self._children)

    def add(self, command: Command) -> Command:
        """Adopt ``command``. Adding the same instance twice is a no-op."""
        if any(child is command for child in self._children):
            return command
        command._attach(self)
        self._children.append(command)
        # Invocation prefix changed from top level to grouped
        self._registry.recheck(command)
        if any(c.prefix == command.prefix for c in self._children if c is not command):
            logger.warning(
                "duplicate_child_prefix", group=self.name, prefix=command.prefix
            )
        return command

    def find_child(self, prefix: str) -> Optional[Command]:
        """First child whose prefix equals ``prefix`` exactly."""
        for child in tuple(self._children):
            if child.prefix == prefix:
                return child
        return None

    def __repr__(self) -> str:
        return f"CommandGroup(name={self.name!r}, prefix={self.prefix!r}, children={len(self._children)})"


class HelpCommand(MessageCommand):
    """Lists a group's commands or shows one command's info block.

    ``<bot><group> help`` lists the group; ``<bot><group> help <prefix>``
    shows the info block of the child with that exact prefix. A help
    command without a group (``<bot>help``) shows its own info block,
    and looks targets up among the registry's ungrouped commands.
    """

    def __init__(self, registry: "CommandRegistry", group: Optional[CommandGroup] = None):
        super().__init__(
            registry,
            "Help",
            "help",
            description="Gives information about the specified command.",
            syntax="[command]",
            examples=("", "help"),
            group=group,
            listed=False,
        )

    def _candidates(self) -> Sequence[Command]:
        group = self.parent
        if group is not None:
            return group.children
        return [c for c in self.registry.top_level_commands() if c is not self]

    def lookup(self, prefix: str) -> Optional[Command]:
        # Children sharing a prefix: the earliest added wins
        for command in self._candidates():
            if command.prefix == prefix:
                return command
        return None

    def execute(self, event: MessageEvent, args: Sequence[str]) -> None:
        group = self.parent
        if not args:
            reply = group_listing(group) if group is not None else self.info()
        else:
            requested = args[0]
            target = self.lookup(requested)
            if target is None:
                logger.debug("help_target_not_found", requested=requested)
                reply = not_found_notice(requested)
            else:
                reply = target.info() or hidden_notice(requested)
        event.reply(reply)
