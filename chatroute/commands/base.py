"""Base classes for commands.

Commands come in two styles:

Command: assembled from filter-chain entries. Each entry is an
    independent listener with its own predicates, registered with
    ``on`` / ``on_message`` / ``add_entry``.
MessageCommand: a dedicated handler. Subclasses implement
    ``execute(event, args)``; the base wires a single message entry
    guarded by the "not a bot" and "invokes this command" presets and
    enforces the role gate before calling it.

Both register themselves with the :class:`CommandRegistry` they are
constructed with. A grouped command keeps only a weak reference to its
group; the group owns its children.

Commands are expected to be fully assembled (roles, entries) before
the transport starts delivering events.
"""

from __future__ import annotations

import weakref
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, AbstractSet, Iterable, List, Optional, Sequence, Tuple

import structlog

from .. import matching
from ..events import Actor, Event, EventKind, MessageEvent, Reply
from ..exceptions import ContractViolation, PermissionDenied
from ..filters import Action, FilterChainEntry, FilterPreset, Predicate, preset_filters
from ..permissions import PermissionFailHandler, PermissionGate
from ..rendering import command_info, invalid_parameter_error, invalid_parameter_types, missing_arguments
from ..tokenizer import tokenize

if TYPE_CHECKING:
    from ..registry import CommandRegistry
    from .group import CommandGroup

logger = structlog.get_logger("chatroute.dispatch")


def require_field(value, field_name: str, owner: str) -> str:
    """Reject a missing or blank required string field with ContractViolation."""
    if not isinstance(value, str) or not value.strip():
        raise ContractViolation(
            f'"{field_name}" is required and cannot be empty.',
            field_name=field_name,
            owner=owner,
        )
    return value


class Command:
    """A leaf, invokable unit of behavior.

    Args:
        registry: Registry the command registers itself with.
        name: Display name (required).
        prefix: Word typed after the bot/group prefix (required).
        description: Optional description for the info block.
        syntax: Argument syntax for display, e.g. ``"<user> [reason]"``.
        examples: Example argument strings for display.
        group: Optional owning group.
        listed: Whether the command appears among the group's children.

    Raises:
        ContractViolation: If name, prefix, syntax or registry is missing.
    """

    # Set to True to hide the command from help lookups
    hidden: bool = False

    def __init__(
        self,
        registry: "CommandRegistry",
        name: str,
        prefix: str,
        *,
        description: Optional[str] = None,
        syntax: str = "",
        examples: Optional[Iterable[str]] = None,
        group: Optional["CommandGroup"] = None,
        listed: bool = True,
    ):
        cls_name = type(self).__name__
        self.name = require_field(name, "name", cls_name)
        self.prefix = require_field(prefix, "prefix", cls_name)
        if syntax is None:
            raise ContractViolation(
                '"syntax" cannot be None.', field_name="syntax", owner=cls_name
            )
        if registry is None:
            raise ContractViolation(
                '"registry" is required.', field_name="registry", owner=cls_name
            )
        self.description = description
        self.syntax = syntax
        self.examples: Tuple[str, ...] = tuple(examples or ())
        self.gate = PermissionGate(owner=self.name)
        self._registry = registry
        self._entries: List[FilterChainEntry] = []
        self._parent_ref: Optional[weakref.ReferenceType] = None

        if group is not None:
            if listed:
                group.add(self)
            else:
                self._attach(group)
        registry.register(self)

    # --- Hierarchy ---

    def _attach(self, group: "CommandGroup") -> None:
        current = self.parent
        if current is not None and current is not group:
            raise ContractViolation(
                f'Command "{self.name}" already belongs to group "{current.name}".',
                field_name="group",
            )
        self._parent_ref = weakref.ref(group)

    @property
    def parent(self) -> Optional["CommandGroup"]:
        """Owning group, or None (also None once the group is gone)."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @property
    def registry(self) -> "CommandRegistry":
        return self._registry

    @property
    def bot_prefix(self) -> str:
        return self._registry.bot_prefix

    @property
    def group_prefix(self) -> Optional[str]:
        group = self.parent
        return group.prefix if group is not None else None

    @property
    def invocation_prefix(self) -> str:
        """Full text that invokes the command, e.g. ``&grp run``."""
        return matching.build_invocation_prefix(
            self.bot_prefix, self.group_prefix, self.prefix
        )

    # --- Input handling ---

    def is_valid_invocation(self, text: str) -> bool:
        return matching.is_valid_invocation(
            text, self.bot_prefix, self.group_prefix, self.prefix
        )

    def strip_prefix(self, text: str) -> str:
        return matching.strip_prefix(
            text, self.bot_prefix, self.group_prefix, self.prefix
        )

    @staticmethod
    def split_arguments(args: str) -> List[str]:
        """Tokenize an argument string; no arguments gives an empty list."""
        if not args.strip():
            return []
        return tokenize(args)

    def parse_arguments(self, text: str) -> List[str]:
        """Strip the invocation prefix from ``text`` and tokenize the rest."""
        return self.split_arguments(self.strip_prefix(text))

    # --- Permissions ---

    def require_roles(self, *roles: str) -> "Command":
        self.gate.require(roles)
        return self

    def blacklist_roles(self, *roles: str) -> "Command":
        self.gate.blacklist(roles)
        return self

    @property
    def required_roles(self) -> AbstractSet[str]:
        return frozenset(self.gate.required)

    @property
    def blacklisted_roles(self) -> AbstractSet[str]:
        return frozenset(self.gate.blacklisted)

    def set_on_permission_fail(self, handler: PermissionFailHandler) -> "Command":
        self.gate.on_fail = handler
        return self

    def check_permission(self, actor: Actor) -> bool:
        return self.gate.authorize(actor.roles)

    def enforce_permissions(self, event: Event) -> None:
        """Run the role gate; raises PermissionDenied after the denial reply."""
        self.gate.enforce(event)

    # --- Filter-chain entries ---

    @property
    def entries(self) -> Tuple[FilterChainEntry, ...]:
        return tuple(self._entries)

    def add_entry(self, entry: FilterChainEntry) -> "Command":
        if entry is None:
            raise ContractViolation('"entry" cannot be None.', field_name="entry")
        self._entries.append(entry)
        return self

    def on(
        self, kind: EventKind, action: Action, *filters: Predicate
    ) -> "Command":
        """Register ``action`` for events of ``kind`` guarded by ``filters``."""
        return self.add_entry(FilterChainEntry(kind, action, filters))

    def on_message(self, action: Action, *filters: Predicate) -> "Command":
        return self.on(EventKind.MESSAGE, action, *filters)

    def presets(self, *presets: FilterPreset) -> List[Predicate]:
        """Canned predicates (NOT_BOT, IS_VALID) bound to this command."""
        return preset_filters(self, *presets)

    def notify(self, event: Event) -> int:
        """Offer ``event`` to every entry. Returns how many actions fired.

        Entries are independent: a denied or failing entry is logged and
        the remaining entries are still evaluated.
        """
        fired = 0
        for entry in tuple(self._entries):
            try:
                if entry.notify(event):
                    fired += 1
            except PermissionDenied:
                logger.debug("command_aborted_permission", command=self.name)
            except ContractViolation:
                raise
            except Exception:
                logger.exception(
                    "filter_entry_failed",
                    command=self.name,
                    entry=repr(entry),
                    event_kind=event.kind.value,
                )
        return fired

    # --- Replies ---

    def info(self) -> Optional[Reply]:
        """Info block for help, or None when the command is hidden."""
        if self.hidden:
            return None
        return command_info(self)

    def invalid_parameter_error(self, title: str) -> Reply:
        return invalid_parameter_error(self, title)

    def missing_arguments(self) -> Reply:
        return missing_arguments(self)

    def invalid_parameter_types(self) -> Reply:
        return invalid_parameter_types(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, prefix={self.invocation_prefix!r})"


class MessageCommand(Command, ABC):
    """A command with a dedicated message handler.

    Subclasses implement :meth:`execute`. It runs for messages that
    invoke the command, come from a non-bot actor and pass the role
    gate; ``args`` are the tokenized arguments (empty list when none).
    """

    def __init__(self, registry: "CommandRegistry", name: str, prefix: str, **kwargs):
        super().__init__(registry, name, prefix, **kwargs)
        self.on_message(
            self._invoke, *self.presets(FilterPreset.NOT_BOT, FilterPreset.IS_VALID)
        )

    def _invoke(self, event: MessageEvent) -> None:
        self.enforce_permissions(event)
        args = self.parse_arguments(event.text)
        logger.debug("command_invoked", command=self.name, arg_count=len(args))
        self.execute(event, args)

    @abstractmethod
    def execute(self, event: MessageEvent, args: Sequence[str]) -> None:
        """Handle one invocation."""
        ...
