"""Registry of live commands and groups.

The registry is an explicit object: commands and groups receive it at
construction and register themselves, so several independent bots can
live in one process. Every inbound event is offered to every
registered command.

Concurrency: registration takes a lock, and ``dispatch`` works on a
snapshot taken under the same lock, so a transport may dispatch from
several threads. Assemble commands before starting the transport; the
lock makes late registration safe, not transactional.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import structlog

from .events import Event
from .exceptions import ContractViolation, require_not_none

if TYPE_CHECKING:
    from .commands.base import Command
    from .commands.group import CommandGroup
    from .config import Config

logger = structlog.get_logger("chatroute.dispatch")

DEFAULT_BOT_PREFIX = "&"


class CommandRegistry:
    """Holds commands and groups and fans events out to them.

    Args:
        bot_prefix: Global prefix every invocation starts with.
    """

    def __init__(self, bot_prefix: str = DEFAULT_BOT_PREFIX):
        self.bot_prefix = require_not_none(bot_prefix, "bot_prefix", module="registry")
        self._lock = threading.RLock()
        self._commands: List["Command"] = []
        self._groups: List["CommandGroup"] = []

    @classmethod
    def from_config(cls, config: "Config") -> "CommandRegistry":
        return cls(bot_prefix=config.bot_prefix)

    # --- Registration ---

    def register(self, command: "Command") -> "Command":
        """Add ``command``. Registering the same instance twice is a no-op.

        Duplicate invocation prefixes are allowed but logged.
        """
        require_not_none(command, "command", module="registry")
        with self._lock:
            if self._is_registered(command):
                return command
            self._warn_if_conflicting(command)
            self._commands.append(command)
        logger.debug(
            "command_registered", command=command.name, prefix=command.invocation_prefix
        )
        return command

    def recheck(self, command: "Command") -> bool:
        """Repeat the conflict check for a registered command.

        Call after the command's invocation prefix changed, e.g. when a
        group adopted it. Returns whether a conflict was logged.
        """
        with self._lock:
            if not self._is_registered(command):
                return False
            return self._warn_if_conflicting(command)

    def _is_registered(self, command: "Command") -> bool:
        return any(c is command for c in self._commands)

    def _warn_if_conflicting(self, command: "Command") -> bool:
        invocation = command.invocation_prefix
        others = [
            c.name
            for c in self._commands
            if c is not command and c.invocation_prefix == invocation
        ]
        if others:
            logger.warning(
                "prefix_conflict",
                prefix=invocation,
                command=command.name,
                conflicts_with=others,
            )
        return bool(others)

    def register_group(self, group: "CommandGroup") -> "CommandGroup":
        require_not_none(group, "group", module="registry")
        with self._lock:
            if any(g is group for g in self._groups):
                return group
            if any(g.prefix == group.prefix for g in self._groups):
                logger.warning("group_prefix_conflict", prefix=group.prefix, group=group.name)
            self._groups.append(group)
        logger.debug("group_registered", group=group.name, prefix=group.prefix)
        return group

    # --- Introspection ---

    @property
    def commands(self) -> Tuple["Command", ...]:
        with self._lock:
            return tuple(self._commands)

    @property
    def groups(self) -> Tuple["CommandGroup", ...]:
        with self._lock:
            return tuple(self._groups)

    def top_level_commands(self) -> List["Command"]:
        return [c for c in self.commands if c.parent is None]

    def find_group(self, prefix: str) -> Optional["CommandGroup"]:
        for group in self.groups:
            if group.prefix == prefix:
                return group
        return None

    def find(self, prefix: str, group_prefix: Optional[str] = None) -> Optional["Command"]:
        """First command with the given prefix (inside ``group_prefix`` if set)."""
        for command in self.commands:
            if command.prefix == prefix and command.group_prefix == group_prefix:
                return command
        return None

    def conflicts(self) -> Dict[str, List["Command"]]:
        """Invocation prefixes shared by more than one command."""
        by_prefix: Dict[str, List["Command"]] = defaultdict(list)
        for command in self.commands:
            by_prefix[command.invocation_prefix].append(command)
        return {p: cmds for p, cmds in by_prefix.items() if len(cmds) > 1}

    # --- Dispatch ---

    def dispatch(self, event: Event) -> int:
        """Offer ``event`` to every command. Returns the number of actions fired.

        A failure in one command never prevents the others from seeing
        the event.
        """
        fired = 0
        for command in self.commands:
            try:
                fired += command.notify(event)
            except ContractViolation:
                raise
            except Exception:
                logger.exception(
                    "command_dispatch_failed",
                    command=command.name,
                    event_kind=event.kind.value,
                )
        logger.debug("event_dispatched", event_kind=event.kind.value, fired=fired)
        return fired

    def __len__(self) -> int:
        return len(self.commands)
