"""chatroute: prefix-routed chat commands with role gating.

Commands and command groups register with an explicit
:class:`CommandRegistry`; every inbound event is offered to every
command, whose filter-chain entries decide whether to act.
"""

from .commands import Command, CommandGroup, HelpCommand, MessageCommand
from .events import (
    Actor,
    Event,
    EventKind,
    MessageEvent,
    ReactionEvent,
    Reply,
    ReplyColor,
    ReplyField,
)
from .exceptions import (
    ChatRouteError,
    ContractViolation,
    ErrorCategory,
    InvalidArgument,
    PermissionDenied,
)
from .filters import FilterChainEntry, FilterPreset, invokes, not_bot
from .matching import is_valid_invocation, strip_prefix
from .permissions import PermissionGate, authorize
from .registry import CommandRegistry
from .tokenizer import tokenize

__version__ = "0.1.0"

__all__ = [
    "Actor",
    "ChatRouteError",
    "Command",
    "CommandGroup",
    "CommandRegistry",
    "ContractViolation",
    "ErrorCategory",
    "Event",
    "EventKind",
    "FilterChainEntry",
    "FilterPreset",
    "HelpCommand",
    "InvalidArgument",
    "MessageCommand",
    "MessageEvent",
    "PermissionDenied",
    "PermissionGate",
    "ReactionEvent",
    "Reply",
    "ReplyColor",
    "ReplyField",
    "authorize",
    "invokes",
    "is_valid_invocation",
    "not_bot",
    "strip_prefix",
    "tokenize",
]
