"""Command framework for chatroute.

Provides the Command / MessageCommand base classes, CommandGroup and
the built-in HelpCommand.
"""

from .base import Command, MessageCommand
from .group import CommandGroup, HelpCommand

__all__ = [
    "Command",
    "CommandGroup",
    "HelpCommand",
    "MessageCommand",
]
