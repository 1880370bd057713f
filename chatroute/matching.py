"""Prefix matching for hierarchical command invocations.

A command is invoked by typing the bot prefix, then the group prefix
and a space (for grouped commands), then the command prefix::

    &grp run            no arguments
    &grp run a b "c d"  with arguments

Matching is exact: the message must equal the full invocation prefix,
or start with it followed by a space. ``&grp runextra`` and ``&grp ru``
do not invoke ``run``.
"""

from typing import Optional

from .exceptions import InvalidArgument, require_not_none

SEPARATOR = " "


def build_invocation_prefix(
    bot_prefix: str, group_prefix: Optional[str], command_prefix: str
) -> str:
    """Compose the literal text a user types to invoke a command."""
    require_not_none(bot_prefix, "bot_prefix", module="matching")
    require_not_none(command_prefix, "command_prefix", module="matching")
    if group_prefix is not None:
        return f"{bot_prefix}{group_prefix}{SEPARATOR}{command_prefix}"
    return f"{bot_prefix}{command_prefix}"


def is_valid_invocation(
    text: str,
    bot_prefix: str,
    group_prefix: Optional[str],
    command_prefix: str,
) -> bool:
    """Whether ``text`` invokes the command with the given prefixes.

    Raises:
        InvalidArgument: If ``text`` or a required prefix is None.
    """
    require_not_none(text, "text", module="matching")
    expected = build_invocation_prefix(bot_prefix, group_prefix, command_prefix)
    return text == expected or text.startswith(expected + SEPARATOR)


def strip_prefix(
    text: str,
    bot_prefix: str,
    group_prefix: Optional[str],
    command_prefix: str,
) -> str:
    """Return the argument part of an invocation.

    ``text`` must already have passed :func:`is_valid_invocation`; the
    prefixes are removed by length, not re-checked. Returns an empty
    string when nothing follows the command prefix.

    Raises:
        InvalidArgument: If ``text`` is None or shorter than the prefix.
    """
    require_not_none(text, "text", module="matching")
    expected = build_invocation_prefix(bot_prefix, group_prefix, command_prefix)
    if len(text) < len(expected):
        raise InvalidArgument(
            "Input is shorter than the invocation prefix.",
            param_name="text",
            module="matching",
            expected_prefix=expected,
        )
    rest = text[len(expected):]
    # Drop the single space separating the prefix from the arguments
    return rest[len(SEPARATOR):] if rest else ""
