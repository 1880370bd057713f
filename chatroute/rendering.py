"""Builders for the informational and error replies commands send.

Everything here returns a platform-neutral :class:`Reply`; the
transport decides how titles, colors and fields look on the wire.
``format_text`` is the plain/styled-text rendering used by text-only
transports such as Signal.
"""

from typing import TYPE_CHECKING, AbstractSet, Optional

from .events import Reply, ReplyColor

if TYPE_CHECKING:
    from .commands.base import Command
    from .commands.group import CommandGroup


def monospace(text: str) -> str:
    return f"`{text}`"


def _role_list(roles: AbstractSet[str]) -> str:
    return ", ".join(monospace(r) for r in sorted(roles))


def simple_error(title: Optional[str], description: Optional[str]) -> Reply:
    return Reply(title=title, body=description, color=ReplyColor.ERROR)


def permission_error(
    required: AbstractSet[str], blacklisted: AbstractSet[str]
) -> Reply:
    """Standard denial reply naming the required and blacklisted roles."""
    parts = []
    if required:
        plural = "s" if len(required) != 1 else ""
        parts.append(
            f"The role{plural}: {_role_list(required)} "
            f"{'are' if plural else 'is'} required to invoke the command."
        )
    if blacklisted:
        plural = "s" if len(blacklisted) != 1 else ""
        parts.append(
            f"The role{plural}: {_role_list(blacklisted)} "
            f"{'are' if plural else 'is'} blacklisted from invoking the command."
        )
    description = " ".join(parts) or "Unidentified permission error."
    return simple_error("Role Permission Error", description)


def _usage(command: "Command", suffix: str) -> str:
    return f"{command.invocation_prefix} {suffix}".rstrip()


def command_info(command: "Command") -> Reply:
    """Info block: description, group, prefix, syntax and examples."""
    reply = Reply(title=f'Command: "{command.name}"', body=command.description)
    group = command.parent
    if group is not None:
        reply.add_field("Command group", group.name)
    reply.add_field("Prefix", command.prefix)
    reply.add_field("Syntax", monospace(_usage(command, command.syntax)))
    if command.examples:
        label = "Examples" if len(command.examples) > 1 else "Example"
        lines = "\n".join(_usage(command, example) for example in command.examples)
        reply.add_field(label, monospace(lines))
    return reply


def group_listing(group: "CommandGroup") -> Reply:
    """Group overview: description, prefix and the prefixes of its children."""
    reply = Reply(title=f'Command Group: "{group.name}"', body=group.description)
    reply.add_field("Prefix", group.prefix)
    children = group.children
    if children:
        reply.add_field("Commands", ", ".join(monospace(c.prefix) for c in children))
    else:
        reply.add_field("Commands", "This command group contains no commands.")
    return reply


def hidden_notice(requested: str) -> Reply:
    return simple_error(None, f'Information about command "{requested}" is hidden.')


def not_found_notice(requested: str) -> Reply:
    return simple_error(None, f'Command "{requested}" not found.')


def invalid_parameter_error(command: "Command", title: str) -> Reply:
    """Error reply showing the command's syntax and, if grouped, a help hint."""
    reply = simple_error(title, None)
    reply.add_field("Syntax", monospace(_usage(command, command.syntax)))
    group = command.parent
    if group is not None and not command.hidden:
        help_call = f"{command.bot_prefix}{group.prefix} help {command.prefix}"
        reply.body = (
            f"Run {monospace(help_call)} to see a better description of the command."
        )
    return reply


def missing_arguments(command: "Command") -> Reply:
    return invalid_parameter_error(command, "Missing Argument(s) Error")


def invalid_parameter_types(command: "Command") -> Reply:
    return invalid_parameter_error(command, "Invalid Parameter Type(s)")


_COLOR_MARKERS = {
    ReplyColor.INFO: "ℹ️",
    ReplyColor.SUCCESS: "✅",
    ReplyColor.ERROR: "⛔",
}


def format_text(reply: Reply, markers: bool = True) -> str:
    """Render a reply as Signal-style styled text.

    Title in bold, body, then one ``*Name*: value`` line per field.
    Multi-line field values start on their own line. With ``markers``
    the first line is prefixed with the color marker.
    """
    out = []
    if reply.title:
        out.append(f"*{reply.title}*")
    if reply.body:
        out.append(reply.body)
    for f in reply.fields:
        if "\n" in f.value:
            out.extend([f"*{f.name}*:", f.value])
        else:
            out.append(f"*{f.name}*: {f.value}")
    if markers and out:
        out[0] = f"{_COLOR_MARKERS[reply.color]} {out[0]}"
    return "\n".join(out)
