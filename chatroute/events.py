"""Inbound events and outbound replies.

Events are tagged variants: every event class carries a ``kind`` tag
and filter entries match on that tag. The core reads only the message
text, the actor (identity, roles, bot flag) and the reply capability;
anything transport-specific stays in ``metadata``.

Replies are platform-neutral: a title, a body, a color classification
and labeled fields. Turning them into a chat payload is the transport's
job.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, FrozenSet, List, Optional


class EventKind(str, Enum):
    """Tag identifying an event variant.

    ANY is the catch-all: an entry declared for ANY accepts every event.
    """
    ANY = "any"
    MESSAGE = "message"
    REACTION = "reaction"

    def accepts(self, other: "EventKind") -> bool:
        """Whether an event tagged ``other`` may be handed to an entry tagged ``self``."""
        return self is EventKind.ANY or self is other


class ReplyColor(str, Enum):
    """Color classification of an outbound reply."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ReplyField:
    """A labeled section of a reply (e.g. "Prefix" -> "run")."""
    name: str
    value: str
    inline: bool = False


@dataclass
class Reply:
    """An outbound reply request handed to the transport."""

    title: Optional[str] = None
    body: Optional[str] = None
    color: ReplyColor = ReplyColor.INFO
    fields: List[ReplyField] = field(default_factory=list)

    def add_field(self, name: str, value: str, inline: bool = False) -> "Reply":
        self.fields.append(ReplyField(name, value, inline))
        return self

    def get_field(self, name: str) -> Optional[ReplyField]:
        """First field labeled ``name``, or None."""
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class Actor:
    """The identity that produced an event.

    Attributes:
        id: Transport identity (phone number, UUID, user id).
        roles: Role identifiers the actor currently holds.
        is_bot: True for automated participants, including the bot itself.
        display_name: Optional human-readable name.
    """
    id: str
    roles: FrozenSet[str] = frozenset()
    is_bot: bool = False
    display_name: Optional[str] = None


@dataclass
class Event:
    """Base event. Subclasses set the ``kind`` tag.

    Attributes:
        actor: Who produced the event.
        channel: Where replies go (recipient id or group id).
        send_reply: Transport callback that queues a reply. Fire-and-forget.
        metadata: Transport-specific extras the core never inspects.
    """

    kind: ClassVar[EventKind] = EventKind.ANY

    actor: Actor
    channel: str
    send_reply: Callable[[Reply], None] = field(repr=False)
    metadata: Dict[str, Any] = field(default_factory=dict, repr=False)

    def reply(self, reply: Reply) -> None:
        """Send a reply back to the originating channel."""
        self.send_reply(reply)


@dataclass
class MessageEvent(Event):
    """A chat message was received."""

    kind: ClassVar[EventKind] = EventKind.MESSAGE

    text: str = ""


@dataclass
class ReactionEvent(Event):
    """An emoji reaction was added to (or removed from) a message."""

    kind: ClassVar[EventKind] = EventKind.REACTION

    emoji: str = ""
    target_author: Optional[str] = None
    target_timestamp: Optional[int] = None
    removed: bool = False
