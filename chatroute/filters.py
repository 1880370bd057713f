"""Filter-chain subscriptions.

A :class:`FilterChainEntry` binds an event kind, an action and an
ordered list of predicates. ``notify`` fires the action only when the
event's kind is accepted and every predicate passes. Entries never
influence each other: a command evaluates all of its entries on every
event, so one event may fire zero, one or several actions.
"""

from enum import Enum
from typing import TYPE_CHECKING, Callable, Generic, Iterable, List, Optional, TypeVar

from .events import Event, EventKind, MessageEvent
from .exceptions import require_not_none

if TYPE_CHECKING:
    from .commands.base import Command

E = TypeVar("E", bound=Event)

Action = Callable[[E], None]
Predicate = Callable[[E], bool]


class FilterChainEntry(Generic[E]):
    """One listener registration guarded by predicates.

    Args:
        kind: Event kind the entry accepts (ANY accepts all).
        action: Called with the event once all predicates pass.
        filters: Predicates, evaluated in order. None means none.

    Raises:
        InvalidArgument: If ``kind`` or ``action`` is None.
    """

    def __init__(
        self,
        kind: EventKind,
        action: Action,
        filters: Optional[Iterable[Predicate]] = None,
    ):
        self.kind = require_not_none(kind, "kind", module="filters")
        self.action = require_not_none(action, "action", module="filters")
        self.filters: List[Predicate] = list(filters) if filters is not None else []

    def add_filter(self, predicate: Predicate) -> "FilterChainEntry[E]":
        self.filters.append(require_not_none(predicate, "predicate", module="filters"))
        return self

    def accepts(self, event: Event) -> bool:
        """Kind check plus every predicate, short-circuiting on the first False."""
        if not self.kind.accepts(event.kind):
            return False
        return all(predicate(event) for predicate in tuple(self.filters))

    def notify(self, event: Event) -> bool:
        """Run the action if the event passes. Returns whether it fired."""
        if not self.accepts(event):
            return False
        self.action(event)
        return True

    def __repr__(self) -> str:
        action = getattr(self.action, "__qualname__", repr(self.action))
        return (
            f"FilterChainEntry(kind={self.kind.value!r}, action={action}, "
            f"filters={len(self.filters)})"
        )


# ---------------------------------------------------------------------------
# Predicate presets
# ---------------------------------------------------------------------------

def not_bot(event: Event) -> bool:
    """The actor is not an automated participant."""
    return not event.actor.is_bot


def invokes(command: "Command") -> Predicate:
    """Predicate: the event is a message whose text invokes ``command``."""
    def predicate(event: Event) -> bool:
        return isinstance(event, MessageEvent) and command.is_valid_invocation(event.text)

    predicate.__qualname__ = f"invokes({command.name})"
    return predicate


class FilterPreset(str, Enum):
    """Canned predicates a command can hand out for its own entries."""
    NOT_BOT = "not_bot"
    IS_VALID = "is_valid"


def preset_filters(command: "Command", *presets: FilterPreset) -> List[Predicate]:
    """Build the predicates named by ``presets`` for ``command``.

    Duplicates are collapsed; order follows first appearance.
    """
    result: List[Predicate] = []
    for preset in dict.fromkeys(presets):
        if preset is FilterPreset.NOT_BOT:
            result.append(not_bot)
        elif preset is FilterPreset.IS_VALID:
            result.append(invokes(command))
    return result
