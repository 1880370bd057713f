"""Role gate for commands.

An actor may invoke a command when it holds none of the command's
blacklisted roles and all of its required roles. The blacklist is
checked first, so a role that is both required and blacklisted always
denies.
"""

from typing import AbstractSet, Callable, Iterable, Optional, Set

import structlog

from .events import Event
from .exceptions import PermissionDenied, require_not_none
from .rendering import permission_error

logger = structlog.get_logger("chatroute.permissions")

PermissionFailHandler = Callable[[Event], None]


def authorize(
    actor_roles: AbstractSet[str],
    required: AbstractSet[str],
    blacklisted: AbstractSet[str],
) -> bool:
    """Evaluate an actor's roles against a command's role sets."""
    if not actor_roles.isdisjoint(blacklisted):
        return False
    return required <= actor_roles


class PermissionGate:
    """Required/blacklisted role sets plus the action run on denial.

    Role sets are meant to be filled while commands are assembled,
    before the transport starts delivering events.

    Args:
        owner: Name used in log events and PermissionDenied.
    """

    def __init__(self, owner: str = ""):
        self.owner = owner
        self.required: Set[str] = set()
        self.blacklisted: Set[str] = set()
        self._on_fail: PermissionFailHandler = self._send_denial

    def require(self, roles: Iterable[str]) -> None:
        self.required.update(require_not_none(roles, "roles", module="permissions"))

    def blacklist(self, roles: Iterable[str]) -> None:
        self.blacklisted.update(require_not_none(roles, "roles", module="permissions"))

    @property
    def on_fail(self) -> PermissionFailHandler:
        return self._on_fail

    @on_fail.setter
    def on_fail(self, handler: Optional[PermissionFailHandler]) -> None:
        self._on_fail = require_not_none(handler, "on_permission_fail", module="permissions")

    def authorize(self, actor_roles: AbstractSet[str]) -> bool:
        return authorize(actor_roles, self.required, self.blacklisted)

    def enforce(self, event: Event) -> None:
        """Pass silently, or run the fail handler and raise PermissionDenied."""
        if self.authorize(event.actor.roles):
            return
        logger.info(
            "permission_denied",
            command=self.owner,
            actor="..." + event.actor.id[-4:],
            required=sorted(self.required),
            blacklisted=sorted(self.blacklisted),
        )
        self._on_fail(event)
        raise PermissionDenied(
            "Actor does not meet the role requirements to invoke the command.",
            command=self.owner,
            actor_id=event.actor.id,
        )

    def _send_denial(self, event: Event) -> None:
        event.reply(permission_error(self.required, self.blacklisted))
