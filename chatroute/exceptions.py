"""Custom exception hierarchy for chatroute.

Classifies failures so the dispatch loop can tell construction-time
contract violations (fatal, abort startup) from failures that are
local to one event/command pairing (logged, dispatch continues).

Unknown help lookups are not exceptions: they are answered with a
normal "not found" reply.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Classification of errors for retry decisions."""
    TRANSIENT = "transient"          # Worth retrying (network hiccup, 5xx)
    PERMANENT = "permanent"          # Not worth retrying (bad input, denied)
    INFRASTRUCTURE = "infrastructure"  # Broken setup, fix and restart


class ChatRouteError(Exception):
    """Base exception for all chatroute errors.

    Attributes:
        message: Human-readable error description.
        category: Error classification for retry/escalation decisions.
        module: Originating module name (e.g. "permissions").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category
        self.module = module
        self.context = context
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error is worth retrying."""
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return (
            f"{cls}({self.message!r}, category={self.category.value!r}, "
            f"module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Core exceptions
# ---------------------------------------------------------------------------

class ContractViolation(ChatRouteError):
    """A command or group was built without a required field.

    Raised from constructors only. Not meant to be caught and retried:
    it should abort startup.

    Attributes:
        field_name: The missing or invalid field (e.g. "prefix").
    """

    def __init__(
        self,
        message: str = "",
        *,
        field_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.field_name = field_name
        super().__init__(
            message, category=category, module=module or "commands", **context
        )


class InvalidArgument(ChatRouteError):
    """A public operation received a value it forbids (usually None).

    Attributes:
        param_name: Name of the offending parameter.
    """

    def __init__(
        self,
        message: str = "",
        *,
        param_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.param_name = param_name
        super().__init__(message, category=category, module=module, **context)


def require_not_none(value: Any, param_name: str, module: Optional[str] = None) -> Any:
    """Return ``value`` unchanged, or raise InvalidArgument if it is None."""
    if value is None:
        raise InvalidArgument(
            f'Parameter "{param_name}" should not be None.',
            param_name=param_name,
            module=module,
        )
    return value


class PermissionDenied(ChatRouteError):
    """The actor failed a command's role gate.

    Raised after the denial reply has been sent. Aborts only the
    current command's handling of the current event.

    Attributes:
        command: Name of the command that was refused.
        actor_id: Identity of the refused actor.
    """

    def __init__(
        self,
        message: str = "",
        *,
        command: Optional[str] = None,
        actor_id: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.command = command
        self.actor_id = actor_id
        super().__init__(
            message, category=category, module=module or "permissions", **context
        )


# ---------------------------------------------------------------------------
# Bootstrap exceptions
# ---------------------------------------------------------------------------

class TransportError(ChatRouteError):
    """The chat transport rejected or failed a request.

    Attributes:
        status: HTTP status code (if available).
    """

    def __init__(
        self,
        message: str = "",
        *,
        status: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.status = status
        super().__init__(
            message, category=category, module=module or "transport", **context
        )


class ExtensionLoadError(ChatRouteError):
    """A command extension could not be imported or set up.

    Attributes:
        extension: Directory name of the extension.
    """

    def __init__(
        self,
        message: str = "",
        *,
        extension: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.extension = extension
        super().__init__(
            message, category=category, module=module or "extensions", **context
        )
