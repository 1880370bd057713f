"""Bot wiring for chatroute.

Connects the Signal transport to a CommandRegistry: every envelope the
transport turns into an event is dispatched synchronously to all
registered commands. Commands are assembled before the transport
starts, either by the embedding application or by extensions.

Key classes:
    ChatBot: Owns config, registry, transport and extension loader.
"""

from typing import Callable, Optional

import structlog

from .config import Config, get_config
from .events import Event
from .extensions import ExtensionLoader
from .registry import CommandRegistry
from .transport import SignalTransport

logger = structlog.get_logger("chatroute.bot")

SetupHook = Callable[[CommandRegistry], None]


class ChatBot:
    """Signal bot routing messages to registered commands.

    Args:
        config: Configuration. Defaults to the global instance.
        registry: Registry to dispatch to. Built from config if omitted.
        transport: Transport to use. Built from config if omitted.
        setup: Optional hook that assembles the application's commands.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        registry: Optional[CommandRegistry] = None,
        transport: Optional[SignalTransport] = None,
        setup: Optional[SetupHook] = None,
    ):
        self.config = config or get_config()
        self.registry = (
            registry if registry is not None else CommandRegistry.from_config(self.config)
        )
        self.transport = transport or SignalTransport(
            api_url=self.config.signal_api_url,
            account=self.config.signal_account or "",
            role_lookup=self.config.roles_for,
            bot_ids=self.config.bot_ids,
            styled=self.config.styled_replies,
        )
        self.extensions = ExtensionLoader(
            extensions_dir=self.config.extensions_dir,
            registry=self.registry,
            allowlist=self.config.extension_allowlist,
        )

        # Assemble commands before any event can arrive
        if setup is not None:
            setup(self.registry)
        self.extensions.discover_and_load()
        for prefix, commands in self.registry.conflicts().items():
            logger.warning(
                "ambiguous_invocation",
                prefix=prefix,
                commands=[c.name for c in commands],
            )

    def handle_event(self, event: Event) -> int:
        """Dispatch one event. Returns how many actions fired."""
        logger.debug(
            "event_received",
            kind=event.kind.value,
            actor="..." + event.actor.id[-4:],
        )
        return self.registry.dispatch(event)

    async def start(self) -> None:
        await self.transport.start()
        logger.info(
            "bot_started",
            commands=len(self.registry),
            groups=len(self.registry.groups),
            bot_prefix=self.registry.bot_prefix,
        )

    async def stop(self) -> None:
        if not self.transport.running:
            return
        await self.transport.stop()
        logger.info("bot_stopped")

    async def run(self) -> None:
        """Main run loop: start, receive events, stop on exit."""
        await self.start()
        try:
            await self.transport.listen(self.handle_event)
        finally:
            await self.stop()
