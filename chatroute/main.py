"""Console entry point for chatroute.

``chatroute`` configures logging, builds a :class:`ChatBot` from the
configuration and serves until SIGTERM/SIGINT arrives or the bot's
receive loop ends on its own. The exit status is 1 when the bot
stopped because of an error.
"""

import asyncio
import signal
import sys

import structlog

from . import __version__
from .bot import ChatBot
from .config import get_config
from .logging_config import setup_logging

logger = structlog.get_logger("chatroute.bot")


def install_shutdown_handlers(stop_requested: asyncio.Event) -> None:
    """Set ``stop_requested`` on SIGTERM or SIGINT."""
    loop = asyncio.get_running_loop()

    def request_stop(sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        loop.call_soon_threadsafe(stop_requested.set)

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, request_stop, sig)
        except NotImplementedError:
            # No loop signal handlers on Windows; SIGINT still works
            if sig == signal.SIGINT:
                signal.signal(sig, lambda s, f: request_stop(signal.SIGINT))


async def serve(bot: ChatBot, stop_requested: asyncio.Event) -> int:
    """Run ``bot`` until a stop is requested or it exits by itself.

    Returns the process exit status.
    """
    bot_task = asyncio.create_task(bot.run())
    stop_task = asyncio.create_task(stop_requested.wait())
    status = 0
    try:
        done, _ = await asyncio.wait(
            {bot_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if bot_task in done:
            exc = None if bot_task.cancelled() else bot_task.exception()
            if exc is not None:
                logger.error(
                    "bot_crashed",
                    error=str(exc),
                    exc_type=type(exc).__name__,
                    exc_info=exc,
                )
                status = 1
            else:
                logger.warning("bot_exited_without_shutdown")
    finally:
        for task in (bot_task, stop_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(bot_task, stop_task, return_exceptions=True)
        await bot.stop()
    return status


async def main() -> int:
    # Defaults first, so config loading can log
    setup_logging()
    logger.info("chatroute_starting", version=__version__)

    config = get_config()
    config.validate()
    setup_logging(config)

    bot = ChatBot(config)
    stop_requested = asyncio.Event()
    install_shutdown_handlers(stop_requested)
    status = await serve(bot, stop_requested)
    logger.info("chatroute_stopped", status=status)
    return status


def run():
    """Synchronous entry point for the ``chatroute`` console script."""
    try:
        status = asyncio.run(main())
    except KeyboardInterrupt:
        status = 0
    sys.exit(status)


if __name__ == "__main__":
    run()
