"""Main entry point for cabbage-bot."""

import argparse
import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv

from cabbage_bot.auth import openid_login
from cabbage_bot.chat import ChatEvent, ChatSession
from cabbage_bot.config import Config, load_config, load_credentials_from_env
from cabbage_bot.core import ChatHttp, CommandDispatcher, get_session_stats, log_timing
from cabbage_bot.errors import StreamClosedError

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def install_signal_handlers(stop: asyncio.Event) -> None:
    """Set `stop` on SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))


async def run_bot(config: Config, stop: asyncio.Event) -> None:
    """Log in, join the configured room and answer commands until `stop` is set."""
    http = ChatHttp(timeout_seconds=config.chat.request_timeout_seconds)
    session = ChatSession(http, config.chat)
    dispatcher = CommandDispatcher.from_config(session, config.commands)
    dispatcher.attach()

    async def on_open() -> None:
        logger.info("Connection established.")

    async def on_close() -> None:
        logger.info("Connection closed.")

    async def on_error(error: Exception) -> None:
        logger.error(f"Chat error: {error}")
        if isinstance(error, StreamClosedError):
            stop.set()

    async def on_event(event: ChatEvent) -> None:
        if not event.is_message:
            logger.info(f"Event: {event}")

    session.on_open(on_open)
    session.on_close(on_close)
    session.on_error(on_error)
    session.on_event(on_event)

    try:
        with log_timing(logger, "Login"):
            await openid_login(http, config.account, config.chat)
        await session.connect()
        with log_timing(logger, "Join"):
            await session.join()

        await stop.wait()
        logger.info("Shutting down...")
    finally:
        await dispatcher.aclose()
        try:
            await session.quit()
        finally:
            await http.close()
            logger.info(f"Session stats: {get_session_stats().summary_line()}")


async def async_main(
    config_path: str | None = None,
    debug: bool = False,
    room_id: int | None = None,
) -> None:
    """Async main entry point."""
    setup_logging(debug)

    # Load .env file if present
    load_dotenv()

    config = load_config(config_path)
    config = load_credentials_from_env(config)
    if room_id is not None:
        config.chat.room_id = room_id

    logger.info("Starting Cabbage-Bot...")
    logger.info(f"Chat: {config.chat.chat_url}")
    logger.info(f"Room: {config.chat.room_id}")

    stop = asyncio.Event()
    install_signal_handlers(stop)

    try:
        await run_bot(config, stop)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cabbage-bot", description="Stack Overflow chat bot")
    parser.add_argument("-c", "--config", metavar="PATH", help="YAML config file (default: config.yaml)")
    parser.add_argument("-d", "--debug", action="store_true", help="log at DEBUG level")
    parser.add_argument("-r", "--room", type=int, metavar="ID", help="room to join instead of chat.room_id")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Console script entry point."""
    args = build_parser().parse_args(argv)

    asyncio.run(async_main(
        config_path=args.config,
        debug=args.debug,
        room_id=args.room,
    ))


if __name__ == "__main__":
    main()
