"""Text command dispatch."""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cabbage_bot.config import CommandsConfig
from cabbage_bot.core.logging import get_session_stats

if TYPE_CHECKING:
    from cabbage_bot.chat.events import ChatEvent
    from cabbage_bot.chat.session import ChatSession

logger = logging.getLogger(__name__)


@dataclass
class Command:
    """Reply to any message containing `trigger`.

    If `edited_reply` is set, the reply is edited to it after the
    dispatcher's edit delay.
    """

    trigger: str
    reply: str
    edited_reply: str | None = None

    def matches(self, content: str) -> bool:
        return self.trigger in content


class CommandDispatcher:
    """Matches posted messages against commands and answers them."""

    def __init__(
        self,
        session: "ChatSession",
        commands: list[Command],
        edit_delay: float = 5.0,
    ):
        self._session = session
        self._commands = commands
        self._edit_delay = edit_delay
        self._pending: set[asyncio.Task] = set()
        self._waiting: set[asyncio.Task] = set()
        self._closing = False

    @classmethod
    def from_config(cls, session: "ChatSession", config: CommandsConfig) -> "CommandDispatcher":
        commands = [
            Command(trigger=c.trigger, reply=c.reply, edited_reply=c.edited_reply)
            for c in config.items
        ]
        return cls(session, commands, edit_delay=config.edit_delay_seconds)

    @property
    def pending(self) -> int:
        """Number of replies still in flight."""
        return len(self._pending)

    def attach(self) -> None:
        """Subscribe to the session's events."""
        self._session.on_event(self.handle)

    def match(self, content: str) -> Command | None:
        for command in self._commands:
            if command.matches(content):
                return command
        return None

    async def handle(self, event: "ChatEvent") -> None:
        """React to a single chat event.

        Replies run in their own task so the event stream is not held up by
        the edit delay.
        """
        if not event.is_message:
            logger.debug(f"Ignoring event: {event}")
            return
        if self._closing:
            return

        command = self.match(event.content)
        if command is None:
            return

        get_session_stats().increment("commands_triggered")
        logger.info(f"Command {command.trigger!r} from {event.user_name} in {event.room_id}")
        task = asyncio.create_task(self._reply(command, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _reply(self, command: Command, event: "ChatEvent") -> None:
        try:
            message_id = await self._session.send(command.reply, event.room_id)
            if not message_id:
                raise ValueError("Invalid message id")
            logger.info(f"Message sent: {message_id}")

            if command.edited_reply is None or self._closing:
                return

            task = asyncio.current_task()
            self._waiting.add(task)
            try:
                await asyncio.sleep(self._edit_delay)
            finally:
                self._waiting.discard(task)
            edited_id = await self._session.edit(command.edited_reply, message_id)
            logger.info(f"Message edited: {edited_id}")
        except asyncio.CancelledError:
            raise
        except Exception:
            get_session_stats().increment("errors")
            logger.exception(f"Failed to answer {command.trigger!r}")

    async def wait_idle(self) -> None:
        """Wait for every pending reply to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        """Stop answering and let in-flight requests settle.

        Replies still waiting out the edit delay are cancelled; a send or
        edit already on the wire is awaited.
        """
        self._closing = True
        for task in list(self._waiting):
            task.cancel()
        await self.wait_idle()
