"""Chat session: fkey ownership, room membership and the push channel."""

import json
import logging
import re
from collections.abc import Callable, Coroutine
from enum import Enum, auto
from typing import Any

from cabbage_bot.auth import scrape_token
from cabbage_bot.chat.events import ChatEvent
from cabbage_bot.chat.stream import EventStream
from cabbage_bot.config import ChatConfig
from cabbage_bot.core.http import ChatHttp
from cabbage_bot.core.logging import get_session_stats
from cabbage_bot.errors import (
    MalformedResponseError,
    NoRoomError,
    NotConnectedError,
    StreamClosedError,
)

logger = logging.getLogger(__name__)

# Chat root page exposes the fkey in a hidden input
CHAT_FKEY_PATTERN = re.compile(r'name="fkey"[^>]+value="([a-z0-9]{32})"')

# Last-seen event time sent when opening the push channel. A large value asks
# the server for new events only.
STREAM_VERSION = "99999999999"

EventHandler = Callable[[ChatEvent], Coroutine[Any, Any, None]]
NotifyHandler = Callable[[], Coroutine[Any, Any, None]]
ErrorHandler = Callable[[Exception], Coroutine[Any, Any, None]]


class SessionState(Enum):
    """Lifecycle of a chat session."""

    DISCONNECTED = auto()
    CONNECTED = auto()
    LISTENING = auto()
    CLOSED = auto()


class ChatSession:
    """A logged-in bot's chat session.

    The session is the only holder of the fkey and of the push channel.
    Anything interested in what happens in the room registers a coroutine
    with on_event/on_open/on_close/on_error.
    """

    def __init__(self, http: ChatHttp, chat: ChatConfig, room_id: int | None = None):
        self._http = http
        self._chat = chat
        self._room_id = room_id if room_id is not None else chat.room_id
        self._fkey: str | None = None
        self._state = SessionState.DISCONNECTED
        self._stream: EventStream | None = None
        self._joined_rooms: list[int] = []

        self._event_handlers: list[EventHandler] = []
        self._open_handlers: list[NotifyHandler] = []
        self._close_handlers: list[NotifyHandler] = []
        self._error_handlers: list[ErrorHandler] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def fkey(self) -> str | None:
        return self._fkey

    @property
    def room_id(self) -> int | None:
        """The default room for send()."""
        return self._room_id

    @property
    def joined_rooms(self) -> list[int]:
        return list(self._joined_rooms)

    @property
    def is_listening(self) -> bool:
        return self._state == SessionState.LISTENING

    # Subscriber registration

    def on_event(self, handler: EventHandler) -> None:
        """Register a coroutine called with every chat event."""
        self._event_handlers.append(handler)

    def on_open(self, handler: NotifyHandler) -> None:
        """Register a coroutine called once the push channel is open."""
        self._open_handlers.append(handler)

    def on_close(self, handler: NotifyHandler) -> None:
        """Register a coroutine called when the session has quit."""
        self._close_handlers.append(handler)

    def on_error(self, handler: ErrorHandler) -> None:
        """Register a coroutine called when the push channel fails."""
        self._error_handlers.append(handler)

    async def _publish_event(self, event: ChatEvent) -> None:
        stats = get_session_stats()
        stats.increment("events_received")
        stats.record_event_type(event.event_type)
        logger.debug(f"Event: {event}")
        for handler in list(self._event_handlers):
            try:
                await handler(event)
            except Exception:
                logger.exception(f"Error handling event {event.id}")

    async def _notify(self, handlers: list[NotifyHandler], name: str) -> None:
        for handler in list(handlers):
            try:
                await handler()
            except Exception:
                logger.exception(f"Error in {name} handler")

    async def _publish_error(self, error: Exception) -> None:
        get_session_stats().increment("errors")
        for handler in list(self._error_handlers):
            try:
                await handler(error)
            except Exception:
                logger.exception("Error in error handler")

    async def _on_stream_closed(self, error: StreamClosedError) -> None:
        self._stream = None
        if self._state == SessionState.LISTENING:
            self._state = SessionState.CONNECTED
        await self._publish_error(error)

    # Operations

    def _require_fkey(self) -> str:
        if not self._fkey:
            raise NotConnectedError()
        return self._fkey

    def _resolve_room(self, room_id: int | None) -> int:
        room = room_id if room_id is not None else self._room_id
        if room is None:
            raise NoRoomError()
        return room

    async def connect(self) -> str:
        """Fetch the chat root page and take the fkey from it.

        Returns:
            The fkey
        """
        url = f"{self._chat.chat_url}/"
        body = await self._http.get(url)
        self._fkey = scrape_token(CHAT_FKEY_PATTERN, body, "chat fkey", url)
        if self._state != SessionState.LISTENING:
            self._state = SessionState.CONNECTED
        logger.info("Connected to chat")
        return self._fkey

    async def join(self, room_id: int | None = None) -> str:
        """Join a room, opening the push channel if it isn't open yet.

        Resolves after the WebSocket handshake has completed.

        Args:
            room_id: Room to join, or the default room

        Returns:
            The push channel URL issued for the room
        """
        fkey = self._require_fkey()
        room = self._resolve_room(room_id)

        body = await self._http.post_form(
            f"{self._chat.chat_url}/ws-auth",
            {"roomid": room, "fkey": fkey},
        )
        try:
            url = json.loads(body)["url"]
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedResponseError(f"ws-auth response has no url: {body[:200]!r}") from e

        if room not in self._joined_rooms:
            self._joined_rooms.append(room)
        if self._room_id is None:
            self._room_id = room

        if self._stream is None:
            ws = await self._http.ws_connect(
                url,
                origin=self._chat.chat_url,
                params={"l": STREAM_VERSION},
            )
            self._stream = EventStream(ws, self._publish_event, self._on_stream_closed)
            self._stream.start()
            self._state = SessionState.LISTENING
            logger.info(f"Listening in room {room}")
            await self._notify(self._open_handlers, "open")
        else:
            logger.info(f"Joined room {room}")

        return url

    async def _post(self, path: str, data: dict[str, Any]) -> str:
        form = dict(data)
        if not form.get("fkey"):
            form["fkey"] = self._require_fkey()
        return await self._http.post_form(f"{self._chat.chat_url}{path}", form)

    async def api_request(self, path: str, data: dict[str, Any]) -> dict[str, Any]:
        """POST to a chat API path and decode the JSON response.

        Args:
            path: Request path with a leading "/"
            data: Form fields; the session's fkey is added if absent

        Returns:
            The decoded response, or {} for an empty body
        """
        body = await self._post(path, data)
        if not body:
            return {}
        try:
            return json.loads(body)
        except ValueError as e:
            raise MalformedResponseError(f"Non-JSON response from {path}: {body[:200]!r}") from e

    async def send(self, text: str, room_id: int | None = None) -> int:
        """Post a new message.

        Returns:
            The new message's id
        """
        self._require_fkey()
        room = self._resolve_room(room_id)

        data = await self.api_request(f"/chats/{room}/messages/new", {"text": text})
        raw_id = data.get("id") if isinstance(data, dict) else None
        try:
            message_id = int(raw_id)
        except (TypeError, ValueError):
            message_id = 0
        if message_id <= 0:
            raise MalformedResponseError(f"Send response has no message id: {data!r}")

        get_session_stats().increment("messages_sent")
        logger.info(f"MSG_SENT: [{room}] {message_id}: {text}")
        return message_id

    async def edit(self, text: str, message_id: int) -> int:
        """Replace the text of an existing message.

        Returns:
            `message_id`, whatever the response body says
        """
        # The body is ignored; only the status matters
        await self._post(f"/messages/{message_id}", {"text": text})
        get_session_stats().increment("messages_edited")
        logger.info(f"MSG_EDITED: {message_id}: {text}")
        return message_id

    async def leave_all(self) -> None:
        """Quietly leave every room."""
        self._require_fkey()
        await self.api_request("/chats/leave/all", {"quiet": True})
        logger.info("Left all rooms")

    async def quit(self) -> None:
        """Close the push channel and leave all rooms.

        Safe to call more than once; later calls do nothing.
        """
        if self._state == SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED

        try:
            if self._stream is not None:
                stream, self._stream = self._stream, None
                await stream.close()
            if self._fkey:
                await self.leave_all()
        finally:
            self._fkey = None
            self._joined_rooms.clear()
            logger.info("Session closed")
            await self._notify(self._close_handlers, "close")
