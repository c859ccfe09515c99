"""Push channel consumer.

Each frame from the chat WebSocket is a JSON object keyed by room. A room
entry looks like ``{"e": [...events...], "t": 1234, "d": 1233}`` where ``t``
counts all events and ``d`` counts events already delivered. Entries where the
two counters agree are heartbeats and carry nothing new.
"""

import asyncio
import json
import logging
from collections.abc import Callable, Coroutine
from typing import Any

import aiohttp

from cabbage_bot.chat.events import ChatEvent
from cabbage_bot.errors import StreamClosedError

logger = logging.getLogger(__name__)

EventHandler = Callable[[ChatEvent], Coroutine[Any, Any, None]]
ClosedHandler = Callable[[StreamClosedError], Coroutine[Any, Any, None]]


def parse_frame(text: str) -> dict[str, Any] | None:
    """Decode a text frame, returning None for anything that isn't a JSON object."""
    try:
        frame = json.loads(text)
    except (TypeError, ValueError):
        logger.warning(f"Dropping malformed frame: {text[:200]!r}")
        return None
    if not isinstance(frame, dict):
        logger.warning(f"Dropping non-object frame: {text[:200]!r}")
        return None
    return frame


def extract_events(frame: dict[str, Any]) -> list[ChatEvent]:
    """Collect the events of every room entry whose counters changed."""
    events: list[ChatEvent] = []
    for entry in frame.values():
        if not isinstance(entry, dict):
            continue
        items = entry.get("e")
        if not isinstance(items, list):
            continue
        if entry.get("t") == entry.get("d"):
            continue
        for item in items:
            if isinstance(item, dict):
                events.append(ChatEvent.from_dict(item))
    return events


class EventStream:
    """Reads frames from an open WebSocket and hands events to a callback.

    Events are delivered one at a time in frame order. No reconnect is
    attempted; if the socket goes away without close() having been called,
    `on_closed` receives a StreamClosedError.
    """

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        on_event: EventHandler,
        on_closed: ClosedHandler | None = None,
    ):
        self._ws = ws
        self._on_event = on_event
        self._on_closed = on_closed
        self._task: asyncio.Task | None = None
        self._closing = False

    @property
    def closed(self) -> bool:
        return self._ws.closed

    def start(self) -> None:
        """Start the reader task."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        error: StreamClosedError | None = None
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = StreamClosedError(f"Push channel error: {self._ws.exception()}")
                    break
        except aiohttp.ClientError as e:
            error = StreamClosedError(f"Push channel failed: {e}")

        if self._closing:
            logger.debug("Push channel closed")
            return

        if error is None:
            error = StreamClosedError("Push channel closed unexpectedly")
        logger.warning(str(error))
        if self._on_closed:
            await self._on_closed(error)

    async def _handle_text(self, text: str) -> None:
        frame = parse_frame(text)
        if frame is None:
            return
        for event in extract_events(frame):
            await self._on_event(event)

    async def close(self) -> None:
        """Close the socket and wait for the reader task to finish."""
        self._closing = True
        if not self._ws.closed:
            await self._ws.close()
        task = self._task
        if task is not None and task is not asyncio.current_task():
            await task
