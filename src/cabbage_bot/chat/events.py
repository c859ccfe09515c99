"""Chat event records delivered over the push channel."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class EventType(IntEnum):
    """Event type codes used by the chat service."""

    MESSAGE_POSTED = 1
    MESSAGE_EDITED = 2
    USER_ENTERED = 3
    USER_LEFT = 4
    ROOM_NAME_CHANGED = 5
    MESSAGE_STARRED = 6
    USER_MENTIONED = 8
    MESSAGE_FLAGGED = 9
    MESSAGE_DELETED = 10
    FILE_ADDED = 11
    MODERATOR_FLAG = 12
    USER_SETTINGS_CHANGED = 13
    GLOBAL_NOTIFICATION = 14
    ACCESS_LEVEL_CHANGED = 15
    USER_NOTIFICATION = 16
    INVITATION = 17
    MESSAGE_REPLY = 18
    MESSAGE_MOVED_OUT = 19
    MESSAGE_MOVED_IN = 20
    TIME_BREAK = 21
    FEED_TICKER = 22
    USER_SUSPENDED = 29
    USER_MERGED = 30


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class ChatEvent:
    """A single event from a room."""

    event_type: int
    content: str = ""
    room_id: int | None = None
    message_id: int | None = None
    id: int | None = None
    user_id: int | None = None
    user_name: str | None = None
    room_name: str | None = None
    time_stamp: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatEvent":
        """Build an event from one entry of a frame's event list."""
        return cls(
            event_type=_as_int(data.get("event_type")) or 0,
            content=str(data.get("content") or ""),
            room_id=_as_int(data.get("room_id")),
            message_id=_as_int(data.get("message_id")),
            id=_as_int(data.get("id")),
            user_id=_as_int(data.get("user_id")),
            user_name=data.get("user_name"),
            room_name=data.get("room_name"),
            time_stamp=_as_int(data.get("time_stamp")),
            raw=data,
        )

    @property
    def type(self) -> EventType | None:
        """The known event type, or None for codes this client doesn't know."""
        try:
            return EventType(self.event_type)
        except ValueError:
            return None

    @property
    def is_message(self) -> bool:
        return self.event_type == EventType.MESSAGE_POSTED

    def __str__(self) -> str:
        kind = self.type.name if self.type else f"EVENT_{self.event_type}"
        if self.content:
            return f"[{self.room_id}] {kind} <{self.user_name}> {self.content}"
        return f"[{self.room_id}] {kind} <{self.user_name}>"
